"""Structured error types for shardbase."""

from __future__ import annotations

from typing import Any


class ShardbaseError(Exception):
    """Base error for all shardbase errors."""


class BuildValidationError(ShardbaseError):
    """Raised when the input collection violates a build invariant."""


class EmptyInputError(BuildValidationError):
    """Raised when there are no records to build from."""

    def __init__(self) -> None:
        super().__init__("No records to split.")


class MissingPrimaryKeyError(BuildValidationError):
    """Raised when a record lacks the primary key field."""

    def __init__(self, field: str, position: int) -> None:
        self.field = field
        self.position = position
        super().__init__(f'All records must have a "{field}" field.')


class DuplicatePrimaryKeyError(BuildValidationError):
    """Raised when two records share a primary key value (including null)."""

    def __init__(self, value: str, raw_value: Any = None) -> None:
        self.value = value
        self.raw_value = raw_value
        super().__init__(f"Duplicate primary key value found: {value}")


class DatabaseUnavailableError(ShardbaseError):
    """Raised when metadata or the shard manifest cannot be loaded."""

    def __init__(self, location: str, detail: str) -> None:
        self.location = location
        self.detail = detail
        super().__init__(f"Database at '{location}' is not available: {detail}")


class StorageBackendError(ShardbaseError):
    """Raised when backend storage operations fail."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage backend error during {operation}: {detail}")


class InvalidQueryError(ShardbaseError):
    """Raised for malformed query options."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
