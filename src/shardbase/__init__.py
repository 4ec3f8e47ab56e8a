"""Shardbase: static sharded JSON databases with inverted indexes."""

__version__ = "0.1.0"

from shardbase.builder import BuildResult, DatabaseBuilder, database_info, validate_database
from shardbase.config import ShardbaseConfig
from shardbase.engine import QueryEngine, QueryResult
from shardbase.errors import (
    BuildValidationError,
    DatabaseUnavailableError,
    DuplicatePrimaryKeyError,
    EmptyInputError,
    InvalidQueryError,
    MissingPrimaryKeyError,
    ShardbaseError,
    StorageBackendError,
)
from shardbase.filters import QueryFilter, QueryOperator, QueryOptions, QuerySort
from shardbase.query import Database, QueryBuilder
from shardbase.storage import FileSystemLoader, StorageLoader, open_loader

__all__ = [
    "__version__",
    "Database",
    "QueryBuilder",
    "QueryEngine",
    "QueryResult",
    "QueryFilter",
    "QueryOperator",
    "QueryOptions",
    "QuerySort",
    "DatabaseBuilder",
    "BuildResult",
    "validate_database",
    "database_info",
    "StorageLoader",
    "FileSystemLoader",
    "open_loader",
    "ShardbaseConfig",
    "ShardbaseError",
    "BuildValidationError",
    "EmptyInputError",
    "MissingPrimaryKeyError",
    "DuplicatePrimaryKeyError",
    "DatabaseUnavailableError",
    "StorageBackendError",
    "InvalidQueryError",
]
