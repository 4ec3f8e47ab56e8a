"""Storage loaders: the read contract the query engine consumes, plus the filesystem backend."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable
from urllib.parse import urlparse

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from shardbase.config import ShardbaseConfig
from shardbase.errors import StorageBackendError
from shardbase.models import (
    BUILD_MANIFEST_FILE,
    METADATA_FILE,
    SCHEMA_FILE,
    SPLIT_METADATA_FILE,
    BuildManifest,
    DatabaseMetadata,
    FieldIndex,
    FileInfo,
    PrimaryIndex,
    SplitMetadata,
    index_path,
    primary_index_path,
    shard_path,
    to_record_id,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@runtime_checkable
class StorageLoader(Protocol):
    """Backend-agnostic read contract used by the query engine."""

    location: str

    def load_metadata(self) -> DatabaseMetadata: ...

    def load_split_metadata(self) -> SplitMetadata: ...

    def load_schema(self) -> dict[str, Any] | None: ...

    def load_index(self, field: str) -> FieldIndex | None: ...

    def load_primary_index(self) -> PrimaryIndex: ...

    def load_record(
        self,
        record_id: str,
        file_info: FileInfo,
        split_metadata: SplitMetadata,
    ) -> dict[str, Any] | None: ...

    def is_available(self) -> bool: ...

    def close(self) -> None: ...


def find_record_in_shard(content: Any, record_id: str, primary_key_field: str) -> Any:
    """Locate a record by id inside a decoded shard (one object or a batch array)."""
    candidates = content if isinstance(content, list) else [content]
    for record in candidates:
        if (
            isinstance(record, dict)
            and primary_key_field in record
            and to_record_id(record[primary_key_field]) == record_id
        ):
            return record
    return None


class JsonLoader:
    """Shared loader logic on top of a single ``_get_bytes`` primitive.

    Backends only map a relative layout path to bytes (``None`` when the
    object does not exist) and answer ``_exists``.
    """

    location: str = ""
    _last_shard: tuple[str, Any] | None = None

    def _get_bytes(self, rel_path: str) -> bytes | None:
        raise NotImplementedError

    def _exists(self, rel_path: str) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> JsonLoader:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _get_json(self, rel_path: str, *, required: bool = True) -> Any:
        body = self._get_bytes(rel_path)
        if body is None:
            if required:
                raise StorageBackendError("load", f"'{rel_path}' not found at {self.location}")
            return None
        try:
            return json.loads(body.decode("utf-8"))
        except ValueError as e:
            raise StorageBackendError("decode", f"'{rel_path}' is not valid JSON: {e}") from e

    def _get_model(self, model: type[M], rel_path: str, *, required: bool = True) -> M | None:
        raw = self._get_json(rel_path, required=required)
        if raw is None:
            return None
        try:
            return model.model_validate(raw)
        except PydanticValidationError as e:
            raise StorageBackendError("validate", f"'{rel_path}' is malformed: {e}") from e

    def load_metadata(self) -> DatabaseMetadata:
        result = self._get_model(DatabaseMetadata, METADATA_FILE)
        assert result is not None
        return result

    def load_split_metadata(self) -> SplitMetadata:
        result = self._get_model(SplitMetadata, SPLIT_METADATA_FILE)
        assert result is not None
        return result

    def load_schema(self) -> dict[str, Any] | None:
        try:
            schema = self._get_json(SCHEMA_FILE, required=False)
        except StorageBackendError as e:
            logger.warning("Failed to load schema from %s: %s", self.location, e)
            return None
        return schema if isinstance(schema, dict) else None

    def load_index(self, field: str) -> FieldIndex | None:
        return self._get_model(FieldIndex, index_path(field), required=False)

    def load_primary_index(self) -> PrimaryIndex:
        result = self._get_model(PrimaryIndex, primary_index_path())
        assert result is not None
        return result

    def load_record(
        self,
        record_id: str,
        file_info: FileInfo,
        split_metadata: SplitMetadata,
    ) -> dict[str, Any] | None:
        rel_path = shard_path(file_info.filename)
        # Scans walk records in shard order, so keep the last decoded batch shard.
        last = self._last_shard
        if last is not None and last[0] == rel_path:
            content = last[1]
        else:
            try:
                content = self._get_json(rel_path, required=False)
            except StorageBackendError as e:
                logger.error("Failed to load record %s: %s", record_id, e)
                return None
            if content is None:
                return None
            if isinstance(content, list):
                self._last_shard = (rel_path, content)
        return find_record_in_shard(content, record_id, split_metadata.primary_key_field)

    def load_build_manifest(self) -> BuildManifest | None:
        return self._get_model(BuildManifest, BUILD_MANIFEST_FILE, required=False)

    def has_file(self, rel_path: str) -> bool:
        return self._exists(rel_path)

    def is_available(self) -> bool:
        try:
            return self._exists(METADATA_FILE) and self._exists(SPLIT_METADATA_FILE)
        except StorageBackendError:
            return False


class FileSystemLoader(JsonLoader):
    """Loader for a database directory on the local filesystem."""

    def __init__(self, database_dir: str) -> None:
        self.database_dir = os.path.abspath(database_dir)
        self.location = self.database_dir

    def _full_path(self, rel_path: str) -> str:
        return os.path.join(self.database_dir, *rel_path.split("/"))

    def _get_bytes(self, rel_path: str) -> bytes | None:
        path = self._full_path(rel_path)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageBackendError("read", f"{path}: {e}") from e

    def _exists(self, rel_path: str) -> bool:
        return os.path.isfile(self._full_path(rel_path))


@dataclass(frozen=True)
class StorageTarget:
    """Resolved storage target for a database location."""

    backend: str
    uri: str
    path: str | None = None
    base_url: str | None = None
    bucket: str | None = None
    prefix: str | None = None


def parse_storage_target(location: str) -> StorageTarget:
    """Resolve a filesystem path, ``file://``, ``http(s)://`` or ``s3://`` location."""
    if not location:
        raise StorageBackendError("parse_storage_uri", "Empty database location")
    parsed = urlparse(location)

    # A one-letter scheme is a Windows drive letter.
    if parsed.scheme in ("", "file") or len(parsed.scheme) == 1:
        path = location
        if parsed.scheme == "file":
            path = f"{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path
            if not path:
                raise StorageBackendError("parse_storage_uri", f"Invalid file URI: {location}")
        return StorageTarget(backend="file", uri=location, path=path)

    if parsed.scheme in ("http", "https"):
        if not parsed.netloc:
            raise StorageBackendError("parse_storage_uri", f"Invalid HTTP URL: {location}")
        return StorageTarget(backend="http", uri=location, base_url=location.rstrip("/"))

    if parsed.scheme == "s3":
        bucket = parsed.netloc
        prefix = parsed.path.lstrip("/").rstrip("/")
        if not bucket:
            raise StorageBackendError("parse_storage_uri", f"Invalid s3 URI: {location}")
        return StorageTarget(backend="s3", uri=location, bucket=bucket, prefix=prefix)

    raise StorageBackendError(
        "parse_storage_uri",
        f"Unsupported storage URI scheme '{parsed.scheme}' for '{location}'",
    )


def open_loader(location: str, *, config: ShardbaseConfig | None = None) -> StorageLoader:
    """Open the loader matching a database location."""
    cfg = config or ShardbaseConfig()
    target = parse_storage_target(location)
    if target.backend == "file":
        assert target.path is not None
        return FileSystemLoader(target.path)
    if target.backend == "http":
        from shardbase.storage_http import HttpLoader

        assert target.base_url is not None
        return HttpLoader(target.base_url, timeout=cfg.http_timeout_s)
    if target.backend == "s3":
        from shardbase.storage_s3 import S3Loader

        assert target.bucket is not None
        return S3Loader(
            bucket=target.bucket,
            prefix=target.prefix or "",
            storage_uri=target.uri,
            config=cfg,
        )
    raise StorageBackendError("open_loader", f"Unsupported backend '{target.backend}'")


__all__ = [
    "StorageLoader",
    "JsonLoader",
    "FileSystemLoader",
    "StorageTarget",
    "parse_storage_target",
    "open_loader",
    "find_record_in_shard",
]
