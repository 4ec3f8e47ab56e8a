"""Persisted layout of a built database: file names and pydantic models."""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

METADATA_FILE = "metadata.json"
SPLIT_METADATA_FILE = "split-metadata.json"
SCHEMA_FILE = "schema.json"
BUILD_MANIFEST_FILE = "build-manifest.json"
DATA_DIR = "data"
INDEXES_DIR = "indexes"
PRIMARY_INDEX_FILE = "_primary.json"
FORMAT_VERSION = "1.0.0"

IndexType = Literal["primitive", "array", "nested"]


def to_record_id(value: Any) -> str:
    """Return the stable string form of a primary key value."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def sanitize_field_name(field: str) -> str:
    """Map a field path to a filesystem/URL-safe file stem."""
    name = re.sub(r"[^a-zA-Z0-9.-]", "_", field)
    name = re.sub(r"_{2,}", "_", name)
    return name.strip("_")


def index_path(field: str) -> str:
    """Relative path of the index file for a field path."""
    return f"{INDEXES_DIR}/{sanitize_field_name(field)}.json"


def primary_index_path() -> str:
    return f"{INDEXES_DIR}/{PRIMARY_INDEX_FILE}"


def shard_path(filename: str) -> str:
    return f"{DATA_DIR}/{filename}"


class _LayoutModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self, *, drop_none: bool = False) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=drop_none)


class FileInfo(_LayoutModel):
    """One shard entry of the shard manifest."""

    filename: str
    record_count: int = Field(alias="recordCount")
    size: int
    record_ids: list[str] = Field(alias="recordIds")
    subdirectory: str | None = None


class SplitMetadata(_LayoutModel):
    """The shard manifest (``split-metadata.json``)."""

    total_records: int = Field(alias="totalRecords")
    total_files: int = Field(alias="totalFiles")
    avg_file_size: float = Field(alias="avgFileSize")
    primary_key_field: str = Field(alias="primaryKeyField")
    batch_size: int | None = Field(default=None, alias="batchSize")
    use_subdirectories: bool = Field(alias="useSubdirectories")
    created_at: str | None = Field(default=None, alias="createdAt")
    files: list[FileInfo]


class IndexEntry(_LayoutModel):
    value: Any = None
    record_ids: list[str] = Field(alias="recordIds")


class FieldIndexStats(_LayoutModel):
    unique_values: int = Field(alias="uniqueValues")
    total_records: int = Field(alias="totalRecords")
    coverage: float
    created_at: str | None = Field(default=None, alias="createdAt")


class FieldIndex(_LayoutModel):
    """Inverted index for one field path (``indexes/<field>.json``)."""

    field: str
    entries: list[IndexEntry]
    metadata: FieldIndexStats


class PrimaryIndexEntry(_LayoutModel):
    id: str
    index: int
    filename: str | None = None


class PrimaryIndexStats(_LayoutModel):
    total_records: int = Field(alias="totalRecords")
    created_at: str | None = Field(default=None, alias="createdAt")


class PrimaryIndex(_LayoutModel):
    """Record id to shard location map (``indexes/_primary.json``)."""

    field: str
    type: Literal["primary"] = "primary"
    entries: list[PrimaryIndexEntry]
    metadata: PrimaryIndexStats


class IndexDescriptor(_LayoutModel):
    field: str
    type: IndexType
    unique_values: int = Field(alias="uniqueValues")
    total_records: int = Field(default=0, alias="totalRecords")
    coverage: float
    created_at: str | None = Field(default=None, alias="createdAt")


class SkippedField(_LayoutModel):
    field: str
    reason: Literal["max_index_values", "not_selected", "filename_collision"]
    unique_values: int = Field(alias="uniqueValues")


class DatabaseMetadata(_LayoutModel):
    """Aggregate description of a built database (``metadata.json``)."""

    total_records: int = Field(alias="totalRecords")
    fields: list[str]
    indexes: list[IndexDescriptor]
    skipped: list[SkippedField] = Field(default_factory=list)
    primary_key_field: str | None = Field(default=None, alias="primaryKeyField")
    created_at: str | None = Field(default=None, alias="createdAt")
    version: str = FORMAT_VERSION

    def descriptor(self, field: str) -> IndexDescriptor | None:
        for desc in self.indexes:
            if desc.field == field:
                return desc
        return None


class BuildManifest(_LayoutModel):
    """Summary of one build run (``build-manifest.json``)."""

    version: str = FORMAT_VERSION
    created_at: str = Field(alias="createdAt")
    build_time: float = Field(alias="buildTime")
    input_file: str = Field(alias="inputFile")
    options: dict[str, Any] = Field(default_factory=dict)
    summary: dict[str, Any] = Field(default_factory=dict)
