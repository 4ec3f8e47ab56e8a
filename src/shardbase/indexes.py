"""Index builder: flattens records into field paths and writes inverted indexes."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

from shardbase.filters import is_scalar
from shardbase.models import (
    INDEXES_DIR,
    METADATA_FILE,
    PRIMARY_INDEX_FILE,
    DatabaseMetadata,
    FieldIndex,
    FieldIndexStats,
    IndexDescriptor,
    IndexEntry,
    IndexType,
    PrimaryIndex,
    PrimaryIndexEntry,
    PrimaryIndexStats,
    SkippedField,
    sanitize_field_name,
)
from shardbase.shards import validate_primary_keys

logger = logging.getLogger(__name__)

DEFAULT_MAX_INDEX_VALUES = 10000


def _value_key(value: Any) -> tuple[str, Any]:
    # Keeps True and 1 (or False and 0) in separate entries.
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("number", value)
    if value is None:
        return ("null", None)
    return ("string", value)


class PathStats:
    """Observations collected for one field path during the walk."""

    __slots__ = ("path", "values", "records", "through_array", "container", "dotted_key")

    def __init__(self, path: str) -> None:
        self.path = path
        self.values: dict[tuple[str, Any], tuple[Any, set[str]]] = {}
        self.records: set[str] = set()
        self.through_array = False
        self.container = False
        # Built from a literal key holding a dot; lookups by path cannot reach it.
        self.dotted_key = False

    def observe(self, value: Any, record_id: str) -> None:
        key = _value_key(value)
        entry = self.values.get(key)
        if entry is None:
            entry = (value, set())
            self.values[key] = entry
        entry[1].add(record_id)

    @property
    def unique_values(self) -> int:
        return len(self.values)

    @property
    def index_type(self) -> IndexType:
        if self.through_array:
            return "array"
        if self.container or self.dotted_key:
            return "nested"
        return "primitive"

    def entries(self) -> list[IndexEntry]:
        entries = [
            IndexEntry(value=value, record_ids=sorted(ids)) for value, ids in self.values.values()
        ]
        # Most common values first; ties keep first-seen order.
        entries.sort(key=lambda e: -len(e.record_ids))
        return entries


def collect_field_stats(
    records: list[dict[str, Any]], record_ids: list[str]
) -> dict[str, PathStats]:
    """Walk every record and gather per-path value observations."""
    stats: dict[str, PathStats] = {}

    def walk(
        obj: dict[str, Any], record_id: str, prefix: str, in_array: bool, dotted: bool = False
    ) -> None:
        for key, value in obj.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            key_dotted = dotted or "." in str(key)
            path_stats = stats.get(path)
            if path_stats is None:
                path_stats = stats[path] = PathStats(path)
            path_stats.records.add(record_id)
            if in_array:
                path_stats.through_array = True
            if key_dotted:
                path_stats.dotted_key = True

            if isinstance(value, list):
                path_stats.through_array = True
                for item in value:
                    if is_scalar(item):
                        path_stats.observe(item, record_id)
                    elif isinstance(item, dict):
                        walk(item, record_id, path, True, key_dotted)
            elif isinstance(value, dict):
                path_stats.container = True
                walk(value, record_id, path, in_array, key_dotted)
            else:
                path_stats.observe(value, record_id)

    for record, record_id in zip(records, record_ids):
        walk(record, record_id, "", False)
    return stats


def _dump(obj: Any) -> bytes:
    return json.dumps(obj, indent=2, ensure_ascii=False).encode("utf-8")


class IndexBuilder:
    """Build per-field inverted indexes, the primary index and database metadata."""

    def __init__(
        self,
        output_dir: str,
        *,
        index_fields: list[str] | None = None,
        max_index_values: int = DEFAULT_MAX_INDEX_VALUES,
    ) -> None:
        self.output_dir = output_dir
        self.index_fields = index_fields
        self.max_index_values = max_index_values

    def generate_indexes(
        self,
        records: list[dict[str, Any]],
        primary_key_field: str = "id",
        *,
        record_map: dict[str, str] | None = None,
    ) -> DatabaseMetadata:
        logger.info("Generating indexes for %d records...", len(records))
        record_ids = validate_primary_keys(records, primary_key_field)
        total = len(records)
        created_at = datetime.now(timezone.utc).isoformat()

        stats = collect_field_stats(records, record_ids)

        indexes_dir = os.path.join(self.output_dir, INDEXES_DIR)
        os.makedirs(indexes_dir, exist_ok=True)

        selected = set(self.index_fields) if self.index_fields is not None else None
        descriptors: list[IndexDescriptor] = []
        skipped: list[SkippedField] = []
        used_names: dict[str, str] = {}

        for path, path_stats in stats.items():
            unique = path_stats.unique_values
            if selected is not None and path not in selected:
                skipped.append(
                    SkippedField(field=path, reason="not_selected", unique_values=unique)
                )
                continue
            if unique > self.max_index_values:
                logger.warning("Skipping index for %s (%d unique values)", path, unique)
                skipped.append(
                    SkippedField(field=path, reason="max_index_values", unique_values=unique)
                )
                continue
            name = sanitize_field_name(path)
            if name in used_names:
                logger.warning(
                    "Skipping index for %s (file name collides with %s)", path, used_names[name]
                )
                skipped.append(
                    SkippedField(field=path, reason="filename_collision", unique_values=unique)
                )
                continue
            used_names[name] = path

            coverage = len(path_stats.records) / total
            index = FieldIndex(
                field=path,
                entries=path_stats.entries(),
                metadata=FieldIndexStats(
                    unique_values=unique,
                    total_records=total,
                    coverage=coverage,
                    created_at=created_at,
                ),
            )
            with open(os.path.join(indexes_dir, f"{name}.json"), "wb") as fh:
                fh.write(_dump(index.to_json_dict()))
            logger.debug("Generated index for %s (%d unique values)", path, unique)

            descriptors.append(
                IndexDescriptor(
                    field=path,
                    type=path_stats.index_type,
                    unique_values=unique,
                    total_records=total,
                    coverage=coverage,
                    created_at=created_at,
                )
            )

        self._write_primary_index(
            record_ids, primary_key_field, record_map or {}, indexes_dir, created_at
        )

        metadata = DatabaseMetadata(
            total_records=total,
            fields=sorted(stats),
            indexes=descriptors,
            skipped=skipped,
            primary_key_field=primary_key_field,
            created_at=created_at,
        )
        with open(os.path.join(self.output_dir, METADATA_FILE), "wb") as fh:
            fh.write(_dump(metadata.to_json_dict()))

        logger.info("Generated %d indexes in %s", len(descriptors) + 1, indexes_dir)
        return metadata

    def _write_primary_index(
        self,
        record_ids: list[str],
        primary_key_field: str,
        record_map: dict[str, str],
        indexes_dir: str,
        created_at: str,
    ) -> None:
        primary = PrimaryIndex(
            field=primary_key_field,
            entries=[
                PrimaryIndexEntry(id=rid, index=i, filename=record_map.get(rid))
                for i, rid in enumerate(record_ids)
            ],
            metadata=PrimaryIndexStats(total_records=len(record_ids), created_at=created_at),
        )
        with open(os.path.join(indexes_dir, PRIMARY_INDEX_FILE), "wb") as fh:
            fh.write(_dump(primary.to_json_dict()))
        logger.debug("Generated primary key index for %s", primary_key_field)
