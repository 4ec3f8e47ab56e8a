"""Shard builder: validates primary keys and writes records into shard files."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shardbase.errors import DuplicatePrimaryKeyError, EmptyInputError, MissingPrimaryKeyError
from shardbase.models import DATA_DIR, SPLIT_METADATA_FILE, FileInfo, SplitMetadata, to_record_id

logger = logging.getLogger(__name__)

RECORDS_PER_SUBDIRECTORY = 1000
BATCHES_PER_SUBDIRECTORY = 100


def extract_records(data: Any) -> list[Any]:
    """Pull the record collection out of a parsed JSON document.

    A bare list is the collection. For an object, the largest list-valued
    property wins; an object without any list property is a single record.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        largest: str | None = None
        for key, value in data.items():
            if isinstance(value, list) and (largest is None or len(value) > len(data[largest])):
                largest = key
        if largest is not None:
            logger.info("Using collection '%s' (%d records)", largest, len(data[largest]))
            return data[largest]
        return [data]
    return []


def validate_primary_keys(records: list[Any], primary_key_field: str) -> list[str]:
    """Check the primary key invariants and return the record ids in input order."""
    if not records:
        raise EmptyInputError()
    seen: set[str] = set()
    record_ids: list[str] = []
    for position, record in enumerate(records):
        if not isinstance(record, dict) or primary_key_field not in record:
            raise MissingPrimaryKeyError(primary_key_field, position)
        raw = record[primary_key_field]
        record_id = to_record_id(raw)
        if record_id in seen:
            raise DuplicatePrimaryKeyError(record_id, raw)
        seen.add(record_id)
        record_ids.append(record_id)
    return record_ids


def _dump(obj: Any) -> bytes:
    return json.dumps(obj, indent=2, ensure_ascii=False).encode("utf-8")


@dataclass
class SplitResult:
    total_records: int
    total_files: int
    total_size: int
    metadata: SplitMetadata
    record_map: dict[str, str] = field(default_factory=dict)  # record id -> shard filename


class ShardBuilder:
    """Partition records into individual or batched shard files."""

    def __init__(
        self,
        output_dir: str,
        *,
        primary_key_field: str = "id",
        batch_size: int = 1,
        use_subdirectories: bool = True,
    ) -> None:
        self.output_dir = output_dir
        self.primary_key_field = primary_key_field
        self.batch_size = batch_size
        self.use_subdirectories = use_subdirectories

    @property
    def batch_mode(self) -> bool:
        return self.batch_size > 1

    def split_records(self, records: list[Any]) -> SplitResult:
        record_ids = validate_primary_keys(records, self.primary_key_field)
        logger.info("Splitting %d records into files...", len(records))

        data_dir = os.path.join(self.output_dir, DATA_DIR)
        os.makedirs(data_dir, exist_ok=True)

        if self.batch_mode:
            files = self._write_batches(records, record_ids, data_dir)
        else:
            files = self._write_individual(records, record_ids, data_dir)

        total_size = sum(f.size for f in files)
        metadata = SplitMetadata(
            total_records=len(records),
            total_files=len(files),
            avg_file_size=total_size / len(files),
            primary_key_field=self.primary_key_field,
            batch_size=self.batch_size if self.batch_mode else None,
            use_subdirectories=self.use_subdirectories,
            created_at=datetime.now(timezone.utc).isoformat(),
            files=files,
        )
        with open(os.path.join(self.output_dir, SPLIT_METADATA_FILE), "wb") as fh:
            fh.write(_dump(metadata.to_json_dict(drop_none=True)))

        record_map = {rid: f.filename for f in files for rid in f.record_ids}
        logger.info(
            "Split %d records into %d files (%.2f MB total, %.2f KB average)",
            len(records),
            len(files),
            total_size / 1024 / 1024,
            metadata.avg_file_size / 1024,
        )
        return SplitResult(
            total_records=len(records),
            total_files=len(files),
            total_size=total_size,
            metadata=metadata,
            record_map=record_map,
        )

    def _write_individual(
        self, records: list[Any], record_ids: list[str], data_dir: str
    ) -> list[FileInfo]:
        files: list[FileInfo] = []
        for i, (record, record_id) in enumerate(zip(records, record_ids)):
            subdirectory = self.subdirectory_for_record(i) if self.use_subdirectories else None
            filename = f"{i:06d}.json"
            files.append(self._write_shard(data_dir, subdirectory, filename, record, [record_id]))
            if i % 1000 == 0:
                logger.debug("Processed %d/%d records", i + 1, len(records))
        return files

    def _write_batches(
        self, records: list[Any], record_ids: list[str], data_dir: str
    ) -> list[FileInfo]:
        files: list[FileInfo] = []
        for batch_index, start in enumerate(range(0, len(records), self.batch_size)):
            end = start + self.batch_size
            subdirectory = (
                self.subdirectory_for_batch(batch_index) if self.use_subdirectories else None
            )
            filename = f"batch_{batch_index:04d}.json"
            files.append(
                self._write_shard(
                    data_dir, subdirectory, filename, records[start:end], record_ids[start:end]
                )
            )
        return files

    def _write_shard(
        self,
        data_dir: str,
        subdirectory: str | None,
        filename: str,
        content: Any,
        record_ids: list[str],
    ) -> FileInfo:
        target_dir = os.path.join(data_dir, subdirectory) if subdirectory else data_dir
        os.makedirs(target_dir, exist_ok=True)
        body = _dump(content)
        with open(os.path.join(target_dir, filename), "wb") as fh:
            fh.write(body)
        return FileInfo(
            filename=f"{subdirectory}/{filename}" if subdirectory else filename,
            record_count=len(record_ids),
            size=len(body),
            record_ids=record_ids,
            subdirectory=subdirectory,
        )

    @staticmethod
    def subdirectory_for_record(index: int) -> str:
        return f"{index // RECORDS_PER_SUBDIRECTORY:03d}"

    @staticmethod
    def subdirectory_for_batch(batch_index: int) -> str:
        return f"batches_{batch_index // BATCHES_PER_SUBDIRECTORY:03d}"
