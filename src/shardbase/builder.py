"""Build orchestration plus validation and inspection of built databases."""

from __future__ import annotations

import json
import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shardbase.config import ShardbaseConfig
from shardbase.errors import ShardbaseError
from shardbase.indexes import IndexBuilder
from shardbase.models import (
    BUILD_MANIFEST_FILE,
    DATA_DIR,
    INDEXES_DIR,
    BuildManifest,
    DatabaseMetadata,
    index_path,
    primary_index_path,
    shard_path,
)
from shardbase.shards import ShardBuilder, extract_records, validate_primary_keys
from shardbase.storage import JsonLoader, open_loader

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    total_records: int
    total_files: int
    total_indexes: int
    output_size: int
    build_time: float  # milliseconds
    output_dir: str
    metadata: DatabaseMetadata
    summary: dict[str, Any] = field(default_factory=dict)


def _directory_size(path: str) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            total += os.path.getsize(os.path.join(root, name))
    return total


class DatabaseBuilder:
    """Turn a JSON document collection into a sharded, indexed static database."""

    def __init__(self, output_dir: str, config: ShardbaseConfig | None = None) -> None:
        self.output_dir = output_dir
        self.config = config or ShardbaseConfig()

    def build(self, input_path: str) -> BuildResult:
        """Read ``input_path`` and build the database into ``output_dir``."""
        logger.info("Building static database from %s into %s", input_path, self.output_dir)
        with open(input_path, encoding="utf-8") as fh:
            data = json.load(fh)
        return self.build_records(extract_records(data), input_name=os.path.basename(input_path))

    def build_records(self, records: list[Any], *, input_name: str = "<memory>") -> BuildResult:
        start = time.perf_counter()
        cfg = self.config
        logger.info("Found %d records to process", len(records))
        # Key errors must leave a previous build untouched.
        validate_primary_keys(records, cfg.primary_key_field)

        os.makedirs(self.output_dir, exist_ok=True)
        # A rebuild is a full regeneration; drop shards and indexes of the previous build.
        for sub in (DATA_DIR, INDEXES_DIR):
            shutil.rmtree(os.path.join(self.output_dir, sub), ignore_errors=True)

        splitter = ShardBuilder(
            self.output_dir,
            primary_key_field=cfg.primary_key_field,
            batch_size=cfg.batch_size,
            use_subdirectories=cfg.use_subdirectories,
        )
        split = splitter.split_records(records)

        indexer = IndexBuilder(
            self.output_dir,
            index_fields=cfg.index_fields,
            max_index_values=cfg.max_index_values,
        )
        metadata = indexer.generate_indexes(
            records, cfg.primary_key_field, record_map=split.record_map
        )

        index_files = len(metadata.indexes) + 1
        output_size = _directory_size(self.output_dir)
        build_time = (time.perf_counter() - start) * 1000
        summary = {
            "records": len(records),
            "dataFiles": split.total_files,
            "indexFiles": index_files,
            "totalSizeMB": round(output_size / 1024 / 1024, 2),
        }

        manifest = BuildManifest(
            created_at=datetime.now(timezone.utc).isoformat(),
            build_time=round(build_time, 3),
            input_file=input_name,
            options={
                "primaryKeyField": cfg.primary_key_field,
                "batchSize": cfg.batch_size,
                "useSubdirectories": cfg.use_subdirectories,
                "indexFields": cfg.index_fields,
                "maxIndexValues": cfg.max_index_values,
            },
            summary=summary,
        )
        with open(os.path.join(self.output_dir, BUILD_MANIFEST_FILE), "w", encoding="utf-8") as fh:
            json.dump(manifest.to_json_dict(), fh, indent=2)

        logger.info(
            "Build completed in %.0fms: %d records, %d data files, %d index files, %.2f MB",
            build_time,
            len(records),
            split.total_files,
            index_files,
            summary["totalSizeMB"],
        )
        return BuildResult(
            total_records=len(records),
            total_files=split.total_files,
            total_indexes=index_files,
            output_size=output_size,
            build_time=build_time,
            output_dir=self.output_dir,
            metadata=metadata,
            summary=summary,
        )


@dataclass
class ValidationReport:
    location: str
    problems: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.problems


def _open_json_loader(location: str, config: ShardbaseConfig | None) -> JsonLoader:
    loader = open_loader(location, config=config)
    assert isinstance(loader, JsonLoader)
    return loader


def validate_database(location: str, config: ShardbaseConfig | None = None) -> ValidationReport:
    """Check that a built database is complete and internally consistent."""
    loader = _open_json_loader(location, config)
    report = ValidationReport(location=loader.location)
    try:
        try:
            metadata = loader.load_metadata()
            split = loader.load_split_metadata()
            primary = loader.load_primary_index()
        except ShardbaseError as e:
            report.problems.append(str(e))
            return report

        if metadata.total_records != split.total_records:
            report.problems.append(
                f"Record count mismatch: metadata={metadata.total_records}, "
                f"split={split.total_records}"
            )
        manifest_ids: set[str] = set()
        manifest_count = 0
        for file_info in split.files:
            manifest_count += len(file_info.record_ids)
            manifest_ids.update(file_info.record_ids)
            if not loader.has_file(shard_path(file_info.filename)):
                report.problems.append(f"Missing data file: {file_info.filename}")
        if manifest_count != split.total_records:
            report.problems.append(
                f"Shard manifest lists {manifest_count} records, expected {split.total_records}"
            )
        primary_ids = {entry.id for entry in primary.entries}
        if primary_ids != manifest_ids:
            report.problems.append(
                f"Primary index covers {len(primary_ids)} ids but the shard manifest "
                f"lists {len(manifest_ids)}"
            )
        for desc in metadata.indexes:
            if not loader.has_file(index_path(desc.field)):
                report.problems.append(f"Missing index file for field: {desc.field}")
        if not loader.has_file(primary_index_path()):
            report.problems.append("Missing primary index")

        report.stats = {
            "records": metadata.total_records,
            "indexes": len(metadata.indexes),
            "dataFiles": split.total_files,
        }
        return report
    finally:
        loader.close()


def database_info(location: str, config: ShardbaseConfig | None = None) -> dict[str, Any]:
    """Summarize a built database for display."""
    loader = _open_json_loader(location, config)
    try:
        metadata = loader.load_metadata()
        split = loader.load_split_metadata()
        build = loader.load_build_manifest()
    finally:
        loader.close()

    return {
        "database": {
            "totalRecords": metadata.total_records,
            "totalFields": len(metadata.fields),
            "totalIndexes": len(metadata.indexes),
            "primaryKeyField": metadata.primary_key_field or split.primary_key_field,
            "createdAt": metadata.created_at,
            "version": metadata.version,
        },
        "data": {
            "totalFiles": split.total_files,
            "avgFileSize": round(split.avg_file_size),
            "useSubdirectories": split.use_subdirectories,
            "batchSize": split.batch_size,
        },
        "build": build.to_json_dict() if build is not None else None,
        "indexes": [
            {
                "field": desc.field,
                "type": desc.type,
                "uniqueValues": desc.unique_values,
                "coverage": f"{round(desc.coverage * 100)}%",
            }
            for desc in metadata.indexes
        ],
        "skipped": [s.to_json_dict() for s in metadata.skipped],
    }
