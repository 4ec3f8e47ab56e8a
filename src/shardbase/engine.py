"""Query engine: resolves filters against sharded storage using indexes or full scans."""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

from shardbase.config import ShardbaseConfig
from shardbase.errors import DatabaseUnavailableError, ShardbaseError
from shardbase.filters import (
    QueryFilter,
    QueryOperator,
    QueryOptions,
    as_filters,
    as_sort,
    compare_value,
    is_scalar,
    matches_filter,
    matches_filters,
    sort_records,
    strict_equal,
)
from shardbase.models import (
    DatabaseMetadata,
    FieldIndex,
    FileInfo,
    IndexDescriptor,
    SplitMetadata,
    to_record_id,
)
from shardbase.storage import StorageLoader

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    records: list[dict[str, Any]] = field(default_factory=list)
    total_count: int = 0
    has_more: bool = False
    execution_time: float = 0.0  # milliseconds


def _entry_matches(entry_value: Any, op: QueryOperator, value: Any) -> bool:
    """Evaluate an operator against one stored index value.

    Entry values are the scalars observed at a path (array elements
    included), so CONTAINS also accepts an exact element match.
    """
    if op is QueryOperator.CONTAINS:
        if strict_equal(entry_value, value):
            return True
        return isinstance(entry_value, str) and isinstance(value, str) and value in entry_value
    return compare_value(entry_value, op, value)


class QueryEngine:
    """Environment-agnostic engine; all I/O goes through a ``StorageLoader``."""

    def __init__(self, loader: StorageLoader, config: ShardbaseConfig | None = None) -> None:
        self._loader = loader
        self._config = config or ShardbaseConfig()
        self._metadata: DatabaseMetadata | None = None
        self._split_metadata: SplitMetadata | None = None
        self._schema: dict[str, Any] | None = None
        self._file_by_id: dict[str, FileInfo] = {}
        self._all_ids: list[str] | None = None
        self._positions: dict[str, int] = {}
        self._index_cache: dict[str, FieldIndex | None] = {}
        self._record_cache: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._lock = threading.Lock()
        self._initialized = False

    # --- Lifecycle ---

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def loader(self) -> StorageLoader:
        return self._loader

    @property
    def schema(self) -> dict[str, Any] | None:
        return self._schema

    def init(self) -> None:
        """Load database metadata, the shard manifest and the primary index; idempotent."""
        if self._initialized:
            return
        try:
            metadata = self._loader.load_metadata()
            split_metadata = self._loader.load_split_metadata()
            primary = self._loader.load_primary_index()
        except ShardbaseError as e:
            raise DatabaseUnavailableError(self._loader.location, str(e)) from e

        try:
            self._schema = self._loader.load_schema()
        except ShardbaseError as e:
            logger.warning("Could not load schema for validation: %s", e)
            self._schema = None

        file_by_id: dict[str, FileInfo] = {}
        for file_info in split_metadata.files:
            for record_id in file_info.record_ids:
                file_by_id[record_id] = file_info
        all_ids = [entry.id for entry in primary.entries]

        with self._lock:
            self._metadata = metadata
            self._split_metadata = split_metadata
            self._file_by_id = file_by_id
            self._all_ids = all_ids
            self._positions = {rid: pos for pos, rid in enumerate(all_ids)}
            self._initialized = True
        logger.debug(
            "Opened database at %s (%d records, %d indexes)",
            self._loader.location,
            metadata.total_records,
            len(metadata.indexes),
        )

    def close(self) -> None:
        self._loader.close()

    # --- Public reads ---

    def execute_query(
        self,
        filters: list[QueryFilter | dict[str, Any]] | None = None,
        options: QueryOptions | dict[str, Any] | None = None,
    ) -> QueryResult:
        """Run a filtered, sorted, paginated query."""
        start = time.perf_counter()
        self.init()
        flts = as_filters(filters)
        opts = self._as_options(options)

        candidates: set[str] | None = None
        scanned: set[int] = set()
        for pos, flt in enumerate(flts):
            ids, by_scan = self._resolve_filter(flt)
            if by_scan:
                scanned.add(pos)
            candidates = ids if candidates is None else candidates & ids
            if not candidates:
                break

        if candidates is None:
            candidates = set(self._all_record_ids())

        # Filters answered by a full scan were already evaluated on the records.
        recheck = [f for pos, f in enumerate(flts) if pos not in scanned]
        positions = self._record_positions()
        unknown = len(positions)
        ordered = sorted(candidates, key=lambda rid: (positions.get(rid, unknown), rid))

        records: list[dict[str, Any]] = []
        for record_id in ordered:
            record = self._load_record(record_id)
            if record is None:
                continue
            if matches_filters(record, recheck):
                records.append(record)

        sort_records(records, opts.sort)

        total = len(records)
        if opts.limit is None:
            page = records[opts.offset :]
        else:
            page = records[opts.offset : opts.offset + opts.limit]
        has_more = opts.limit is not None and opts.offset + opts.limit < total

        return QueryResult(
            records=[copy.deepcopy(r) for r in page],
            total_count=total,
            has_more=has_more,
            execution_time=(time.perf_counter() - start) * 1000,
        )

    def get_record(self, record_id: Any) -> dict[str, Any] | None:
        """Return one record by id, or None when it cannot be found."""
        self.init()
        rid = record_id if isinstance(record_id, str) else to_record_id(record_id)
        record = self._load_record(rid)
        return copy.deepcopy(record) if record is not None else None

    def get_all_records(self, limit: int | None = None) -> list[dict[str, Any]]:
        return self.execute_query([], QueryOptions(limit=limit)).records

    def get_metadata(self) -> DatabaseMetadata:
        self.init()
        assert self._metadata is not None
        return self._metadata

    def get_split_metadata(self) -> SplitMetadata:
        self.init()
        assert self._split_metadata is not None
        return self._split_metadata

    def count(self) -> int:
        return self.get_metadata().total_records

    def get_fields(self) -> list[str]:
        return list(self.get_metadata().fields)

    def get_indexed_fields(self) -> list[str]:
        return [desc.field for desc in self.get_metadata().indexes]

    def cache_info(self) -> dict[str, int]:
        with self._lock:
            return {
                "indexes": sum(1 for v in self._index_cache.values() if v is not None),
                "records": len(self._record_cache),
            }

    # --- Filter resolution ---

    def _as_options(self, options: QueryOptions | dict[str, Any] | None) -> QueryOptions:
        if options is None:
            return QueryOptions()
        if isinstance(options, QueryOptions):
            return options
        return QueryOptions(
            limit=options.get("limit"),
            offset=options.get("offset") or 0,
            sort=as_sort(options.get("sort")),
        )

    def _resolve_filter(self, flt: QueryFilter) -> tuple[set[str], bool]:
        """Return (candidate ids, resolved_by_scan) for one filter."""
        # Metadata is authoritative for which index files belong to this build.
        descriptor = self.get_metadata().descriptor(flt.field)
        index = self._get_index(flt.field) if descriptor is not None else None
        if index is not None:
            ids = self._ids_from_index(flt, index, descriptor)
            if ids is not None:
                return ids, False
            logger.debug(
                "Index for %s cannot answer %s %r, falling back to scan",
                flt.field,
                flt.operator.value,
                flt.value,
            )
        else:
            logger.debug("No index for field %s, falling back to scan", flt.field)
        return self._scan_records(flt), True

    def _ids_from_index(
        self,
        flt: QueryFilter,
        index: FieldIndex,
        descriptor: IndexDescriptor,
    ) -> set[str] | None:
        """Candidate ids from index entries: always a superset of the true matches.

        Returns None when the operator/value pair cannot be answered from
        scalar entries and the caller must scan instead.
        """
        op, value = flt.operator, flt.value
        if op in (QueryOperator.EQUALS, QueryOperator.NOT_EQUALS, QueryOperator.CONTAINS):
            if not is_scalar(value):
                return None
        elif op is QueryOperator.IN:
            if not isinstance(value, list):
                return set()
            if not all(is_scalar(v) for v in value):
                return None

        if op is QueryOperator.NOT_EQUALS:
            all_ids = set(self._all_record_ids())
            # Only a primitive path guarantees that an entry's records hold exactly that value.
            if descriptor.type != "primitive":
                return all_ids
            for entry in index.entries:
                if strict_equal(entry.value, value):
                    all_ids.difference_update(entry.record_ids)
            return all_ids

        result: set[str] = set()
        for entry in index.entries:
            if _entry_matches(entry.value, op, value):
                result.update(entry.record_ids)
        return result

    def _scan_records(self, flt: QueryFilter) -> set[str]:
        result: set[str] = set()
        for record_id in self._all_record_ids():
            record = self._load_record(record_id)
            if record is not None and matches_filter(record, flt):
                result.add(record_id)
        return result

    # --- Cached loading ---

    def _get_index(self, field_path: str) -> FieldIndex | None:
        with self._lock:
            if field_path in self._index_cache:
                return self._index_cache[field_path]
        try:
            index = self._loader.load_index(field_path)
        except ShardbaseError as e:
            logger.warning("Failed to load index for field %s: %s", field_path, e)
            return None
        if index is not None and index.field != field_path:
            logger.warning(
                "Index file for %s describes field %s; ignoring it", field_path, index.field
            )
            index = None
        with self._lock:
            self._index_cache[field_path] = index
        return index

    def _load_record(self, record_id: str) -> dict[str, Any] | None:
        with self._lock:
            cached = self._record_cache.get(record_id)
            if cached is not None:
                if self._config.record_cache_size is not None:
                    self._record_cache.move_to_end(record_id)
                return cached

        file_info = self._file_by_id.get(record_id)
        if file_info is None:
            return None
        assert self._split_metadata is not None
        try:
            record = self._loader.load_record(record_id, file_info, self._split_metadata)
        except (ShardbaseError, OSError) as e:
            logger.error("Failed to load record %s: %s", record_id, e)
            return None
        if record is None:
            return None

        with self._lock:
            self._record_cache[record_id] = record
            limit = self._config.record_cache_size
            if limit is not None:
                while len(self._record_cache) > limit:
                    self._record_cache.popitem(last=False)
        return record

    def _all_record_ids(self) -> list[str]:
        assert self._all_ids is not None
        return self._all_ids

    def _record_positions(self) -> dict[str, int]:
        return self._positions
