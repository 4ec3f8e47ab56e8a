"""Fluent query builder and the ``Database`` client facade."""

from __future__ import annotations

from typing import Any

from shardbase.config import ShardbaseConfig
from shardbase.engine import QueryEngine, QueryResult
from shardbase.filters import QueryFilter, QueryOperator, QueryOptions, QuerySort
from shardbase.storage import StorageLoader, open_loader


class FieldQuery:
    """Pending predicate on one field; each operator method returns the parent builder.

    Usage: ``db.query().where("price").gt(100).where("category").eq("books").exec()``
    """

    def __init__(self, builder: QueryBuilder, field_path: str) -> None:
        self._builder = builder
        self._field_path = field_path

    def _add(self, operator: QueryOperator, value: Any) -> QueryBuilder:
        return self._builder.where_raw(self._field_path, operator, value)

    def equals(self, value: Any) -> QueryBuilder:
        return self._add(QueryOperator.EQUALS, value)

    def not_equals(self, value: Any) -> QueryBuilder:
        return self._add(QueryOperator.NOT_EQUALS, value)

    def greater_than(self, value: Any) -> QueryBuilder:
        return self._add(QueryOperator.GREATER_THAN, value)

    def less_than(self, value: Any) -> QueryBuilder:
        return self._add(QueryOperator.LESS_THAN, value)

    def greater_than_or_equal(self, value: Any) -> QueryBuilder:
        return self._add(QueryOperator.GREATER_THAN_OR_EQUAL, value)

    def less_than_or_equal(self, value: Any) -> QueryBuilder:
        return self._add(QueryOperator.LESS_THAN_OR_EQUAL, value)

    def in_(self, values: list[Any]) -> QueryBuilder:
        return self._add(QueryOperator.IN, list(values))

    def contains(self, value: Any) -> QueryBuilder:
        return self._add(QueryOperator.CONTAINS, value)

    def startswith(self, prefix: str) -> QueryBuilder:
        return self._add(QueryOperator.STARTS_WITH, prefix)

    def endswith(self, suffix: str) -> QueryBuilder:
        return self._add(QueryOperator.ENDS_WITH, suffix)

    eq = equals
    ne = not_equals
    gt = greater_than
    lt = less_than
    ge = greater_than_or_equal
    le = less_than_or_equal


class QueryBuilder:
    """Accumulates filters, sort keys and pagination, then runs them on the engine."""

    def __init__(self, engine: QueryEngine) -> None:
        self._engine = engine
        self._filters: list[QueryFilter] = []
        self._sort: list[QuerySort] = []
        self._limit: int | None = None
        self._offset: int = 0

    def where(self, field_path: str) -> FieldQuery:
        return FieldQuery(self, field_path)

    def where_raw(
        self, field_path: str, operator: QueryOperator | str, value: Any = None
    ) -> QueryBuilder:
        self._filters.append(QueryFilter(field_path, operator, value))
        return self

    def where_equals(self, field_path: str, value: Any) -> QueryBuilder:
        return self.where_raw(field_path, QueryOperator.EQUALS, value)

    def sort(self, field_path: str, direction: str = "asc") -> QueryBuilder:
        self._sort.append(QuerySort(field_path, direction))
        return self

    def limit(self, n: int) -> QueryBuilder:
        self._limit = n
        return self

    def offset(self, n: int) -> QueryBuilder:
        self._offset = n
        return self

    def filters(self) -> list[QueryFilter]:
        return list(self._filters)

    def options(self) -> QueryOptions:
        return QueryOptions(limit=self._limit, offset=self._offset, sort=list(self._sort))

    def exec(self) -> QueryResult:
        return self._engine.execute_query(self.filters(), self.options())

    def collect(self) -> list[dict[str, Any]]:
        return self.exec().records

    def first(self) -> dict[str, Any] | None:
        self._limit = 1
        records = self.collect()
        return records[0] if records else None


class Database:
    """Read-only client over a built database at a path or URI."""

    def __init__(
        self,
        location: str | StorageLoader,
        config: ShardbaseConfig | None = None,
    ) -> None:
        self._config = config or ShardbaseConfig()
        if isinstance(location, str):
            self._loader = open_loader(location, config=self._config)
        else:
            self._loader = location
        self._engine = QueryEngine(self._loader, self._config)

    @property
    def engine(self) -> QueryEngine:
        return self._engine

    @property
    def location(self) -> str:
        return self._loader.location

    def init(self) -> Database:
        self._engine.init()
        return self

    def get(self, record_id: Any) -> dict[str, Any] | None:
        return self._engine.get_record(record_id)

    def query(self) -> QueryBuilder:
        return QueryBuilder(self._engine)

    def count(self) -> int:
        return self._engine.count()

    def get_fields(self) -> list[str]:
        return self._engine.get_fields()

    def get_indexed_fields(self) -> list[str]:
        return self._engine.get_indexed_fields()

    def get_stats(self) -> dict[str, Any]:
        metadata = self._engine.get_metadata()
        split = self._engine.get_split_metadata()
        return {
            "location": self.location,
            "totalRecords": metadata.total_records,
            "totalFields": len(metadata.fields),
            "indexedFields": len(metadata.indexes),
            "dataFiles": split.total_files,
            "batchSize": split.batch_size,
            "cache": self._engine.cache_info(),
        }

    def close(self) -> None:
        self._engine.close()

    def __enter__(self) -> Database:
        return self.init()

    def __exit__(self, *exc: object) -> None:
        self.close()
