"""Filter predicates, nested value lookup and ordering for shardbase queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key
from typing import Any

from shardbase.errors import InvalidQueryError


class _Missing:
    """Sentinel for a path that is absent from a record."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class QueryOperator(str, Enum):
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    IN = "IN"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"


_OPERATOR_ALIASES = {
    "=": QueryOperator.EQUALS,
    "==": QueryOperator.EQUALS,
    "!=": QueryOperator.NOT_EQUALS,
    ">": QueryOperator.GREATER_THAN,
    "<": QueryOperator.LESS_THAN,
    ">=": QueryOperator.GREATER_THAN_OR_EQUAL,
    "<=": QueryOperator.LESS_THAN_OR_EQUAL,
}


def parse_operator(op: QueryOperator | str) -> QueryOperator:
    """Accept an operator enum, its name, or a symbolic alias such as ``>=``."""
    if isinstance(op, QueryOperator):
        return op
    if op in _OPERATOR_ALIASES:
        return _OPERATOR_ALIASES[op]
    try:
        return QueryOperator(op.upper())
    except ValueError:
        raise InvalidQueryError(f"Unknown query operator: {op!r}") from None


@dataclass
class QueryFilter:
    """A single ``field <operator> value`` predicate."""

    field: str
    operator: QueryOperator
    value: Any = None

    def __post_init__(self) -> None:
        self.operator = parse_operator(self.operator)


@dataclass
class QuerySort:
    field: str
    direction: str = "asc"

    def __post_init__(self) -> None:
        self.direction = self.direction.lower()
        if self.direction not in ("asc", "desc"):
            raise InvalidQueryError(
                f"Sort direction must be 'asc' or 'desc', got {self.direction!r}"
            )


@dataclass
class QueryOptions:
    limit: int | None = None
    offset: int = 0
    sort: list[QuerySort] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise InvalidQueryError(f"limit must be non-negative, got {self.limit}")
        if self.offset < 0:
            raise InvalidQueryError(f"offset must be non-negative, got {self.offset}")


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def resolve_nested_path(data: Any, dotted_path: str) -> Any:
    """Resolve a dotted path against a record.

    A list met part-way through the path is searched element-wise: the rest
    of the path is resolved against each object element and the results are
    flattened into one list. Returns ``MISSING`` when nothing is found.
    """
    return _resolve(data, dotted_path.split("."))


def _resolve(current: Any, segments: list[str]) -> Any:
    for pos, segment in enumerate(segments):
        if isinstance(current, list):
            collected: list[Any] = []
            rest = segments[pos:]
            for item in current:
                if not isinstance(item, dict):
                    continue
                found = _resolve(item, rest)
                if found is MISSING:
                    continue
                if isinstance(found, list):
                    collected.extend(found)
                else:
                    collected.append(found)
            return collected if collected else MISSING
        if not isinstance(current, dict) or segment not in current:
            return MISSING
        current = current[segment]
    return current


def strict_equal(a: Any, b: Any) -> bool:
    """Equality that keeps booleans apart from numbers."""
    if a is MISSING or b is MISSING:
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(strict_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(strict_equal(a[k], b[k]) for k in a)
    if is_number(a) and is_number(b):
        return a == b
    return type(a) is type(b) and a == b


def _strict_in(value: Any, candidates: Any) -> bool:
    if not isinstance(candidates, list):
        return False
    return any(strict_equal(value, c) for c in candidates)


def _orderable(a: Any, b: Any) -> bool:
    return (is_number(a) and is_number(b)) or (isinstance(a, str) and isinstance(b, str))


def compare_value(value: Any, op: QueryOperator, rhs: Any) -> bool:
    """Evaluate ``value <op> rhs`` with the query language semantics."""
    if op is QueryOperator.EQUALS:
        return strict_equal(value, rhs)
    elif op is QueryOperator.NOT_EQUALS:
        return not strict_equal(value, rhs)
    elif op is QueryOperator.GREATER_THAN:
        return _orderable(value, rhs) and value > rhs
    elif op is QueryOperator.LESS_THAN:
        return _orderable(value, rhs) and value < rhs
    elif op is QueryOperator.GREATER_THAN_OR_EQUAL:
        return _orderable(value, rhs) and value >= rhs
    elif op is QueryOperator.LESS_THAN_OR_EQUAL:
        return _orderable(value, rhs) and value <= rhs
    elif op is QueryOperator.IN:
        return _strict_in(value, rhs)
    elif op is QueryOperator.CONTAINS:
        if isinstance(value, list):
            return _strict_in(rhs, value)
        return isinstance(value, str) and isinstance(rhs, str) and rhs in value
    elif op is QueryOperator.STARTS_WITH:
        return isinstance(value, str) and isinstance(rhs, str) and value.startswith(rhs)
    elif op is QueryOperator.ENDS_WITH:
        return isinstance(value, str) and isinstance(rhs, str) and value.endswith(rhs)
    return False


def matches_filter(record: dict[str, Any], flt: QueryFilter) -> bool:
    """Evaluate one predicate directly against a loaded record."""
    return compare_value(resolve_nested_path(record, flt.field), flt.operator, flt.value)


def matches_filters(record: dict[str, Any], filters: list[QueryFilter]) -> bool:
    return all(matches_filter(record, f) for f in filters)


# --- Ordering ---


def _kind_rank(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if is_number(value):
        return 1
    if isinstance(value, str):
        return 2
    return 3


def _compare_for_sort(a: Any, b: Any) -> int:
    ra, rb = _kind_rank(a), _kind_rank(b)
    if ra != rb:
        return -1 if ra < rb else 1
    if ra == 3:
        return 0
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def _is_absent(value: Any) -> bool:
    return value is None or value is MISSING


def sort_records(records: list[dict[str, Any]], sort: list[QuerySort]) -> None:
    """Stable in-place multi-key sort; null and missing values always sort last."""
    if not sort:
        return

    def compare(a: dict[str, Any], b: dict[str, Any]) -> int:
        for key in sort:
            av = resolve_nested_path(a, key.field)
            bv = resolve_nested_path(b, key.field)
            a_absent, b_absent = _is_absent(av), _is_absent(bv)
            if a_absent or b_absent:
                if a_absent and b_absent:
                    continue
                return 1 if a_absent else -1
            result = _compare_for_sort(av, bv)
            if result != 0:
                return -result if key.direction == "desc" else result
        return 0

    records.sort(key=cmp_to_key(compare))


def as_filters(filters: list[QueryFilter | dict[str, Any]] | None) -> list[QueryFilter]:
    """Normalize filters given as ``QueryFilter`` or plain dicts."""
    result: list[QueryFilter] = []
    for f in filters or []:
        if isinstance(f, QueryFilter):
            result.append(f)
        else:
            result.append(QueryFilter(f["field"], f["operator"], f.get("value")))
    return result


def as_sort(sort: list[QuerySort | dict[str, Any]] | None) -> list[QuerySort]:
    result: list[QuerySort] = []
    for s in sort or []:
        if isinstance(s, QuerySort):
            result.append(s)
        else:
            result.append(QuerySort(s["field"], s.get("direction", "asc")))
    return result
