"""CLI filter and sort token parsers."""

from __future__ import annotations

import json
from typing import Any

from shardbase.errors import InvalidQueryError
from shardbase.filters import QueryFilter, QueryOperator, QuerySort, parse_operator

# Map CLI operator tokens to query operators
_OP_MAP: dict[str, QueryOperator] = {
    "eq": QueryOperator.EQUALS,
    "ne": QueryOperator.NOT_EQUALS,
    "gt": QueryOperator.GREATER_THAN,
    "gte": QueryOperator.GREATER_THAN_OR_EQUAL,
    "lt": QueryOperator.LESS_THAN,
    "lte": QueryOperator.LESS_THAN_OR_EQUAL,
    "in": QueryOperator.IN,
    "contains": QueryOperator.CONTAINS,
    "startswith": QueryOperator.STARTS_WITH,
    "endswith": QueryOperator.ENDS_WITH,
}


def _parse_value(raw: str) -> Any:
    # Bare words that are not JSON are taken as strings.
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def parse_cli_filter(arg: str) -> QueryFilter:
    """Parse one ``PATH OP VALUE_JSON`` filter argument."""
    parts = arg.split(None, 2)
    if len(parts) != 3:
        raise InvalidQueryError(f"Invalid filter (expected 'PATH OP VALUE_JSON'): {arg}")
    path, op_token, raw_value = parts
    op = _OP_MAP.get(op_token.lower())
    if op is None:
        try:
            op = parse_operator(op_token)
        except InvalidQueryError:
            raise InvalidQueryError(
                f"Unknown filter operator '{op_token}'. "
                f"Valid operators: {', '.join(sorted(_OP_MAP))}"
            ) from None
    return QueryFilter(path, op, _parse_value(raw_value))


def parse_cli_filters(args: list[str] | None) -> list[QueryFilter]:
    """Parse repeated filter arguments; filters are AND-combined by the engine."""
    return [parse_cli_filter(a) for a in args or []]


def parse_cli_sort(args: list[str] | None) -> list[QuerySort]:
    """Parse ``FIELD`` or ``FIELD:asc|desc`` sort keys in priority order."""
    result: list[QuerySort] = []
    for arg in args or []:
        field_path, sep, direction = arg.rpartition(":")
        if not sep:
            result.append(QuerySort(arg))
        else:
            result.append(QuerySort(field_path, direction))
    return result
