"""shardbase query: run a filtered, sorted, paginated query."""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from shardbase.cli import _exitcodes as ec
from shardbase.cli._filters import parse_cli_filters, parse_cli_sort
from shardbase.cli._output import print_error, print_json, print_table
from shardbase.engine import QueryResult
from shardbase.errors import InvalidQueryError, ShardbaseError
from shardbase.filters import MISSING, QueryOptions, resolve_nested_path
from shardbase.query import Database


def query_cmd(
    location: str = typer.Argument(..., help="Database directory or http(s)/s3 URI"),
    filter_args: Optional[list[str]] = typer.Option(
        None, "--filter", "-f", help="'PATH OP VALUE_JSON' (repeatable)"
    ),
    sort_args: Optional[list[str]] = typer.Option(
        None, "--sort", "-s", help="FIELD[:asc|desc] (repeatable, first has priority)"
    ),
    limit: Optional[int] = typer.Option(None, "--limit", help="Max results"),
    offset: int = typer.Option(0, "--offset", help="Skip first N results"),
    fields: Optional[str] = typer.Option(
        None, "--fields", help="Comma-separated field paths to show as a table"
    ),
) -> None:
    """Query records of a built database."""
    from shardbase.cli import state

    try:
        filters = parse_cli_filters(filter_args)
        options = QueryOptions(limit=limit, offset=offset, sort=parse_cli_sort(sort_args))
    except InvalidQueryError as e:
        print_error(str(e))
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        db = Database(location).init()
    except ShardbaseError as e:
        print_error(f"Cannot open database: {e}")
        raise typer.Exit(ec.DATABASE_ERROR)

    try:
        result = db.engine.execute_query(filters, options)
    except ShardbaseError as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        db.close()

    if state.json_output:
        print_json(
            {
                "records": result.records,
                "totalCount": result.total_count,
                "hasMore": result.has_more,
                "executionTime": round(result.execution_time, 3),
            },
        )
        return

    _print_result(result, fields)


def _print_result(result: QueryResult, fields: str | None) -> None:
    if fields:
        columns = [f.strip() for f in fields.split(",") if f.strip()]
        rows: list[list[Any]] = []
        for record in result.records:
            values = [resolve_nested_path(record, col) for col in columns]
            rows.append([None if v is MISSING else v for v in values])
        print_table(columns, rows)
    else:
        for record in result.records:
            print(json.dumps(record, ensure_ascii=False))
    more = ", more available" if result.has_more else ""
    print(f"({len(result.records)} of {result.total_count} records{more})")
