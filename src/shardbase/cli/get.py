"""shardbase get: fetch one record by primary key."""

from __future__ import annotations

import typer

from shardbase.cli import _exitcodes as ec
from shardbase.cli._output import print_error, print_json
from shardbase.errors import ShardbaseError
from shardbase.query import Database


def get_cmd(
    location: str = typer.Argument(..., help="Database directory or http(s)/s3 URI"),
    record_id: str = typer.Argument(..., help="Record id (string form of the primary key)"),
) -> None:
    """Print a single record."""
    try:
        db = Database(location).init()
    except ShardbaseError as e:
        print_error(f"Cannot open database: {e}")
        raise typer.Exit(ec.DATABASE_ERROR)

    try:
        record = db.get(record_id)
    finally:
        db.close()

    if record is None:
        print_error(f"Record not found: {record_id}")
        raise typer.Exit(ec.GENERAL_ERROR)

    print_json(record)
