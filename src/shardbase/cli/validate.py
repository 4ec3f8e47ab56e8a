"""shardbase validate: check that a built database is complete and consistent."""

from __future__ import annotations

import typer

from shardbase.builder import validate_database
from shardbase.cli import _exitcodes as ec
from shardbase.cli._output import print_error, print_json
from shardbase.errors import ShardbaseError


def validate_cmd(
    location: str = typer.Argument(..., help="Database directory or http(s)/s3 URI"),
) -> None:
    """Validate a built database."""
    from shardbase.cli import state

    try:
        report = validate_database(location)
    except ShardbaseError as e:
        print_error(f"Cannot open database: {e}")
        raise typer.Exit(ec.DATABASE_ERROR)

    if state.json_output:
        print_json(
            {
                "location": report.location,
                "ok": report.ok,
                "problems": report.problems,
                "stats": report.stats,
            },
        )
    elif report.ok:
        print("Database validation passed")
        for k, v in report.stats.items():
            print(f"  {k}: {v}")
    else:
        print("Database validation failed")
        for problem in report.problems:
            print(f"  - {problem}")

    if not report.ok:
        raise typer.Exit(ec.VALIDATION_FAILED)
