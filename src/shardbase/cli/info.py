"""shardbase info: show database statistics and index details."""

from __future__ import annotations

from typing import Any, Optional

import typer

from shardbase.builder import database_info
from shardbase.cli import _exitcodes as ec
from shardbase.cli._output import print_error, print_json, print_table, render
from shardbase.errors import ShardbaseError


def info_cmd(
    location: str = typer.Argument(..., help="Database directory or http(s)/s3 URI"),
    output: Optional[str] = typer.Option(None, "--output", help="Write the report to a file"),
    fmt: str = typer.Option("json", "--format", help="Report file format: json or yaml"),
) -> None:
    """Show database information."""
    from shardbase.cli import state

    if fmt not in ("json", "yaml"):
        print_error("--format must be 'json' or 'yaml'")
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        data = database_info(location)
    except ShardbaseError as e:
        print_error(f"Failed to get database info: {e}")
        raise typer.Exit(ec.DATABASE_ERROR)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(render(data, fmt))
        print(f"Written to {output}")
        return

    if state.json_output:
        print_json(data)
        return

    _print_info(data)


def _print_info(data: dict[str, Any]) -> None:
    db = data["database"]
    files = data["data"]
    print("Database:")
    print(f"  Records: {db['totalRecords']:,}")
    print(f"  Fields: {db['totalFields']}")
    print(f"  Indexes: {db['totalIndexes']}")
    print(f"  Primary key: {db['primaryKeyField']}")
    print(f"  Created: {db['createdAt'] or '(unknown)'}")
    print("Data files:")
    print(f"  Total files: {files['totalFiles']:,}")
    print(f"  Avg file size: {files['avgFileSize']} bytes")
    print(f"  Batch size: {files['batchSize'] or 1}")
    print(f"  Subdirectories: {'yes' if files['useSubdirectories'] else 'no'}")

    if data["indexes"]:
        print("Indexes:")
        print_table(
            ["field", "type", "uniqueValues", "coverage"],
            [[i["field"], i["type"], i["uniqueValues"], i["coverage"]] for i in data["indexes"]],
        )
    if data["skipped"]:
        print("Skipped fields:")
        print_table(
            ["field", "reason", "uniqueValues"],
            [[s["field"], s["reason"], s["uniqueValues"]] for s in data["skipped"]],
        )

    build = data.get("build")
    if build:
        print("Build:")
        print(f"  Build time: {build['buildTime']}ms")
        print(f"  Input file: {build['inputFile']}")
