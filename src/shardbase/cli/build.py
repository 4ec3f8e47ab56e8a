"""shardbase build: turn a JSON file into a static sharded database."""

from __future__ import annotations

import os
from typing import Optional

import typer

from shardbase.builder import BuildResult, DatabaseBuilder
from shardbase.cli import _exitcodes as ec
from shardbase.cli._output import print_error, print_json
from shardbase.config import ShardbaseConfig
from shardbase.errors import BuildValidationError


def _parse_index_fields(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    fields = [f.strip() for f in raw.split(",") if f.strip()]
    return fields or None


def _run_build(input_file: str, output: str, cfg: ShardbaseConfig) -> BuildResult:
    from shardbase.cli import state

    if not os.path.isfile(input_file):
        print_error(f"Input file not found: {input_file}")
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        result = DatabaseBuilder(output, cfg).build(input_file)
    except BuildValidationError as e:
        print_error(f"Build failed: {e}")
        raise typer.Exit(ec.BUILD_ERROR)
    except ValueError as e:
        print_error(f"Input is not valid JSON: {e}")
        raise typer.Exit(ec.BUILD_ERROR)
    except OSError as e:
        print_error(f"Build failed: {e}")
        raise typer.Exit(ec.GENERAL_ERROR)

    if state.json_output:
        print_json(
            {
                "output": output,
                "totalRecords": result.total_records,
                "totalFiles": result.total_files,
                "totalIndexes": result.total_indexes,
                "buildTime": round(result.build_time, 3),
                "summary": result.summary,
            },
        )
    return result


def build_cmd(
    input_file: str = typer.Argument(..., help="JSON file holding the record collection"),
    output: str = typer.Option(
        "./db", "--output", "-o", envvar="SHARDBASE_OUTPUT", help="Output directory"
    ),
    primary_key: str = typer.Option(
        "id", "--primary-key", "-p", envvar="SHARDBASE_PRIMARY_KEY", help="Primary key field"
    ),
    batch_size: int = typer.Option(
        1,
        "--batch-size",
        "-b",
        envvar="SHARDBASE_BATCH_SIZE",
        min=1,
        help="Records per file (1 = individual files)",
    ),
    index_fields: Optional[str] = typer.Option(
        None,
        "--index-fields",
        "-i",
        envvar="SHARDBASE_INDEX_FIELDS",
        help="Comma-separated field paths to index (default: all)",
    ),
    max_index_values: int = typer.Option(
        10000,
        "--max-index-values",
        envvar="SHARDBASE_MAX_INDEX_VALUES",
        min=0,
        help="Skip indexing fields with more unique values",
    ),
    no_subdirectories: bool = typer.Option(
        False, "--no-subdirectories", help="Write every shard directly under data/"
    ),
) -> None:
    """Build a static sharded database from a JSON file."""
    from shardbase.cli import state

    cfg = ShardbaseConfig(
        primary_key_field=primary_key,
        batch_size=batch_size,
        use_subdirectories=not no_subdirectories,
        index_fields=_parse_index_fields(index_fields),
        max_index_values=max_index_values,
    )
    result = _run_build(input_file, output, cfg)
    if state.json_output:
        return

    print(f"Database built in {output}")
    print(f"Records: {result.total_records:,}")
    print(f"Files: {result.total_files:,}")
    print(f"Indexes: {result.total_indexes}")
    print(f"Build time: {result.build_time:.0f}ms")
    print(f"Size: {result.summary['totalSizeMB']} MB")


def generate_cmd(
    input_file: str = typer.Argument(..., help="JSON file holding the record collection"),
    output_dir: str = typer.Argument("./db", help="Output directory"),
) -> None:
    """Build with default options (alias for build)."""
    from shardbase.cli import state

    _run_build(input_file, output_dir, ShardbaseConfig())
    if not state.json_output:
        print(f"Database generated in {output_dir}")
