"""Shardbase CLI: build, inspect and query static sharded databases."""

from __future__ import annotations

import logging

import typer

from shardbase.cli import build, get, info, query, validate

app = typer.Typer(
    name="shardbase",
    help="Shardbase CLI: build, inspect and query static sharded JSON databases.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    json_output: bool = False
    verbose: bool = False
    quiet: bool = False


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        try:
            from importlib.metadata import version

            v = version("shardbase")
        except Exception:
            v = "unknown"
        print(f"shardbase {v}")
        raise typer.Exit()


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("shardbase").setLevel(level)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="JSON output when supported"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all shardbase commands."""
    if verbose and quiet:
        raise typer.BadParameter("--verbose and --quiet are mutually exclusive")
    state.json_output = json_output
    state.verbose = verbose
    state.quiet = quiet
    _configure_logging(verbose, quiet)
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


app.command(name="build")(build.build_cmd)
app.command(name="generate")(build.generate_cmd)
app.command(name="validate")(validate.validate_cmd)
app.command(name="info")(info.info_cmd)
app.command(name="get")(get.get_cmd)
app.command(name="query")(query.query_cmd)


def main() -> None:
    """Entry point for the shardbase CLI."""
    app()
