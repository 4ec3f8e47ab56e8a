"""Shared fixtures for CLI tests."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from shardbase.cli import app
from tests.conftest import PEOPLE

if TYPE_CHECKING:
    from click.testing import Result


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def input_file(tmp_path):
    """A JSON input document wrapping the PEOPLE collection."""
    path = tmp_path / "people.json"
    path.write_text(json.dumps({"people": PEOPLE}), encoding="utf-8")
    return str(path)


@pytest.fixture
def cli_db(tmp_path):
    return str(tmp_path / "db")


@pytest.fixture
def built_db(runner, input_file, cli_db):
    """Build the PEOPLE database through the CLI."""
    result = invoke(runner, ["build", input_file, "--output", cli_db])
    assert result.exit_code == 0, result.output
    return cli_db


def invoke(runner: CliRunner, args: list[str]) -> "Result":
    """Invoke the CLI without catching exceptions."""
    return runner.invoke(app, args, catch_exceptions=False)
