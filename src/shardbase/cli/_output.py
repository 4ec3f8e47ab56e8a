"""Output formatting helpers for the CLI."""

from __future__ import annotations

import json
import sys
from typing import Any

import yaml


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list, bool)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def print_table(headers: list[str], rows: list[list[Any]]) -> None:
    """Print rows as left-aligned text columns; nothing when ``rows`` is empty."""
    if not rows:
        return
    cells = [[_cell(v) for v in row] for row in rows]
    widths = [
        max([len(header)] + [len(row[col]) for row in cells if col < len(row)])
        for col, header in enumerate(headers)
    ]
    lines = [headers, ["-" * w for w in widths], *cells]
    for line in lines:
        padded = [val.ljust(widths[col]) if col < len(widths) else val for col, val in enumerate(line)]
        print("  ".join(padded).rstrip())


def print_json(data: Any) -> None:
    """Print ``data`` as indented JSON on stdout."""
    print(render(data, "json"))


def render(data: Any, fmt: str) -> str:
    """Serialize a report as ``json`` or ``yaml`` text."""
    if fmt == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


def print_error(msg: str) -> None:
    """Print an error message to stderr."""
    print(f"Error: {msg}", file=sys.stderr)
