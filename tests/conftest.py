"""Shared test fixtures for shardbase tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from shardbase.builder import DatabaseBuilder
from shardbase.config import ShardbaseConfig
from shardbase.engine import QueryEngine
from shardbase.storage import FileSystemLoader

# --- Record collections ---

SCENARIO_USERS: list[dict[str, Any]] = [
    {"id": "u1", "age": 30, "status": "active"},
    {"id": "u2", "age": 25, "status": "active"},
    {"id": "u3", "age": 40, "status": "inactive"},
]

PEOPLE: list[dict[str, Any]] = [
    {
        "id": "p1",
        "name": "Alice",
        "age": 30,
        "status": "active",
        "verified": True,
        "tags": ["x", "y"],
        "profile": {"city": "Oslo", "score": 7.5},
        "orders": [{"sku": "a", "qty": 1}, {"sku": "b", "qty": 2}],
    },
    {
        "id": "p2",
        "name": "Bob",
        "age": 25,
        "status": "active",
        "verified": False,
        "tags": ["y"],
        "profile": {"city": "Berlin", "score": 9},
        "orders": [{"sku": "b", "qty": 5}],
    },
    {
        "id": "p3",
        "name": "Carol",
        "age": 40,
        "status": "inactive",
        "verified": 1,
        "tags": ["xx", "z"],
        "profile": {"city": "Oslo"},
        "orders": [],
    },
    {
        "id": "p4",
        "name": "Dee",
        "age": None,
        "status": "active",
        "tags": [],
        "profile": {"city": "Paris", "score": 3},
        "nickname": "dee",
    },
    {
        "id": "p5",
        "name": "Eve",
        "age": "unknown",
        "status": "pending",
        "verified": True,
        "tags": ["x"],
        "profile": {"city": "oslo"},
    },
]


def build_db(
    path: Any, records: list[dict[str, Any]], config: ShardbaseConfig | None = None
) -> str:
    """Build ``records`` into ``path`` and return the database directory."""
    out = str(path)
    DatabaseBuilder(out, config).build_records(copy.deepcopy(records))
    return out


def open_engine(db_dir: str, config: ShardbaseConfig | None = None) -> QueryEngine:
    engine = QueryEngine(FileSystemLoader(db_dir), config)
    engine.init()
    return engine


@pytest.fixture
def people() -> list[dict[str, Any]]:
    return copy.deepcopy(PEOPLE)


@pytest.fixture
def scenario_users() -> list[dict[str, Any]]:
    return copy.deepcopy(SCENARIO_USERS)


@pytest.fixture
def people_db(tmp_path) -> str:
    """A built database of PEOPLE with default options."""
    return build_db(tmp_path / "people", PEOPLE)


@pytest.fixture
def scenario_db(tmp_path) -> str:
    return build_db(tmp_path / "users", SCENARIO_USERS)


@pytest.fixture
def engine(people_db):
    eng = open_engine(people_db)
    yield eng
    eng.close()


def ids(records: list[dict[str, Any]]) -> list[str]:
    return [r["id"] for r in records]
