"""Tests for the fluent query builder and the Database facade."""

from __future__ import annotations

import pytest

from shardbase.errors import DatabaseUnavailableError, InvalidQueryError
from shardbase.filters import QueryFilter, QueryOperator
from shardbase.query import Database
from shardbase.storage import FileSystemLoader
from tests.conftest import PEOPLE, ids


@pytest.fixture
def db(people_db):
    with Database(people_db) as database:
        yield database


class TestQueryBuilder:
    def test_where_equals(self, db):
        result = db.query().where("status").equals("active").exec()
        assert ids(result.records) == ["p1", "p2", "p4"]

    def test_chained_filters_and_sort(self, db):
        result = (
            db.query()
            .where("status")
            .eq("active")
            .where("profile.score")
            .gt(2)
            .sort("profile.score", "desc")
            .exec()
        )
        assert ids(result.records) == ["p2", "p1", "p4"]

    @pytest.mark.parametrize(
        "method,value,expected",
        [
            ("not_equals", "active", ["p3", "p5"]),
            ("ne", "active", ["p3", "p5"]),
            ("in_", ["pending", "inactive"], ["p3", "p5"]),
            ("startswith", "act", ["p1", "p2", "p4"]),
            ("endswith", "ing", ["p5"]),
            ("contains", "ctiv", ["p1", "p2", "p3", "p4"]),
        ],
    )
    def test_string_operators(self, db, method, value, expected):
        field = db.query().where("status")
        assert ids(getattr(field, method)(value).collect()) == expected

    @pytest.mark.parametrize(
        "method,value,expected",
        [
            ("greater_than", 25, ["p1", "p3"]),
            ("less_than", 30, ["p2"]),
            ("greater_than_or_equal", 30, ["p1", "p3"]),
            ("ge", 30, ["p1", "p3"]),
            ("less_than_or_equal", 30, ["p1", "p2"]),
            ("le", 30, ["p1", "p2"]),
            ("lt", 26, ["p2"]),
        ],
    )
    def test_numeric_operators(self, db, method, value, expected):
        field = db.query().where("age")
        assert ids(getattr(field, method)(value).collect()) == expected

    def test_where_raw_and_where_equals(self, db):
        q = db.query().where_raw("tags", "CONTAINS", "y").where_equals("verified", False)
        assert q.filters() == [
            QueryFilter("tags", QueryOperator.CONTAINS, "y"),
            QueryFilter("verified", QueryOperator.EQUALS, False),
        ]
        assert ids(q.collect()) == ["p2"]

    def test_limit_offset(self, db):
        result = db.query().sort("name").limit(2).offset(1).exec()
        assert ids(result.records) == ["p2", "p3"]
        assert result.total_count == 5
        assert result.has_more is True

    def test_first(self, db):
        assert db.query().where("name").eq("Carol").first() == PEOPLE[2]
        assert db.query().where("name").eq("Nobody").first() is None

    def test_invalid_sort_direction(self, db):
        with pytest.raises(InvalidQueryError):
            db.query().sort("name", "up")


class TestDatabase:
    def test_get(self, db):
        assert db.get("p5") == PEOPLE[4]
        assert db.get("nope") is None

    def test_introspection(self, db):
        assert db.count() == 5
        assert "orders.qty" in db.get_fields()
        assert "status" in db.get_indexed_fields()

    def test_stats(self, db):
        db.get("p1")
        stats = db.get_stats()
        assert stats["totalRecords"] == 5
        assert stats["dataFiles"] == 5
        assert stats["batchSize"] is None
        assert stats["cache"]["records"] == 1

    def test_accepts_loader(self, people_db):
        database = Database(FileSystemLoader(people_db)).init()
        assert database.count() == 5
        database.close()

    def test_unbuilt_location(self, tmp_path):
        with pytest.raises(DatabaseUnavailableError):
            Database(str(tmp_path / "empty")).init()
