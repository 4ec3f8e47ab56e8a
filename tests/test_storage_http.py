"""Tests for the HTTP loader, served from a built database through httpx.MockTransport."""

from __future__ import annotations

import os

import httpx
import pytest

from shardbase.config import ShardbaseConfig
from shardbase.engine import QueryEngine
from shardbase.errors import DatabaseUnavailableError, StorageBackendError
from shardbase.filters import QueryFilter
from shardbase.storage_http import HttpLoader
from tests.conftest import PEOPLE, build_db, ids

BASE_URL = "https://static.example.com/dbs/people"


def _static_host(db_dir: str, requests: list[httpx.Request] | None = None) -> httpx.MockTransport:
    prefix = httpx.URL(BASE_URL).path + "/"

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        path = request.url.path
        if not path.startswith(prefix):
            return httpx.Response(404)
        local = os.path.join(db_dir, *path[len(prefix) :].split("/"))
        if not os.path.isfile(local):
            return httpx.Response(404)
        if request.method == "HEAD":
            return httpx.Response(200)
        with open(local, "rb") as fh:
            return httpx.Response(200, content=fh.read())

    return httpx.MockTransport(handler)


@pytest.fixture
def http_loader(people_db):
    client = httpx.Client(transport=_static_host(people_db))
    loader = HttpLoader(BASE_URL, client=client)
    yield loader
    client.close()


def test_engine_over_http(http_loader):
    engine = QueryEngine(http_loader)
    result = engine.execute_query([QueryFilter("tags", "CONTAINS", "x")])
    assert ids(result.records) == ["p1", "p5"]
    assert engine.get_record("p3") == PEOPLE[2]
    assert engine.get_record("missing") is None


def test_is_available(http_loader):
    assert http_loader.is_available() is True
    assert http_loader.has_file("indexes/_primary.json")
    assert not http_loader.has_file("indexes/nope.json")


def test_absent_optional_files(http_loader):
    assert http_loader.load_index("nope") is None
    assert http_loader.load_schema() is None


def test_forbidden_counts_as_absent():
    transport = httpx.MockTransport(lambda request: httpx.Response(403))
    loader = HttpLoader(BASE_URL, client=httpx.Client(transport=transport))
    assert loader.load_index("status") is None
    with pytest.raises(DatabaseUnavailableError):
        QueryEngine(loader).init()


def test_server_error_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    loader = HttpLoader(BASE_URL, client=httpx.Client(transport=transport))
    with pytest.raises(StorageBackendError) as exc:
        loader.load_metadata()
    assert exc.value.operation == "fetch"


def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    loader = HttpLoader(BASE_URL, client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(StorageBackendError):
        loader.load_split_metadata()
    assert loader.is_available() is False


def test_batch_shard_fetched_once_per_scan(tmp_path):
    db = build_db(tmp_path / "batched", PEOPLE, ShardbaseConfig(batch_size=5))
    requests: list[httpx.Request] = []
    client = httpx.Client(transport=_static_host(db, requests))
    engine = QueryEngine(HttpLoader(BASE_URL, client=client))
    assert len(engine.get_all_records()) == 5
    shard_gets = [r for r in requests if "/data/" in r.url.path]
    assert len(shard_gets) == 1


def test_close_leaves_injected_client_open(people_db):
    client = httpx.Client(transport=_static_host(people_db))
    loader = HttpLoader(BASE_URL, client=client)
    loader.close()
    assert not client.is_closed
    client.close()
