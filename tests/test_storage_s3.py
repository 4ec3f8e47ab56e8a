"""S3 loader tests against an in-memory stub client (no live endpoint)."""

from __future__ import annotations

import io
import os

import pytest
from botocore.exceptions import ClientError

from shardbase.engine import QueryEngine
from shardbase.errors import StorageBackendError
from shardbase.filters import QueryFilter
from shardbase.storage_s3 import S3Loader, _is_not_found
from tests.conftest import PEOPLE, ids


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class _StubS3:
    """Serves objects from a dict; mimics the subset of the boto3 client the loader uses."""

    def __init__(self, objects: dict[str, bytes], *, deny: bool = False) -> None:
        self.objects = objects
        self.deny = deny
        self.gets: list[str] = []

    def get_object(self, *, Bucket: str, Key: str) -> dict:
        self.gets.append(Key)
        if self.deny:
            raise _client_error("AccessDenied", "GetObject")
        if Key not in self.objects:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def head_object(self, *, Bucket: str, Key: str) -> dict:
        if Key not in self.objects:
            raise _client_error("404", "HeadObject")
        return {"ContentLength": len(self.objects[Key])}


def _upload(db_dir: str, prefix: str) -> dict[str, bytes]:
    objects: dict[str, bytes] = {}
    for root, _dirs, files in os.walk(db_dir):
        for name in files:
            full = os.path.join(root, name)
            rel = os.path.relpath(full, db_dir).replace(os.sep, "/")
            with open(full, "rb") as fh:
                objects[f"{prefix}/{rel}" if prefix else rel] = fh.read()
    return objects


@pytest.fixture
def s3_loader(people_db) -> S3Loader:
    stub = _StubS3(_upload(people_db, "dbs/people"))
    return S3Loader(bucket="bucket", prefix="/dbs/people/", client=stub)


def test_location_and_keys(s3_loader):
    assert s3_loader.location == "s3://bucket/dbs/people"
    assert s3_loader._k("metadata.json") == "dbs/people/metadata.json"


def test_engine_over_s3(s3_loader):
    engine = QueryEngine(s3_loader)
    result = engine.execute_query([QueryFilter("profile.city", "=", "Oslo")])
    assert ids(result.records) == ["p1", "p3"]
    assert engine.get_record("p4") == PEOPLE[3]


def test_missing_objects(s3_loader):
    assert s3_loader.load_index("nope") is None
    assert s3_loader.load_schema() is None
    assert s3_loader.is_available() is True
    assert not s3_loader.has_file("data/000/000077.json")


def test_bucket_root_prefix(people_db):
    loader = S3Loader(bucket="bucket", prefix="", client=_StubS3(_upload(people_db, "")))
    assert loader.location == "s3://bucket"
    assert loader.load_metadata().total_records == 5


def test_access_denied_is_an_error(people_db):
    loader = S3Loader(
        bucket="bucket",
        prefix="dbs/people",
        client=_StubS3(_upload(people_db, "dbs/people"), deny=True),
    )
    with pytest.raises(StorageBackendError) as exc:
        loader.load_metadata()
    assert exc.value.operation == "get_object"


def test_is_not_found_codes():
    assert _is_not_found(_client_error("NoSuchKey", "GetObject"))
    assert _is_not_found(_client_error("404", "HeadObject"))
    assert not _is_not_found(_client_error("AccessDenied", "GetObject"))
    assert not _is_not_found(ValueError("nope"))
