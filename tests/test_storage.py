"""Tests for storage target parsing and the filesystem loader."""

from __future__ import annotations

import os

import pytest

from shardbase.errors import StorageBackendError
from shardbase.models import FileInfo
from shardbase.storage import (
    FileSystemLoader,
    StorageLoader,
    find_record_in_shard,
    open_loader,
    parse_storage_target,
)


class TestParseStorageTarget:
    def test_bare_path(self):
        target = parse_storage_target("./db")
        assert target.backend == "file"
        assert target.path == "./db"

    def test_file_uri(self):
        target = parse_storage_target("file:///srv/data/db")
        assert target.backend == "file"
        assert target.path == "/srv/data/db"

    def test_windows_drive_letter(self):
        target = parse_storage_target("C:\\data\\db")
        assert target.backend == "file"
        assert target.path == "C:\\data\\db"

    def test_http(self):
        target = parse_storage_target("https://cdn.example.com/db/")
        assert target.backend == "http"
        assert target.base_url == "https://cdn.example.com/db"

    def test_s3(self):
        target = parse_storage_target("s3://bucket/path/to/db/")
        assert target.backend == "s3"
        assert target.bucket == "bucket"
        assert target.prefix == "path/to/db"

    def test_s3_bucket_root(self):
        target = parse_storage_target("s3://bucket")
        assert target.prefix == ""

    @pytest.mark.parametrize("location", ["", "ftp://host/db", "s3:///no-bucket", "http://"])
    def test_invalid(self, location):
        with pytest.raises(StorageBackendError):
            parse_storage_target(location)


class TestFileSystemLoader:
    def test_is_a_storage_loader(self, people_db):
        loader = open_loader(people_db)
        assert isinstance(loader, FileSystemLoader)
        assert isinstance(loader, StorageLoader)
        assert loader.location == os.path.abspath(people_db)

    def test_loads_layout_files(self, people_db):
        loader = FileSystemLoader(people_db)
        assert loader.load_metadata().total_records == 5
        assert loader.load_split_metadata().primary_key_field == "id"
        assert len(loader.load_primary_index().entries) == 5
        index = loader.load_index("profile.city")
        assert index is not None
        assert index.field == "profile.city"
        assert loader.load_build_manifest() is not None

    def test_optional_files(self, people_db):
        loader = FileSystemLoader(people_db)
        assert loader.load_index("does.not.exist") is None
        assert loader.load_schema() is None

    def test_required_file_missing(self, tmp_path):
        loader = FileSystemLoader(str(tmp_path))
        assert loader.is_available() is False
        with pytest.raises(StorageBackendError, match="metadata.json"):
            loader.load_metadata()

    def test_malformed_json(self, people_db):
        with open(os.path.join(people_db, "split-metadata.json"), "w") as fh:
            fh.write("{")
        with pytest.raises(StorageBackendError) as exc:
            FileSystemLoader(people_db).load_split_metadata()
        assert exc.value.operation == "decode"

    def test_schema_mismatch(self, people_db):
        with open(os.path.join(people_db, "metadata.json"), "w") as fh:
            fh.write('{"totalRecords": "many"}')
        with pytest.raises(StorageBackendError) as exc:
            FileSystemLoader(people_db).load_metadata()
        assert exc.value.operation == "validate"

    def test_load_record(self, people_db):
        loader = FileSystemLoader(people_db)
        split = loader.load_split_metadata()
        info = split.files[2]
        assert loader.load_record("p3", info, split)["name"] == "Carol"
        assert loader.load_record("p1", info, split) is None

    def test_load_record_missing_shard(self, people_db):
        loader = FileSystemLoader(people_db)
        split = loader.load_split_metadata()
        ghost = FileInfo(filename="999/999999.json", record_count=1, size=1, record_ids=["x"])
        assert loader.load_record("x", ghost, split) is None

    def test_has_file(self, people_db):
        loader = FileSystemLoader(people_db)
        assert loader.is_available() is True
        assert loader.has_file("data/000/000000.json")
        assert not loader.has_file("data/000/000099.json")


def test_find_record_in_shard():
    batch = [{"id": 1, "v": "a"}, {"id": "2", "v": "b"}, "junk", {"v": "no id"}]
    assert find_record_in_shard(batch, "1", "id") == {"id": 1, "v": "a"}
    assert find_record_in_shard(batch, "2", "id") == {"id": "2", "v": "b"}
    assert find_record_in_shard(batch, "3", "id") is None
    assert find_record_in_shard({"sku": "s"}, "s", "sku") == {"sku": "s"}
