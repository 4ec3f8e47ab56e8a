"""S3 loader: reads a database uploaded to a bucket/prefix."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from shardbase.config import ShardbaseConfig
from shardbase.errors import StorageBackendError
from shardbase.storage import JsonLoader


def _is_not_found(err: Exception) -> bool:
    if isinstance(err, ClientError):
        code = err.response.get("Error", {}).get("Code", "")
        return code in {"NoSuchKey", "404", "NotFound"}
    return False


class S3Loader(JsonLoader):
    """Read-only loader over ``s3://bucket/prefix``."""

    def __init__(
        self,
        *,
        bucket: str,
        prefix: str,
        storage_uri: str | None = None,
        config: ShardbaseConfig | None = None,
        client: Any = None,
    ) -> None:
        cfg = config or ShardbaseConfig()
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.location = storage_uri or f"s3://{bucket}/{self.prefix}".rstrip("/")

        if client is None:
            session = boto3.Session(region_name=cfg.s3_region)
            client = session.client(
                "s3",
                region_name=cfg.s3_region,
                endpoint_url=cfg.s3_endpoint_url,
                config=BotoConfig(
                    connect_timeout=cfg.s3_request_timeout_s,
                    read_timeout=cfg.s3_request_timeout_s,
                    retries={"max_attempts": 5, "mode": "standard"},
                ),
            )
        self._s3 = client

    def _k(self, rel_path: str) -> str:
        return f"{self.prefix}/{rel_path}" if self.prefix else rel_path

    def _get_bytes(self, rel_path: str) -> bytes | None:
        key = self._k(rel_path)
        try:
            resp = self._s3.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()
        except (ClientError, BotoCoreError) as e:
            if _is_not_found(e):
                return None
            raise StorageBackendError("get_object", f"s3://{self.bucket}/{key}: {e}") from e

    def _exists(self, rel_path: str) -> bool:
        key = self._k(rel_path)
        try:
            self._s3.head_object(Bucket=self.bucket, Key=key)
            return True
        except (ClientError, BotoCoreError) as e:
            if _is_not_found(e):
                return False
            raise StorageBackendError("head_object", f"s3://{self.bucket}/{key}: {e}") from e
