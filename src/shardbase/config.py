"""Configuration for shardbase builds and runtime."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ShardbaseConfig:
    """Configuration shared by the builder and the query engine."""

    primary_key_field: str = "id"
    batch_size: int = 1
    use_subdirectories: bool = True
    index_fields: list[str] | None = None
    max_index_values: int = 10000
    record_cache_size: int | None = None
    http_timeout_s: float = 10.0
    s3_region: str | None = None
    s3_endpoint_url: str | None = None
    s3_request_timeout_s: float = 10.0
