"""HTTP loader: reads a database published on any static web host."""

from __future__ import annotations

import logging

import httpx

from shardbase.errors import StorageBackendError
from shardbase.storage import JsonLoader

logger = logging.getLogger(__name__)


class HttpLoader(JsonLoader):
    """Fetch layout files with GET requests relative to a base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.location = self.base_url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def _url(self, rel_path: str) -> str:
        return f"{self.base_url}/{rel_path}"

    def _get_bytes(self, rel_path: str) -> bytes | None:
        url = self._url(rel_path)
        try:
            resp = self._client.get(url)
        except httpx.HTTPError as e:
            raise StorageBackendError("fetch", f"GET {url} failed: {e}") from e
        if resp.status_code in (403, 404, 410):
            return None
        if resp.is_error:
            raise StorageBackendError("fetch", f"GET {url} returned HTTP {resp.status_code}")
        return resp.content

    def _exists(self, rel_path: str) -> bool:
        url = self._url(rel_path)
        try:
            resp = self._client.head(url)
        except httpx.HTTPError as e:
            logger.debug("HEAD %s failed: %s", url, e)
            return False
        return resp.is_success

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
