"""
Resource Fetcher
================
Retrieves artifact bytes from local paths, ``file://`` URIs or
``http(s)://`` URLs.  Both the model and the preprocessing config are
read through this one capability so they can be hosted side by side.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

import httpx

from clickml.config import FETCH_TIMEOUT_S
from clickml.errors import FetchError

logger = logging.getLogger(__name__)


def is_remote(uri: str) -> bool:
    return urlparse(uri).scheme in ("http", "https")


def _local_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(parsed.path)
    return Path(uri)


def resolve_relative(base_uri: str, name: str) -> str:
    """Resolve ``name`` against the directory holding ``base_uri``."""
    if is_remote(base_uri):
        return urljoin(base_uri, name)
    return str(_local_path(base_uri).parent / name)


class ResourceFetcher:
    """Fetches raw bytes or JSON documents.

    Parameters
    ----------
    transport : httpx.AsyncBaseTransport, optional
        Custom transport for remote fetches (e.g. ``httpx.MockTransport``).
    timeout : float
        Per-request timeout in seconds for remote fetches.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = FETCH_TIMEOUT_S,
    ):
        self._transport = transport
        self._timeout = timeout

    async def fetch_bytes(self, uri: str) -> bytes:
        if is_remote(uri):
            return await self._fetch_remote(uri)
        return await self._fetch_local(uri)

    async def fetch_json(self, uri: str) -> Any:
        """Fetch ``uri`` and decode it as JSON.

        Raises ``FetchError`` for retrieval failures and ``ValueError``
        when the body is not valid JSON.
        """
        body = await self.fetch_bytes(uri)
        return json.loads(body)

    async def _fetch_remote(self, uri: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self._timeout
            ) as client:
                response = await client.get(uri)
        except httpx.HTTPError as e:
            raise FetchError(uri, f"Network error: {e}") from e

        if response.status_code >= 400:
            raise FetchError(
                uri,
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug("Fetched %s (%d bytes)", uri, len(response.content))
        return response.content

    async def _fetch_local(self, uri: str) -> bytes:
        path = _local_path(uri)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise FetchError(uri, "File not found", status_code=404) from e
        except OSError as e:
            raise FetchError(uri, f"Read error: {e}") from e
        logger.debug("Read %s (%d bytes)", path, len(data))
        return data
