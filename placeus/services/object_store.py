from __future__ import annotations

"""
Object Store Gateway
--------------------
Async facade over the blocking `S3Client`. Every call is an await point; the
boto3 work runs in a worker thread so request handling is never blocked.

Contract
--------
- `put(path, data, content_type)` → public URL
- `get(path)` → bytes, or `ObjectNotFoundError`
- `list(prefix, delimiter)` → set of immediate child prefixes
- `list_keys(prefix)` → object keys under a prefix
- `delete(path)`

No atomicity across calls: each `put` can fail on its own.
"""

import json
import logging
from typing import Any, List, Protocol, Set

import anyio

from placeus.utils.aws import S3Client

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class ObjectStoreProtocol(Protocol):
    async def put(self, path: str, data: bytes, content_type: str) -> str: ...

    async def get(self, path: str) -> bytes: ...

    async def list(self, prefix: str, delimiter: str = "/") -> Set[str]: ...

    async def list_keys(self, prefix: str) -> List[str]: ...

    async def delete(self, path: str) -> None: ...

    def url_for(self, path: str) -> str: ...


class ObjectStore:
    """Async gateway bound to one bucket."""

    def __init__(self, client: S3Client) -> None:
        self._client = client

    @property
    def bucket(self) -> str:
        return self._client.bucket

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        url = await anyio.to_thread.run_sync(
            lambda: self._client.put_bytes(path, data, content_type=content_type)
        )
        logger.debug("put %s (%d bytes, %s)", path, len(data), content_type)
        return url

    async def get(self, path: str) -> bytes:
        return await anyio.to_thread.run_sync(self._client.get_bytes, path)

    async def list(self, prefix: str, delimiter: str = "/") -> Set[str]:
        return await anyio.to_thread.run_sync(self._client.list_prefixes, prefix, delimiter)

    async def list_keys(self, prefix: str) -> List[str]:
        return await anyio.to_thread.run_sync(self._client.list_keys, prefix)

    async def delete(self, path: str) -> None:
        await anyio.to_thread.run_sync(self._client.delete, path)

    def url_for(self, path: str) -> str:
        return self._client.object_url(path)


# ─────────────────────────────────────────────────────────────
# JSON helpers
# ─────────────────────────────────────────────────────────────
async def put_json(store: ObjectStoreProtocol, path: str, payload: Any) -> str:
    data = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return await store.put(path, data, JSON_CONTENT_TYPE)


async def get_json(store: ObjectStoreProtocol, path: str) -> Any:
    """Fetch and decode a JSON object. `ObjectNotFoundError` propagates; bad JSON raises `ValueError`."""
    raw = await store.get(path)
    return json.loads(raw.decode("utf-8"))


__all__ = ["ObjectStore", "ObjectStoreProtocol", "put_json", "get_json", "JSON_CONTENT_TYPE"]
