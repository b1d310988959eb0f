from __future__ import annotations

"""
InMemoryObjectStore · test-grade object store
=============================================
Implements the `ObjectStoreProtocol` surface (put/get/list/list_keys/delete/
url_for) over a dict.

Failure injection
-----------------
- `fail_puts[suffix] = n` makes the next `n` puts to keys ending in `suffix`
  raise `S3StorageError`.
- `fail_lists = True` makes `list()` raise `S3StorageError`.
- keys in `fail_gets` raise `S3StorageError` on every `get()`.

Every successful put is appended to `put_log` so tests can assert ordering.
"""

import asyncio
import json
from typing import Any, Dict, List, Set, Tuple

from placeus.utils.aws import ObjectNotFoundError, S3StorageError


class InMemoryObjectStore:
    def __init__(self, bucket: str = "test-bucket", region: str = "ap-south-1") -> None:
        self.bucket = bucket
        self.region = region
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.put_log: List[str] = []
        self.fail_puts: Dict[str, int] = {}
        self.fail_lists = False
        self.fail_gets: Set[str] = set()

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        await asyncio.sleep(0)
        for suffix, remaining in list(self.fail_puts.items()):
            if path.endswith(suffix) and remaining > 0:
                self.fail_puts[suffix] = remaining - 1
                raise S3StorageError(f"injected put failure for {path}")
        self.objects[path] = (bytes(data), content_type)
        self.put_log.append(path)
        return self.url_for(path)

    async def get(self, path: str) -> bytes:
        await asyncio.sleep(0)
        if path in self.fail_gets:
            raise S3StorageError(f"Failed to read object {path}: AccessDenied")
        if path not in self.objects:
            raise ObjectNotFoundError(path)
        return self.objects[path][0]

    async def list(self, prefix: str, delimiter: str = "/") -> Set[str]:
        if self.fail_lists:
            raise S3StorageError("injected list failure")
        out: Set[str] = set()
        for key in self.objects:
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if delimiter in rest:
                out.add(prefix + rest.split(delimiter, 1)[0] + delimiter)
        return out

    async def list_keys(self, prefix: str) -> List[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))

    async def delete(self, path: str) -> None:
        self.objects.pop(path, None)

    def url_for(self, path: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"

    # helpers for tests
    def seed(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        self.objects[path] = (data, content_type)

    def seed_json(self, path: str, payload: Any) -> None:
        self.seed(path, json.dumps(payload).encode("utf-8"), "application/json")

    def read_json(self, path: str) -> Any:
        return json.loads(self.objects[path][0].decode("utf-8"))

    def content_type(self, path: str) -> str:
        return self.objects[path][1]
