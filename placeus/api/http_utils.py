from __future__ import annotations

"""
Placeus · HTTP Utilities
========================

Shared helpers for API routers:

- Path id validation (slugs & UUIDs)
- Capped multipart reads
"""

import re

from fastapi import UploadFile

from placeus.core.exceptions import PayloadTooLargeException, ValidationException

__all__ = ["sanitize_id", "read_upload_capped"]

_SANITIZE_SLUG_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_SANITIZE_UUID_RE = re.compile(r"^[0-9a-fA-F-]{8,36}$")

_READ_CHUNK = 1024 * 1024


def sanitize_id(value: str, *, field: str = "id") -> str:
    """Validate a lesson or comment identifier.

    Accepts slugs matching ``[A-Za-z0-9_-]{1,128}`` or UUID-like strings.
    Anything else (slashes, dots, empty) raises `ValidationException` (400),
    which also keeps ids from escaping their storage prefix.
    """
    if _SANITIZE_SLUG_RE.match(value) or _SANITIZE_UUID_RE.match(value):
        return value
    raise ValidationException(f"Invalid {field} format")


async def read_upload_capped(upload: UploadFile, limit: int) -> bytearray:
    """Read a multipart part into memory, refusing more than `limit` bytes.

    The buffer is returned as-is so the part is held once.
    """
    buf = bytearray()
    while True:
        chunk = await upload.read(_READ_CHUNK)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            raise PayloadTooLargeException(details={"limit_bytes": limit})
    return buf
