# placeus/utils/aws.py
from __future__ import annotations

"""
🧊 Placeus • S3 Utilities
=========================

Thin, synchronous boto3 wrapper behind the async `ObjectStore` gateway
(`placeus.services.object_store`).

🎯 Goals
--------
- Explicit timeouts + bounded retries
- Key normalization (no leading slash, no `..`)
- Pluggable creds (env / role / IRSA) with explicit override if provided
- Missing keys surface as `ObjectNotFoundError`, distinct from other failures
- Zero secret leakage in logs

🔗 Contract
-----------
- Classes: `S3Client`, `S3StorageError`, `ObjectNotFoundError`
- Methods: `put_bytes`, `get_bytes`, `list_prefixes`, `list_keys`, `delete`,
  `object_url`
"""

from typing import Any, Dict, List, Optional, Set
import logging
import re

import boto3
import botocore.exceptions
from botocore.config import Config as BotoConfig
from pydantic import SecretStr

from placeus.core.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# 🧱 Exceptions
# ─────────────────────────────────────────────────────────────────────────────


class S3StorageError(RuntimeError):
    """Raised when a storage operation fails (network, auth, policy, etc.)."""


class ObjectNotFoundError(S3StorageError):
    """Raised by reads when the requested key does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

# ─────────────────────────────────────────────────────────────────────────────
# 🧰 Key validation
# ─────────────────────────────────────────────────────────────────────────────

_KEY_ALLOWED_RE = re.compile(r"[A-Za-z0-9._\-/+=@() ]+")


def _normalize_key(key: str, *, allow_empty: bool = False) -> str:
    """
    Normalize and validate S3 object keys.

    Steps
    -----
    1) Coerce to str, strip whitespace
    2) Remove leading '/'
    3) Collapse '//' runs
    4) Reject path traversal ('..') and disallowed characters

    Raises
    ------
    S3StorageError
        If key is empty or contains unsafe characters.
    """
    k = str(key or "").strip().lstrip("/")
    k = re.sub(r"/{2,}", "/", k)
    if not k:
        if allow_empty:
            return k
        raise S3StorageError("Invalid storage key: empty")
    if ".." in k:
        raise S3StorageError("Invalid storage key: path traversal detected")
    if not _KEY_ALLOWED_RE.fullmatch(k):
        raise S3StorageError("Invalid storage key: contains forbidden characters")
    return k


def _secret_value(v: Optional[SecretStr | str]) -> Optional[str]:
    if v is None:
        return None
    return v.get_secret_value() if isinstance(v, SecretStr) else str(v)


def _error_code(exc: botocore.exceptions.ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


# ─────────────────────────────────────────────────────────────────────────────
# 📦 S3 Client
# ─────────────────────────────────────────────────────────────────────────────


class S3Client:
    """
    High-level S3 wrapper with safe defaults.

    Parameters
    ----------
    bucket : str | None
        Bucket name. Defaults to `settings.AWS_BUCKET_NAME`.
    region_name : str | None
        Defaults to `settings.AWS_REGION`.
    endpoint_url : str | None
        Custom S3-compatible endpoint (LocalStack/MinIO). Defaults to
        `settings.AWS_S3_ENDPOINT_URL`.
    client : Any
        Pre-built boto3 client (tests use botocore's Stubber).

    Notes
    -----
    * Credentials: explicit `AWS_ACCESS_KEY_ID` + `AWS_SECRET_ACCESS_KEY` when
      configured, otherwise the standard AWS credential chain.
    * Bounded retry policy (5 attempts) and short connect timeout.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket or settings.AWS_BUCKET_NAME
        if not self.bucket:
            raise S3StorageError("AWS_BUCKET_NAME not configured")

        self.region = region_name or settings.AWS_REGION or "us-east-1"
        self._endpoint = (endpoint_url or settings.AWS_S3_ENDPOINT_URL or "").rstrip("/") or None

        if client is not None:
            self.client = client
        else:
            cfg = BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 5, "mode": "standard"},
                connect_timeout=3,
                read_timeout=30,
                s3={"addressing_style": "path" if self._endpoint else "virtual"},
            )
            client_kwargs: Dict[str, Any] = {"config": cfg, "region_name": self.region}
            if self._endpoint:
                client_kwargs["endpoint_url"] = self._endpoint

            ak = settings.AWS_ACCESS_KEY_ID
            sk = _secret_value(settings.AWS_SECRET_ACCESS_KEY)
            if ak and sk:
                client_kwargs["aws_access_key_id"] = ak
                client_kwargs["aws_secret_access_key"] = sk

            try:
                self.client = boto3.client("s3", **client_kwargs)
            except Exception as e:  # pragma: no cover
                raise S3StorageError(f"Failed to create S3 client: {e}") from e

        self._repr = f"S3Client(bucket={self.bucket}, region={self.region}, endpoint={'yes' if self._endpoint else 'no'})"

    # ────────────────────────────────────────────────────────────────────────
    # 🚀 Object ops
    # ────────────────────────────────────────────────────────────────────────

    def put_bytes(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> str:
        """
        Upload a payload and return its public object URL.

        Raises
        ------
        S3StorageError
            On upload failure or invalid key.
        """
        k = _normalize_key(key)
        args: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": k,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            args["CacheControl"] = cache_control

        try:
            self.client.put_object(**args)
        except Exception as e:
            raise S3StorageError(f"Failed to upload object {k}: {e}") from e
        return self.object_url(k)

    def get_bytes(self, key: str) -> bytes:
        """
        Read a whole object.

        Raises
        ------
        ObjectNotFoundError
            When the key does not exist.
        S3StorageError
            On any other failure.
        """
        k = _normalize_key(key)
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=k)
            return resp["Body"].read()
        except botocore.exceptions.ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(k) from e
            raise S3StorageError(f"Failed to read object {k}: {e}") from e
        except Exception as e:
            raise S3StorageError(f"Failed to read object {k}: {e}") from e

    def list_prefixes(self, prefix: str, delimiter: str = "/") -> Set[str]:
        """Immediate child prefixes (`CommonPrefixes`) under `prefix`, all pages."""
        p = _normalize_key(prefix, allow_empty=True)
        out: Set[str] = set()
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=p, Delimiter=delimiter):
                for cp in page.get("CommonPrefixes") or []:
                    if cp.get("Prefix"):
                        out.add(cp["Prefix"])
        except Exception as e:
            raise S3StorageError(f"Failed to list prefixes under {p!r}: {e}") from e
        return out

    def list_keys(self, prefix: str) -> List[str]:
        """Every object key under `prefix` (recursive), all pages."""
        p = _normalize_key(prefix, allow_empty=True)
        keys: List[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=p):
                keys.extend(obj["Key"] for obj in page.get("Contents") or [] if obj.get("Key"))
        except Exception as e:
            raise S3StorageError(f"Failed to list keys under {p!r}: {e}") from e
        return keys

    def delete(self, key: str) -> None:
        """Delete an object (S3 deletes are idempotent)."""
        k = _normalize_key(key)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=k)
        except Exception as e:
            raise S3StorageError(f"Failed to delete object {k}: {e}") from e

    # ────────────────────────────────────────────────────────────────────────
    # 🌐 Public URL helper
    # ────────────────────────────────────────────────────────────────────────

    def object_url(self, key: str) -> str:
        """
        Direct (non-signed) URL for a key. Custom endpoints use path-style
        `<endpoint>/<bucket>/<key>`.
        """
        k = _normalize_key(key)
        if self._endpoint:
            return f"{self._endpoint}/{self.bucket}/{k}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{k}"

    def __repr__(self) -> str:  # pragma: no cover
        return self._repr


__all__ = ["S3Client", "S3StorageError", "ObjectNotFoundError"]
