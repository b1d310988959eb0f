from __future__ import annotations

"""
Verification key cache
----------------------
Fetches the identity provider's published public keys and keeps them for a
fixed time-to-live.

Design
------
- One `KeyCache` per process, built in the app lifespan and handed to the
  token verifier through `app.state.key_cache`.
- Backed by `TTLMap` with an injectable clock so expiry is deterministic in
  tests.
- Concurrent misses share one fetch (`asyncio.Lock`).
- A failed fetch raises `KeyFetchError`. Expired keys are never served.

Accepted key-set formats
------------------------
- Google secure-token x509 map: ``{"<kid>": "-----BEGIN CERTIFICATE-----..."}``
- JWKS: ``{"keys": [{"kid": "...", "kty": "RSA", ...}, ...]}``

Both normalize to ``{kid: key}`` where `key` is a PEM string or a JWK dict,
each accepted by `jose.jwt.decode`.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from placeus.core.cache import Clock, TTLMap
from placeus.core.config import settings

logger = logging.getLogger("jwks")

KeySet = Dict[str, Any]

_CACHE_KEY = "keys"


class KeyFetchError(RuntimeError):
    """The key endpoint could not be reached or returned an unusable document."""


def normalize_key_set(doc: Any) -> KeySet:
    """Flatten either supported key-set document into ``{kid: key}``."""
    if not isinstance(doc, dict):
        raise KeyFetchError("Key set document is not a JSON object")

    if isinstance(doc.get("keys"), list):
        out: KeySet = {}
        for jwk in doc["keys"]:
            if isinstance(jwk, dict) and jwk.get("kid"):
                out[str(jwk["kid"])] = jwk
        return out

    return {str(kid): pem for kid, pem in doc.items() if isinstance(pem, str) and pem.strip()}


class KeyCache:
    """TTL-bounded cache of the provider's verification keys."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        ttl_seconds: Optional[float] = None,
        timeout: Optional[float] = None,
        clock: Optional[Clock] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url or settings.AUTH_KEYS_URL
        self.ttl_seconds = float(ttl_seconds or settings.AUTH_KEYS_TTL_SECONDS)
        self.timeout = float(timeout or settings.AUTH_KEYS_FETCH_TIMEOUT)
        self._store = TTLMap(maxsize=1, clock=clock)
        self._lock = asyncio.Lock()
        self._http = http_client
        self.fetch_count = 0

    async def get_keys(self) -> KeySet:
        """Return the cached key set, fetching it on miss or expiry."""
        keys = self._store.get(_CACHE_KEY)
        if keys is not None:
            return keys

        async with self._lock:
            keys = self._store.get(_CACHE_KEY)
            if keys is not None:
                return keys
            keys = await self._fetch()
            self._store.set(_CACHE_KEY, keys, self.ttl_seconds)
            logger.info("Fetched %d verification key(s) from %s", len(keys), self.url)
            return keys

    async def _fetch(self) -> KeySet:
        self.fetch_count += 1
        try:
            if self._http is not None:
                resp = await self._http.get(self.url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(self.url)
            resp.raise_for_status()
            doc = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Verification key fetch failed: %s", e)
            raise KeyFetchError(f"Failed to fetch verification keys: {e}") from e

        keys = normalize_key_set(doc)
        if not keys:
            raise KeyFetchError("Key set document contained no usable keys")
        return keys


__all__ = ["KeyCache", "KeyFetchError", "KeySet", "normalize_key_set"]
