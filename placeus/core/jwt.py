# placeus/core/jwt.py
from __future__ import annotations

"""
Placeus · identity-token verification
=====================================
- `get_bearer_token` pulls the credential from `Authorization`
  (`Bearer <token>` or the bare token the SPA sends)
- `verify_token` checks signature, `kid`, algorithm, audience, issuer and
  exp/nbf/iat against a fetched key set
- `get_current_claims` is the FastAPI dependency guarding comment mutations

Notes
-----
- Tokens are never minted here; the identity provider signs them.
- Every verification failure raises `InvalidTokenException` with the same
  body. The reason is only logged.
"""

from typing import Any, Dict, Mapping, Sequence
import logging

from fastapi import Request
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError

from placeus.core.config import Settings, settings as default_settings
from placeus.core.exceptions import (
    InvalidTokenException,
    ServiceUnavailableException,
    UnauthenticatedException,
)
from placeus.schemas.auth import TokenClaims
from placeus.services.jwks_service import KeyFetchError

logger = logging.getLogger("auth")


# ─────────────────────────────────────────────────────────────
# 📥 Extract the credential
# ─────────────────────────────────────────────────────────────
def get_bearer_token(request: Request) -> str:
    """Return the raw token from `Authorization`.

    Accepts `Bearer <token>` (scheme is case-insensitive) or the token alone.
    A missing or blank header raises `UnauthenticatedException`.
    """
    auth_header = (request.headers.get("Authorization") or "").strip()
    if not auth_header:
        logger.info("Missing Authorization header.")
        raise UnauthenticatedException()

    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    if len(parts) == 1 and parts[0].lower() != "bearer":
        return parts[0]

    # "Bearer" with nothing after it, or extra whitespace-separated junk
    logger.info("Malformed Authorization header.")
    raise InvalidTokenException()


# ─────────────────────────────────────────────────────────────
# 🔐 Verify
# ─────────────────────────────────────────────────────────────
def verify_token(
    raw: str,
    keys: Mapping[str, Any],
    *,
    audience: str,
    issuer: str,
    algorithms: Sequence[str] = ("RS256",),
) -> Dict[str, Any]:
    """Decode and validate an identity token.

    Security checks
    ---------------
    1) Header names a `kid` present in `keys` and an allowed `alg`
    2) Signature verifies with that key
    3) `aud` / `iss` equal the expected values
    4) `exp` / `nbf` / `iat` are valid now

    Raises
    ------
    InvalidTokenException
        On any failure (malformed, unknown key, mismatch, expired).
    """
    try:
        header = jwt.get_unverified_header(raw)
    except JOSEError as e:
        logger.info("Token rejected: unreadable header (%s)", e)
        raise InvalidTokenException()

    kid = header.get("kid")
    alg = header.get("alg")
    if alg not in set(algorithms):
        logger.info("Token rejected: algorithm %r not allowed", alg)
        raise InvalidTokenException()
    if not kid or kid not in keys:
        logger.info("Token rejected: unknown kid %r", kid)
        raise InvalidTokenException()

    try:
        return jwt.decode(
            raw,
            keys[kid],
            algorithms=[alg],
            audience=audience,
            issuer=issuer,
        )
    except ExpiredSignatureError:
        logger.info("Token rejected: expired")
        raise InvalidTokenException()
    except (JOSEError, ValueError, TypeError) as e:
        logger.info("Token rejected: %s", e)
        raise InvalidTokenException()


# ─────────────────────────────────────────────────────────────
# 🧩 FastAPI dependency
# ─────────────────────────────────────────────────────────────
def _settings_for(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or default_settings


async def get_current_claims(request: Request) -> TokenClaims:
    """Authenticate the caller; returns verified claims.

    The key cache lives at `request.app.state.key_cache`. When the key
    endpoint is unreachable the request fails with 503 rather than 401.
    """
    token = get_bearer_token(request)
    cfg = _settings_for(request)

    try:
        keys = await request.app.state.key_cache.get_keys()
    except KeyFetchError:
        raise ServiceUnavailableException("Identity keys unavailable")

    payload = verify_token(
        token,
        keys,
        audience=cfg.auth_audience,
        issuer=cfg.auth_issuer,
        algorithms=cfg.auth_algorithms_list,
    )
    claims = TokenClaims(**payload)
    logger.debug("Authenticated sub=%s", claims.sub)
    return claims


__all__ = [
    "get_bearer_token",
    "verify_token",
    "get_current_claims",
]
