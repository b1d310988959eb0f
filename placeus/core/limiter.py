from __future__ import annotations

"""
Placeus · HTTP Rate Limiting (SlowAPI)
======================================

Highlights
----------
- Per-client-IP keying (X-Forwarded-For / X-Real-IP / client.host).
- Health/docs paths exempt.
- Test friendly: `RATE_LIMIT_TEST_BYPASS` disables limits when truthy; flags are
  re-read per request so tests can toggle them with monkeypatch.

Environment
-----------
RATE_LIMIT_ENABLED           default: "true"
DEFAULT_RATE_LIMIT           default: "100/minute"
RATELIMIT_STORAGE_URI        default: "memory://"
RATE_LIMIT_SKIP_PATHS        default: "/healthz,/docs,/openapi.json"
RATE_LIMIT_TEST_BYPASS       default: "" (truthy to bypass)

Usage
-----
    @router.post("/upload")
    @rate_limit("10/minute")
    async def upload(request: Request, ...): ...
"""

import os
from typing import Callable, List, Optional

from dotenv import load_dotenv
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request

load_dotenv()

DEFAULT_LIMIT = os.getenv("DEFAULT_RATE_LIMIT", "100/minute").strip()
STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "").strip() or "memory://"
SKIP_PATHS: List[str] = [
    p.strip()
    for p in os.getenv("RATE_LIMIT_SKIP_PATHS", "/healthz,/docs,/openapi.json").split(",")
    if p.strip()
]

_TRUTHY = {"1", "true", "yes", "on"}


def _client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = xff.split(",")[0].strip()
        if ip:
            return ip
    xri = request.headers.get("x-real-ip")
    if xri:
        return xri.strip()
    return get_remote_address(request) or "unknown"


def get_rate_limit_key(request: Request) -> str:
    return f"ip:{_client_ip(request)}"


def _limits_enabled() -> bool:
    return os.getenv("RATE_LIMIT_ENABLED", "true").strip().lower() in _TRUTHY


def should_exempt_request(request: Optional[Request]) -> bool:
    if not _limits_enabled():
        return True
    if os.getenv("RATE_LIMIT_TEST_BYPASS", "").strip().lower() in _TRUTHY:
        return True
    if request is None:
        return False
    path = request.url.path
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in SKIP_PATHS)


def _default_limits() -> List[str]:
    return [chunk.strip() for chunk in DEFAULT_LIMIT.split(",") if chunk.strip()]


def _exempt_when(request: Optional[Request] = None) -> bool:
    return should_exempt_request(request)


# Limits live on the routes (`rate_limit`) so `exempt_when` sees each request.
limiter = Limiter(
    key_func=get_rate_limit_key,
    storage_uri=STORAGE_URI,
    enabled=_limits_enabled(),
)


def rate_limit(*limits: str) -> Callable:
    """Apply per-route limits with Placeus exemptions.

    The decorated endpoint must accept a `request: Request` parameter.
    """
    selected = list(limits) if limits else _default_limits()

    def _apply(fn: Callable) -> Callable:
        for value in reversed(selected):
            fn = limiter.limit(value, exempt_when=_exempt_when)(fn)
        return fn

    return _apply


def install_rate_limiter(app) -> None:
    """Attach SlowAPI state, middleware and the 429 handler."""
    if not _limits_enabled():
        logger.info("RateLimiter disabled by env; middleware not installed")
        return
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.info("SlowAPI rate limiter installed | default={} storage={}", _default_limits(), STORAGE_URI)


__all__ = ["limiter", "rate_limit", "install_rate_limiter", "should_exempt_request"]
