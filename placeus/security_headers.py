# placeus/security_headers.py
from __future__ import annotations

"""
# Placeus · Security Headers & CORS

## What you get
- **Headers**: HSTS (production only), X-Content-Type-Options, X-Frame-Options,
  Referrer-Policy, Cross-Origin-Opener-Policy, X-Permitted-Cross-Domain-Policies.
- **CORS installer**: fixed allow-list from `settings.BACKEND_CORS_ORIGINS`.
- **Cache helper**: `set_sensitive_cache()` for authenticated responses.

## Quick start
    from placeus.security_headers import install_security, configure_cors

    app = FastAPI()
    install_security(app)
    configure_cors(app)
"""

import os
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from fastapi import Response
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from placeus.core.config import settings


@dataclass(frozen=True)
class SecurityHeadersConfig:
    """Runtime configuration for security headers (env-driven)."""

    hsts_enabled: bool = field(default_factory=lambda: settings.is_production)
    hsts_max_age: int = int(os.getenv("HSTS_MAX_AGE", "31536000"))
    referrer_policy: str = os.getenv("REFERRER_POLICY", "strict-origin-when-cross-origin")
    coop: str = os.getenv("CROSS_ORIGIN_OPENER_POLICY", "same-origin")
    skip_paths_csv: str = os.getenv("SECURITY_SKIP_PATHS", "/docs,/redoc,/openapi.json")


class SecurityHeadersMiddleware:
    """Apply security headers idempotently on every HTTP response."""

    def __init__(self, app: ASGIApp, cfg: Optional[SecurityHeadersConfig] = None) -> None:
        self.app = app
        self.cfg = cfg or SecurityHeadersConfig()
        self._skip_prefixes: Tuple[str, ...] = tuple(
            p.strip() for p in (self.cfg.skip_paths_csv or "").split(",") if p.strip()
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http" or scope.get("path", "").startswith(self._skip_prefixes):
            return await self.app(scope, receive, send)

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                raw_headers: List[Tuple[bytes, bytes]] = list(message.get("headers", []))
                _apply_headers_to_raw(raw_headers, self.cfg)
                message["headers"] = raw_headers
            await send(message)

        await self.app(scope, receive, send_wrapper)


def _has_header(raw_headers: List[Tuple[bytes, bytes]], name: str) -> bool:
    lname = name.lower().encode("latin-1")
    return any(h[0].lower() == lname for h in raw_headers)


def _ensure(raw_headers: List[Tuple[bytes, bytes]], name: str, value: str) -> None:
    if not _has_header(raw_headers, name):
        raw_headers.append((name.encode("latin-1"), value.encode("latin-1")))


def _apply_headers_to_raw(raw_headers: List[Tuple[bytes, bytes]], cfg: SecurityHeadersConfig) -> None:
    if cfg.hsts_enabled:
        _ensure(raw_headers, "Strict-Transport-Security", f"max-age={cfg.hsts_max_age}; includeSubDomains")
    _ensure(raw_headers, "X-Content-Type-Options", "nosniff")
    _ensure(raw_headers, "X-Frame-Options", "DENY")
    _ensure(raw_headers, "Referrer-Policy", cfg.referrer_policy)
    _ensure(raw_headers, "Cross-Origin-Opener-Policy", cfg.coop)
    _ensure(raw_headers, "X-Permitted-Cross-Domain-Policies", "none")


def set_sensitive_cache(response: Response) -> None:
    """Mark an authenticated response as non-cacheable (idempotent)."""
    response.headers.setdefault("Cache-Control", "no-store")
    response.headers.setdefault("Pragma", "no-cache")
    response.headers.setdefault("Expires", "0")


def configure_cors(
    app,
    *,
    origins: Optional[Iterable[str]] = None,
    allow_credentials: bool = True,
) -> None:
    """Install CORS restricted to the configured origin allow-list."""
    allowed = list(origins) if origins is not None else settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["Location", "Retry-After", "X-Request-ID"],
        max_age=3600,
    )


def install_security(app) -> None:
    app.add_middleware(SecurityHeadersMiddleware)


__all__ = [
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "install_security",
    "configure_cors",
    "set_sensitive_cache",
]
