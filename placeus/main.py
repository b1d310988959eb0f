# placeus/main.py
from __future__ import annotations

"""
# Placeus API · Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the Placeus video-course backend.

## Design Goals
- Deterministic, testable **app factory** (`create_app`) with explicit lifespan.
- Collaborators (object store, key cache, transcoder runner) are injectable;
  when no store is given the lifespan builds the S3 gateway and fails fast
  on missing bucket configuration.
- Explicit **middleware order**:
  1) request id → 2) security headers → 3) CORS → 4) gzip → 5) rate limits →
  6) strip `Server` header.
- Centralized exception handling with one JSON error shape.

## Probes
- `/healthz`: liveness (process up).
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional
import logging

from fastapi import FastAPI, Request
from starlette.middleware.gzip import GZipMiddleware
from starlette.responses import JSONResponse, Response

from placeus.core.logger import setup_logging
from placeus.middleware.request_id import RequestIDMiddleware
from placeus.security_headers import configure_cors, install_security
from placeus.core.limiter import install_rate_limiter
from placeus.core.config import Settings, settings as default_settings
from placeus.core.exception_handlers import install_exception_handlers
from placeus.core.storage import MediaLayout
from placeus.api.routers import build_router
from placeus.services.catalog_service import CatalogService
from placeus.services.comment_service import CommentService
from placeus.services.jwks_service import KeyCache
from placeus.services.object_store import ObjectStore, ObjectStoreProtocol
from placeus.services.transcode.orchestrator import TranscodeOrchestrator
from placeus.services.transcode.runner import FFmpegRunner, ProcessRunner
from placeus.services.transcode.worker import TranscodeWorkerPool
from placeus.services.upload_service import UploadService
from placeus.utils.aws import S3Client

logger = logging.getLogger("placeus")


# ─────────────────────────────────────────────────────────────────────────────
# 🧩 Service wiring
# ─────────────────────────────────────────────────────────────────────────────
def wire_services(
    app: FastAPI,
    cfg: Settings,
    store: ObjectStoreProtocol,
    *,
    runner: Optional[ProcessRunner] = None,
) -> None:
    """Build the service graph over `store` and attach it to `app.state`."""
    layout = MediaLayout(prefix=cfg.MEDIA_PREFIX)
    comments = CommentService(store, layout, max_length=cfg.MAX_COMMENT_LENGTH)
    orchestrator = TranscodeOrchestrator(
        store,
        runner or FFmpegRunner(),
        layout,
        scratch_root=cfg.TRANSCODE_SCRATCH_DIR,
        binary=cfg.TRANSCODER_BINARY,
        timeout=cfg.TRANSCODE_TIMEOUT_SECONDS,
    )

    app.state.store = store
    app.state.layout = layout
    app.state.comment_service = comments
    app.state.catalog_service = CatalogService(store, layout, comments)
    app.state.upload_service = UploadService(store, layout)
    app.state.transcode_pool = TranscodeWorkerPool(
        orchestrator,
        store,
        layout,
        concurrency=cfg.TRANSCODE_CONCURRENCY,
        max_attempts=cfg.TRANSCODE_MAX_ATTEMPTS,
        base_delay=cfg.TRANSCODE_RETRY_BASE_DELAY,
    )


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifecycle manager.

    Startup:
        - Build the S3 gateway unless a store was injected; missing bucket or
          region raises `ConfigurationError` and aborts startup.
        - Start the transcode worker pool.

    Shutdown:
        - Drain pending transcodes for up to `TRANSCODE_SHUTDOWN_GRACE_SECONDS`.
    """
    cfg: Settings = app.state.settings
    logger.info("✅ %s starting up (env=%s)", cfg.PROJECT_NAME, cfg.ENV)

    if getattr(app.state, "upload_service", None) is None:
        cfg.require_storage()
        client = S3Client(
            cfg.AWS_BUCKET_NAME,
            region_name=cfg.AWS_REGION,
            endpoint_url=cfg.AWS_S3_ENDPOINT_URL,
        )
        wire_services(app, cfg, ObjectStore(client), runner=app.state.runner)
        logger.info("🔌 Object store ready: %r", client)

    pool: TranscodeWorkerPool = app.state.transcode_pool
    pool.start()
    try:
        yield
    finally:
        await pool.stop(grace=cfg.TRANSCODE_SHUTDOWN_GRACE_SECONDS)
        logger.info("🛑 %s shutting down", cfg.PROJECT_NAME)


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    *,
    app_settings: Optional[Settings] = None,
    store: Optional[ObjectStoreProtocol] = None,
    key_cache: Optional[KeyCache] = None,
    runner: Optional[ProcessRunner] = None,
) -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Args:
        app_settings: settings override (defaults to the process singleton).
        store: object store to use instead of S3 (tests pass an in-memory fake).
        key_cache: verification key cache (defaults to one over `AUTH_KEYS_URL`).
        runner: transcoder process runner (defaults to `FFmpegRunner`).
    """
    setup_logging()
    cfg = app_settings or default_settings

    docs_url = "/docs" if cfg.ENABLE_DOCS else None
    redoc_url = "/redoc" if cfg.ENABLE_DOCS else None
    openapi_url = "/openapi.json" if cfg.ENABLE_DOCS else None

    app = FastAPI(
        title=cfg.PROJECT_NAME,
        version=cfg.VERSION,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.runner = runner
    app.state.key_cache = key_cache or KeyCache(
        cfg.AUTH_KEYS_URL,
        ttl_seconds=cfg.AUTH_KEYS_TTL_SECONDS,
        timeout=cfg.AUTH_KEYS_FETCH_TIMEOUT,
    )
    app.state.upload_service = None
    if store is not None:
        wire_services(app, cfg, store, runner=runner)

    # ── Middlewares (order matters) ─────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)  # 1) Correlation ID
    install_security(app)  # 2) Security headers
    configure_cors(app, origins=cfg.cors_origins_list)  # 3) CORS allow-list
    app.add_middleware(GZipMiddleware, minimum_size=1024)  # 4) GZip
    install_rate_limiter(app)  # 5) SlowAPI middleware + 429 handler

    # 6) Strip the Server header at the end of the chain
    @app.middleware("http")
    async def _strip_server_header(request: Request, call_next: Callable) -> Response:
        response: Response = await call_next(request)
        if "server" in response.headers:
            del response.headers["server"]
        return response

    install_exception_handlers(app)

    # ── Routers (mounted at the root path) ──────────────────────────────────
    app.include_router(build_router())

    # ── Meta endpoints ──────────────────────────────────────────────────────
    @app.get("/healthz", tags=["meta"])  # listed in RATE_LIMIT_SKIP_PATHS
    async def healthz() -> dict[str, bool]:
        """Liveness probe. No external checks."""
        return {"ok": True}

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        body = {
            "message": "Hello welcome to placeus",
            "name": cfg.PROJECT_NAME,
            "docs": app.docs_url or "",
            "version": cfg.VERSION,
        }
        return JSONResponse(body)

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "wire_services", "app"]


# Local dev runner (prefer: `uvicorn placeus.main:app --reload`)
if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "placeus.main:app",
        host="0.0.0.0",
        port=default_settings.PORT,
        reload=os.getenv("RELOAD", "0") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
