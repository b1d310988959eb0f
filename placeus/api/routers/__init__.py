"""
🧭 Placeus · Router Aggregator
=============================

Quick usage
-----------
    from placeus.api.routers import build_router
    app.include_router(build_router())

Auth and rate limits live in the child routers.
"""

from fastapi import APIRouter

from .comments import router as comments_router
from .upload import router as upload_router
from .videos import router as videos_router


def build_router() -> APIRouter:
    """Compose the public HTTP surface (mounted at the root path)."""
    router = APIRouter()
    router.include_router(upload_router)
    router.include_router(videos_router)
    router.include_router(comments_router)
    return router


__all__ = ["build_router", "upload_router", "videos_router", "comments_router"]
