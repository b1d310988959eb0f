from __future__ import annotations

"""Request-scoped accessors for the services wired onto `app.state` by `create_app`."""

from fastapi import Request

from placeus.core.config import Settings
from placeus.services.catalog_service import CatalogService
from placeus.services.comment_service import CommentService
from placeus.services.transcode.worker import TranscodeWorkerPool
from placeus.services.upload_service import UploadService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service


def get_transcode_pool(request: Request) -> TranscodeWorkerPool:
    return request.app.state.transcode_pool


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


def get_comment_service(request: Request) -> CommentService:
    return request.app.state.comment_service


__all__ = [
    "get_app_settings",
    "get_upload_service",
    "get_transcode_pool",
    "get_catalog_service",
    "get_comment_service",
]
