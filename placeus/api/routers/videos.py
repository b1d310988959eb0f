"""
🎬 Placeus · Catalog API
=======================

Routes (2)
----------
- GET /videos              → every item with readable metadata
- GET /videos/{lessonId}   → one item, or 404
"""

from typing import List

from fastapi import APIRouter, Depends, Request

from placeus.api.deps import get_catalog_service
from placeus.api.http_utils import sanitize_id
from placeus.core.limiter import rate_limit
from placeus.schemas.media import VideoOut
from placeus.services.catalog_service import CatalogService

router = APIRouter(tags=["Videos"])


@router.get("/videos", summary="List videos", response_model=List[VideoOut])
@rate_limit("120/minute")
async def list_videos(
    request: Request,
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[VideoOut]:
    return await catalog.list_items()


@router.get("/videos/{lesson_id}", summary="Get one video", response_model=VideoOut)
@rate_limit("120/minute")
async def get_video(
    lesson_id: str,
    request: Request,
    catalog: CatalogService = Depends(get_catalog_service),
) -> VideoOut:
    return await catalog.get_item(sanitize_id(lesson_id, field="lessonId"))
