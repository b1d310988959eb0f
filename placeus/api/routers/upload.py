"""
📦 Placeus · Upload API
======================

Routes (1)
----------
- POST /upload → store video + thumbnail + metadata, respond 201, transcode in the background

Behavior
--------
- `tags` is a JSON array of strings; malformed input is a 400 before any write.
- Each file is capped at `MAX_UPLOAD_BYTES` (413) and must not be empty (400).
- The three storage writes are sequential; a failure answers 500 with no rollback.
- The transcode job is enqueued after the response is produced; its outcome is
  visible only through `transcodeStatus` on the catalog.
"""

# ─────────────────────────────────────────────────────────────────────────────
# 📦 Imports
# ─────────────────────────────────────────────────────────────────────────────
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status

from placeus.api.deps import get_app_settings, get_transcode_pool, get_upload_service
from placeus.api.http_utils import read_upload_capped
from placeus.core.config import Settings
from placeus.core.exceptions import StorageFailureException, ValidationException
from placeus.core.limiter import rate_limit
from placeus.schemas.media import UploadOut
from placeus.services.transcode.worker import TranscodeJob, TranscodeWorkerPool
from placeus.services.upload_service import UploadedFile, UploadService, parse_tags
from placeus.utils.aws import S3StorageError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Upload"])


async def _read_part(part: UploadFile, name: str, limit: int) -> UploadedFile:
    data = await read_upload_capped(part, limit)
    if not data:
        raise ValidationException(f"{name} is empty")
    return UploadedFile(filename=part.filename, content_type=part.content_type, data=data)


@router.post(
    "/upload",
    summary="Upload a video with its thumbnail",
    status_code=status.HTTP_201_CREATED,
    response_model=UploadOut,
)
@rate_limit("10/minute")
async def upload_video(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="Video file"),
    thumbnail: UploadFile = File(..., description="Thumbnail image"),
    title: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description='JSON array, e.g. ["java","aws"]'),
    cfg: Settings = Depends(get_app_settings),
    service: UploadService = Depends(get_upload_service),
    pool: TranscodeWorkerPool = Depends(get_transcode_pool),
) -> UploadOut:
    tag_list = parse_tags(tags)
    video = await _read_part(file, "file", cfg.MAX_UPLOAD_BYTES)
    thumb = await _read_part(thumbnail, "thumbnail", cfg.MAX_UPLOAD_BYTES)

    try:
        result = await service.intake(video, thumb, title=title, tags=tag_list)
    except S3StorageError as e:
        logger.error("Upload failed while storing objects: %s", e)
        raise StorageFailureException("Upload failed")

    background_tasks.add_task(
        pool.submit,
        TranscodeJob(lesson_id=result.response.lesson_id, media_key=result.media_key),
    )
    return result.response
