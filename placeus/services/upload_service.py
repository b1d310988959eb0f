from __future__ import annotations

"""
Upload intake
-------------
Persists one uploaded video + thumbnail + metadata record under a fresh
lesson id, in that order.

Contract
--------
- Tag parsing happens before any write; malformed tags raise
  `ValidationException` with nothing stored.
- The three writes are sequential and not rolled back: a failure on the
  second or third leaves a partial item and the `S3StorageError` propagates.
- Transcoding is not started here; the router hands the returned
  `IntakeResult` to the worker pool once the response is produced.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Union

from placeus.core.exceptions import ValidationException
from placeus.core.storage import MediaLayout
from placeus.schemas.media import DEFAULT_TITLE, MediaMetadata, UploadOut
from placeus.services.object_store import ObjectStoreProtocol, put_json

logger = logging.getLogger(__name__)

_DEFAULT_VIDEO_TYPE = "application/octet-stream"
_DEFAULT_IMAGE_TYPE = "application/octet-stream"


def parse_tags(raw: Optional[str]) -> List[str]:
    """Decode the `tags` form field: a JSON array of strings.

    Absent or blank input yields `[]`. Anything else that is not a JSON list
    of strings raises `ValidationException`.
    """
    if raw is None or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        raise ValidationException("tags must be a JSON array of strings")
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise ValidationException("tags must be a JSON array of strings")
    return value


def normalize_title(raw: Optional[str]) -> str:
    """Any non-empty title is kept as sent; absent or empty becomes "Untitled"."""
    return raw or DEFAULT_TITLE


@dataclass
class UploadedFile:
    """One multipart part, fully read into memory."""

    filename: Optional[str]
    content_type: Optional[str]
    data: Union[bytes, bytearray]


@dataclass
class IntakeResult:
    response: UploadOut
    media_key: str


class UploadService:
    def __init__(self, store: ObjectStoreProtocol, layout: MediaLayout) -> None:
        self.store = store
        self.layout = layout

    async def intake(
        self,
        video: UploadedFile,
        thumbnail: UploadedFile,
        *,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> IntakeResult:
        lesson_id = str(uuid.uuid4())
        title = normalize_title(title)
        tags = list(tags or [])

        media_key = self.layout.video_key(lesson_id, video.filename)
        thumb_key = self.layout.thumbnail_key(lesson_id, thumbnail.filename)

        video_url = await self.store.put(
            media_key, video.data, video.content_type or _DEFAULT_VIDEO_TYPE
        )
        thumbnail_url = await self.store.put(
            thumb_key, thumbnail.data, thumbnail.content_type or _DEFAULT_IMAGE_TYPE
        )
        metadata = MediaMetadata(
            title=title, tags=tags, video_url=video_url, thumbnail_url=thumbnail_url
        )
        await put_json(self.store, self.layout.metadata_key(lesson_id), metadata.dump())

        logger.info("Stored upload %s (%d bytes, %d tags)", lesson_id, len(video.data), len(tags))
        return IntakeResult(
            response=UploadOut(
                lesson_id=lesson_id,
                title=title,
                tags=tags,
                video_url=video_url,
                thumbnail_url=thumbnail_url,
            ),
            media_key=media_key,
        )


__all__ = ["UploadService", "UploadedFile", "IntakeResult", "parse_tags", "normalize_title"]
