from __future__ import annotations

"""
Placeus • Media Schemas
=======================

Wire models for uploads, catalog entries, comments and transcode job records.

Design
------
- Python attributes are snake_case; JSON (responses and stored records) is
  camelCase via `to_camel`, matching what the SPA already consumes.
- Stored metadata keeps exactly `{title, tags, videoUrl, thumbnailUrl}`.
- Comment timestamps are kept as ISO-8601 strings so the stored value is
  returned verbatim.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_TITLE = "Untitled"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a `Z` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# === Enums ================================================================

class TranscodeStatus(str, PyEnum):
    """Lifecycle of a background transcode job."""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# === Stored records =======================================================

class MediaMetadata(CamelModel):
    """Record stored at `<prefix>/<lessonId>/metadata.json`."""
    title: str = DEFAULT_TITLE
    tags: List[str] = Field(default_factory=list)
    video_url: str
    thumbnail_url: str


class TranscodeJobRecord(CamelModel):
    """Record stored at `<prefix>/<lessonId>/transcode.json`."""
    status: TranscodeStatus
    attempts: int = 0
    updated_at: str = Field(default_factory=utc_timestamp)
    error: Optional[str] = None
    artifacts: List[str] = Field(default_factory=list)


class CommentRecord(CamelModel):
    """One comment; stored as `<prefix>/<lessonId>/comments/<id>.json`."""
    id: str
    text: str
    author: str
    timestamp: str


# === API models ===========================================================

class UploadOut(CamelModel):
    message: str = "Upload successful. Processing video..."
    lesson_id: str
    title: str
    tags: List[str]
    video_url: str
    thumbnail_url: str


class VideoOut(CamelModel):
    lesson_id: str
    title: str = DEFAULT_TITLE
    tags: List[str] = Field(default_factory=list)
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    comment_count: int = 0
    transcode_status: Optional[TranscodeStatus] = None


class CommentIn(BaseModel):
    text: str = Field(..., min_length=1)


CommentOut = CommentRecord


__all__ = [
    "DEFAULT_TITLE",
    "TranscodeStatus",
    "MediaMetadata",
    "TranscodeJobRecord",
    "CommentRecord",
    "UploadOut",
    "VideoOut",
    "CommentIn",
    "CommentOut",
    "utc_timestamp",
]
