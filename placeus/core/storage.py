from __future__ import annotations

"""
Placeus • S3 Layout
===================

Documented key layout (single bucket, one prefix per uploaded item):

    s3://{bucket}/
      {media_prefix}/{lesson_id}/video.{ext}          original upload
      {media_prefix}/{lesson_id}/thumbnail.{ext}      thumbnail image
      {media_prefix}/{lesson_id}/metadata.json        {title, tags, videoUrl, thumbnailUrl}
      {media_prefix}/{lesson_id}/transcode.json       transcode job record
      {media_prefix}/{lesson_id}/index.m3u8           HLS manifest
      {media_prefix}/{lesson_id}/segment{NNN}.ts      HLS segments
      {media_prefix}/{lesson_id}/comments/{id}.json   one object per comment

`media_prefix` is `settings.MEDIA_PREFIX` ("courses" by default).
"""

from dataclasses import dataclass
from pathlib import PurePosixPath

METADATA_NAME = "metadata.json"
JOB_RECORD_NAME = "transcode.json"
MANIFEST_NAME = "index.m3u8"
SEGMENT_PATTERN = "segment%03d.ts"
COMMENTS_DIR = "comments"


def safe_extension(filename: str | None) -> str:
    """Lower-cased extension of `filename` including the dot, or "" when absent."""
    suffix = PurePosixPath((filename or "").replace("\\", "/")).suffix.lower()
    if not suffix or len(suffix) > 10 or not suffix[1:].isalnum():
        return ""
    return suffix


@dataclass(frozen=True)
class MediaLayout:
    """Key builder for one media prefix."""

    prefix: str = "courses"

    @property
    def root(self) -> str:
        return f"{self.prefix}/"

    def item_key(self, lesson_id: str, name: str) -> str:
        return f"{self.prefix}/{lesson_id}/{name}"

    def video_key(self, lesson_id: str, filename: str | None) -> str:
        return self.item_key(lesson_id, f"video{safe_extension(filename)}")

    def thumbnail_key(self, lesson_id: str, filename: str | None) -> str:
        return self.item_key(lesson_id, f"thumbnail{safe_extension(filename)}")

    def metadata_key(self, lesson_id: str) -> str:
        return self.item_key(lesson_id, METADATA_NAME)

    def job_key(self, lesson_id: str) -> str:
        return self.item_key(lesson_id, JOB_RECORD_NAME)

    def comments_prefix(self, lesson_id: str) -> str:
        return self.item_key(lesson_id, f"{COMMENTS_DIR}/")

    def comment_key(self, lesson_id: str, comment_id: str) -> str:
        return self.item_key(lesson_id, f"{COMMENTS_DIR}/{comment_id}.json")

    def lesson_id_from_prefix(self, child_prefix: str) -> str | None:
        """`courses/<id>/` → `<id>`; None for anything that is not a direct child."""
        if not child_prefix.startswith(self.root):
            return None
        rest = child_prefix[len(self.root):].strip("/")
        if not rest or "/" in rest:
            return None
        return rest


__all__ = [
    "MediaLayout",
    "safe_extension",
    "METADATA_NAME",
    "JOB_RECORD_NAME",
    "MANIFEST_NAME",
    "SEGMENT_PATTERN",
]
