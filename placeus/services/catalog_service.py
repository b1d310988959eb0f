from __future__ import annotations

"""
Catalog reader
--------------
Lists items by enumerating `<prefix>/` child prefixes and reading each
`metadata.json` in parallel.

- An item whose metadata is missing, undecodable or unreadable from storage
  is left out and logged; one bad item never fails the listing.
- `commentCount` is counted live from the comment store.
- `transcodeStatus` comes from the job record, `None` when there is none.
"""

import asyncio
import logging
from typing import List, Optional

from placeus.core.exceptions import NotFoundException
from placeus.core.storage import MediaLayout
from placeus.schemas.media import MediaMetadata, TranscodeJobRecord, TranscodeStatus, VideoOut
from placeus.services.comment_service import CommentService
from placeus.services.object_store import ObjectStoreProtocol, get_json
from placeus.utils.aws import ObjectNotFoundError, S3StorageError

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(
        self,
        store: ObjectStoreProtocol,
        layout: MediaLayout,
        comments: CommentService,
    ) -> None:
        self.store = store
        self.layout = layout
        self.comments = comments

    async def _metadata(self, lesson_id: str) -> MediaMetadata:
        raw = await get_json(self.store, self.layout.metadata_key(lesson_id))
        return MediaMetadata.model_validate(raw)

    async def _transcode_status(self, lesson_id: str) -> Optional[TranscodeStatus]:
        try:
            raw = await get_json(self.store, self.layout.job_key(lesson_id))
            return TranscodeJobRecord.model_validate(raw).status
        except ObjectNotFoundError:
            return None
        except ValueError as e:
            logger.warning("Unreadable job record for %s: %s", lesson_id, e)
            return None

    async def _summary(self, lesson_id: str) -> VideoOut:
        meta = await self._metadata(lesson_id)
        count, status = await asyncio.gather(
            self.comments.count(lesson_id), self._transcode_status(lesson_id)
        )
        return VideoOut(
            lesson_id=lesson_id,
            title=meta.title,
            tags=meta.tags,
            video_url=meta.video_url,
            thumbnail_url=meta.thumbnail_url,
            comment_count=count,
            transcode_status=status,
        )

    async def _summary_or_none(self, lesson_id: str) -> Optional[VideoOut]:
        try:
            return await self._summary(lesson_id)
        except ObjectNotFoundError:
            logger.info("Skipping %s: no metadata yet", lesson_id)
        except ValueError as e:
            logger.warning("Skipping %s: unreadable metadata (%s)", lesson_id, e)
        except S3StorageError as e:
            logger.warning("Skipping %s: storage error (%s)", lesson_id, e)
        return None

    async def list_items(self) -> List[VideoOut]:
        prefixes = await self.store.list(self.layout.root, "/")
        ids = sorted(
            i for i in (self.layout.lesson_id_from_prefix(p) for p in prefixes) if i
        )
        results = await asyncio.gather(*(self._summary_or_none(i) for i in ids))
        return [r for r in results if r is not None]

    async def get_item(self, lesson_id: str) -> VideoOut:
        """One item; missing or undecodable metadata is a 404.

        Storage transport failures propagate.
        """
        try:
            return await self._summary(lesson_id)
        except ObjectNotFoundError:
            raise NotFoundException("Video not found")
        except ValueError as e:
            logger.warning("Unreadable metadata for %s: %s", lesson_id, e)
            raise NotFoundException("Video not found")


__all__ = ["CatalogService"]
