from __future__ import annotations

"""
Comment store
-------------
One object per comment at `<prefix>/<lesson_id>/comments/<comment_id>.json`.
Reads list the prefix and fetch each object; writes touch only their own
key, so concurrent adds never overwrite each other.
"""

import asyncio
import logging
import uuid
from typing import List, Optional

from placeus.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from placeus.core.storage import MediaLayout
from placeus.schemas.auth import TokenClaims
from placeus.schemas.media import CommentRecord, utc_timestamp
from placeus.services.object_store import ObjectStoreProtocol, get_json, put_json
from placeus.utils.aws import ObjectNotFoundError

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(
        self,
        store: ObjectStoreProtocol,
        layout: MediaLayout,
        *,
        max_length: int = 2000,
    ) -> None:
        self.store = store
        self.layout = layout
        self.max_length = max_length

    async def _comment_keys(self, lesson_id: str) -> List[str]:
        prefix = self.layout.comments_prefix(lesson_id)
        return [k for k in await self.store.list_keys(prefix) if k.endswith(".json")]

    async def count(self, lesson_id: str) -> int:
        return len(await self._comment_keys(lesson_id))

    async def _load(self, key: str) -> Optional[CommentRecord]:
        try:
            return CommentRecord.model_validate(await get_json(self.store, key))
        except ObjectNotFoundError:
            # deleted between list and get
            return None
        except ValueError as e:
            logger.warning("Skipping unreadable comment %s: %s", key, e)
            return None

    async def list_comments(self, lesson_id: str) -> List[CommentRecord]:
        """Comments for an item ordered by (timestamp, id); `[]` when none."""
        keys = await self._comment_keys(lesson_id)
        loaded = await asyncio.gather(*(self._load(k) for k in keys))
        comments = [c for c in loaded if c is not None]
        comments.sort(key=lambda c: (c.timestamp, c.id))
        return comments

    async def add_comment(self, lesson_id: str, text: str, claims: TokenClaims) -> CommentRecord:
        body = (text or "").strip()
        if not body:
            raise ValidationException("Comment text must not be empty")
        if len(body) > self.max_length:
            raise ValidationException(f"Comment text exceeds {self.max_length} characters")

        author = claims.display_name
        if not author:
            raise ValidationException("Token carries neither a name nor an email")

        comment = CommentRecord(
            id=str(uuid.uuid4()), text=body, author=author, timestamp=utc_timestamp()
        )
        await put_json(self.store, self.layout.comment_key(lesson_id, comment.id), comment.dump())
        logger.info("Comment %s added to %s", comment.id, lesson_id)
        return comment

    async def delete_comment(self, lesson_id: str, comment_id: str, claims: TokenClaims) -> None:
        """Remove a comment owned by the caller.

        Raises `NotFoundException` when absent and `ForbiddenException` when
        the stored author matches neither the caller's name nor email.
        """
        key = self.layout.comment_key(lesson_id, comment_id)
        try:
            comment = CommentRecord.model_validate(await get_json(self.store, key))
        except ObjectNotFoundError:
            raise NotFoundException("Comment not found")

        if not claims.is_author(comment.author):
            logger.info("Delete of comment %s refused for %s", comment_id, claims.display_name)
            raise ForbiddenException("You are not authorized to delete this comment")

        await self.store.delete(key)
        logger.info("Comment %s deleted from %s", comment_id, lesson_id)


__all__ = ["CommentService"]
