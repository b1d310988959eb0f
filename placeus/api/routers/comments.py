"""
💬 Placeus · Comments API
========================

Routes (3)
----------
- GET    /videos/{lessonId}/comments              → comments, oldest first (public)
- POST   /videos/{lessonId}/comments              → add a comment (token required)
- DELETE /videos/{lessonId}/comments/{commentId}  → delete own comment (token required)

Security
--------
- Mutations depend on `get_current_claims`; a missing header is 401 before any
  storage access, and every verification failure is the same 401 body.
- Only the author (claims `name` or `email`) may delete.
"""

from typing import List

from fastapi import APIRouter, Depends, Request, Response, status

from placeus.api.deps import get_comment_service
from placeus.api.http_utils import sanitize_id
from placeus.core.jwt import get_current_claims
from placeus.core.limiter import rate_limit
from placeus.schemas.auth import TokenClaims
from placeus.schemas.media import CommentIn, CommentOut
from placeus.security_headers import set_sensitive_cache
from placeus.services.comment_service import CommentService

router = APIRouter(tags=["Comments"])


@router.get("/videos/{lesson_id}/comments", summary="List comments", response_model=List[CommentOut])
@rate_limit("120/minute")
async def list_comments(
    lesson_id: str,
    request: Request,
    comments: CommentService = Depends(get_comment_service),
) -> List[CommentOut]:
    return await comments.list_comments(sanitize_id(lesson_id, field="lessonId"))


@router.post(
    "/videos/{lesson_id}/comments",
    summary="Add a comment",
    status_code=status.HTTP_201_CREATED,
    response_model=CommentOut,
)
@rate_limit("30/minute")
async def add_comment(
    lesson_id: str,
    payload: CommentIn,
    request: Request,
    response: Response,
    claims: TokenClaims = Depends(get_current_claims),
    comments: CommentService = Depends(get_comment_service),
) -> CommentOut:
    set_sensitive_cache(response)
    return await comments.add_comment(sanitize_id(lesson_id, field="lessonId"), payload.text, claims)


@router.delete(
    "/videos/{lesson_id}/comments/{comment_id}",
    summary="Delete own comment",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
@rate_limit("30/minute")
async def delete_comment(
    lesson_id: str,
    comment_id: str,
    request: Request,
    claims: TokenClaims = Depends(get_current_claims),
    comments: CommentService = Depends(get_comment_service),
) -> Response:
    await comments.delete_comment(
        sanitize_id(lesson_id, field="lessonId"),
        sanitize_id(comment_id, field="commentId"),
        claims,
    )
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    set_sensitive_cache(response)
    return response
