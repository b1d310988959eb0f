from __future__ import annotations

import asyncio

import pytest
from httpx import AsyncClient

from placeus.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from placeus.core.storage import MediaLayout
from placeus.schemas.auth import TokenClaims
from placeus.services.comment_service import CommentService
from tests.fixtures.mocks.storage import InMemoryObjectStore

ALICE = TokenClaims(name="Alice", email="alice@example.com")
BOB = TokenClaims(name="Bob", email="bob@example.com")


def _service(store: InMemoryObjectStore, **kw) -> CommentService:
    return CommentService(store, MediaLayout("courses"), **kw)


# ─────────────────────────────────────────────────────────────
# Service
# ─────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_add_then_list_and_absent_collection_is_empty():
    store = InMemoryObjectStore()
    svc = _service(store)
    assert await svc.list_comments("L1") == []

    c = await svc.add_comment("L1", "  great lesson  ", ALICE)
    assert c.text == "great lesson"
    assert c.author == "Alice"
    assert c.timestamp.endswith("Z")
    assert f"courses/L1/comments/{c.id}.json" in store.objects

    listed = await svc.list_comments("L1")
    assert [x.id for x in listed] == [c.id]


@pytest.mark.anyio
async def test_author_falls_back_to_email():
    svc = _service(InMemoryObjectStore())
    c = await svc.add_comment("L1", "hi", TokenClaims(email="anon@example.com"))
    assert c.author == "anon@example.com"


@pytest.mark.anyio
async def test_concurrent_adds_both_survive():
    store = InMemoryObjectStore()
    svc = _service(store)
    a, b = await asyncio.gather(
        svc.add_comment("L1", "first", ALICE), svc.add_comment("L1", "second", BOB)
    )
    ids = {x.id for x in await svc.list_comments("L1")}
    assert ids == {a.id, b.id}


@pytest.mark.anyio
async def test_listing_is_ordered_by_timestamp_then_id():
    store = InMemoryObjectStore()
    for cid, ts in [("b", "2024-01-02T00:00:00.000Z"), ("a", "2024-01-02T00:00:00.000Z"), ("c", "2024-01-01T00:00:00.000Z")]:
        store.seed_json(f"courses/L1/comments/{cid}.json", {"id": cid, "text": cid, "author": "A", "timestamp": ts})
    assert [c.id for c in await _service(store).list_comments("L1")] == ["c", "a", "b"]


@pytest.mark.anyio
@pytest.mark.parametrize("text", ["", "   ", "x" * 11])
async def test_blank_or_oversized_text_is_rejected(text):
    store = InMemoryObjectStore()
    with pytest.raises(ValidationException):
        await _service(store, max_length=10).add_comment("L1", text, ALICE)
    assert store.objects == {}


@pytest.mark.anyio
async def test_delete_rules():
    store = InMemoryObjectStore()
    svc = _service(store)
    c = await svc.add_comment("L1", "mine", ALICE)

    with pytest.raises(NotFoundException):
        await svc.delete_comment("L1", "missing", ALICE)
    with pytest.raises(ForbiddenException):
        await svc.delete_comment("L1", c.id, BOB)

    # stored author may be the email when the token had no name
    await svc.delete_comment("L1", c.id, TokenClaims(email="someone@x", name="Alice"))
    assert await svc.list_comments("L1") == []


# ─────────────────────────────────────────────────────────────
# HTTP
# ─────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_comment_lifecycle_over_http(async_client: AsyncClient, auth_headers):
    r = await async_client.get("/videos/L1/comments")
    assert r.status_code == 200 and r.json() == []

    r = await async_client.post("/videos/L1/comments", json={"text": "Nice"}, headers=auth_headers(raw=True))
    assert r.status_code == 201, r.text
    comment = r.json()
    assert comment["author"] == "Alice"
    assert set(comment) == {"id", "text", "author", "timestamp"}
    assert r.headers["Cache-Control"] == "no-store"

    r = await async_client.get("/videos/L1/comments")
    assert [c["id"] for c in r.json()] == [comment["id"]]

    bob = auth_headers(name="Bob", email="bob@example.com", sub="uid-bob")
    r = await async_client.delete(f"/videos/L1/comments/{comment['id']}", headers=bob)
    assert r.status_code == 403
    assert r.json()["message"] == "You are not authorized to delete this comment"

    r = await async_client.delete(f"/videos/L1/comments/{comment['id']}", headers=auth_headers())
    assert r.status_code == 204
    assert r.content == b""

    r = await async_client.delete(f"/videos/L1/comments/{comment['id']}", headers=auth_headers())
    assert r.status_code == 404


@pytest.mark.anyio
async def test_mutations_require_a_token(async_client: AsyncClient, store: InMemoryObjectStore):
    r = await async_client.post("/videos/L1/comments", json={"text": "hi"})
    assert r.status_code == 401
    assert r.json()["message"] == "No token provided"
    assert r.headers["WWW-Authenticate"] == "Bearer"

    r = await async_client.delete("/videos/L1/comments/abc")
    assert r.status_code == 401
    assert store.objects == {}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "other-project"},
        {"iss": "https://securetoken.google.com/other-project"},
        {"exp": 1_000_000, "iat": 999_000},
        {"kid": "unknown-kid"},
    ],
)
async def test_invalid_tokens_share_one_401_body(async_client: AsyncClient, make_token, overrides):
    token = make_token(**overrides)
    r = await async_client.post("/videos/L1/comments", json={"text": "hi"}, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    body = r.json()
    assert body["error"] == "InvalidToken"
    assert body["message"] == "Invalid token"


@pytest.mark.anyio
async def test_key_endpoint_down_is_503(async_client: AsyncClient, key_cache, auth_headers):
    key_cache.fail = True
    r = await async_client.post("/videos/L1/comments", json={"text": "hi"}, headers=auth_headers())
    assert r.status_code == 503


@pytest.mark.anyio
async def test_reads_do_not_touch_the_key_cache(async_client: AsyncClient, key_cache):
    await async_client.get("/videos/L1/comments")
    assert key_cache.calls == 0
