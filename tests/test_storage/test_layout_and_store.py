from __future__ import annotations

import pytest

from placeus.core.storage import MediaLayout, safe_extension
from placeus.services.object_store import ObjectStore, get_json, put_json
from placeus.utils.aws import ObjectNotFoundError
from tests.fixtures.mocks.storage import InMemoryObjectStore


def test_layout_keys():
    layout = MediaLayout("courses")
    assert layout.video_key("L1", "Intro.MP4") == "courses/L1/video.mp4"
    assert layout.thumbnail_key("L1", "thumb.png") == "courses/L1/thumbnail.png"
    assert layout.metadata_key("L1") == "courses/L1/metadata.json"
    assert layout.job_key("L1") == "courses/L1/transcode.json"
    assert layout.comment_key("L1", "c1") == "courses/L1/comments/c1.json"
    assert layout.lesson_id_from_prefix("courses/L1/") == "L1"
    assert layout.lesson_id_from_prefix("courses/L1/comments/") is None
    assert layout.lesson_id_from_prefix("other/L1/") is None


@pytest.mark.parametrize(
    "name,ext",
    [("clip.mov", ".mov"), ("noext", ""), (None, ""), ("a.b.WEBM", ".webm"), ("evil.m p4", "")],
)
def test_safe_extension(name, ext):
    assert safe_extension(name) == ext


@pytest.mark.anyio
async def test_json_helpers_round_trip_and_missing():
    store = InMemoryObjectStore()
    url = await put_json(store, "courses/x/metadata.json", {"title": "Intro", "tags": ["java"]})
    assert url.endswith("/courses/x/metadata.json")
    assert store.content_type("courses/x/metadata.json") == "application/json"
    assert await get_json(store, "courses/x/metadata.json") == {"title": "Intro", "tags": ["java"]}

    with pytest.raises(ObjectNotFoundError):
        await get_json(store, "courses/missing/metadata.json")

    store.seed("courses/bad/metadata.json", b"{not json")
    with pytest.raises(ValueError):
        await get_json(store, "courses/bad/metadata.json")


@pytest.mark.anyio
async def test_object_store_offloads_to_sync_client():
    class _SyncClient:
        bucket = "b"

        def __init__(self):
            self.data = {}

        def put_bytes(self, key, data, *, content_type, cache_control=None):
            self.data[key] = data
            return f"https://b/{key}"

        def get_bytes(self, key):
            if key not in self.data:
                raise ObjectNotFoundError(key)
            return self.data[key]

        def list_prefixes(self, prefix, delimiter="/"):
            return {f"{prefix}a/"}

        def list_keys(self, prefix):
            return sorted(self.data)

        def delete(self, key):
            self.data.pop(key, None)

        def object_url(self, key):
            return f"https://b/{key}"

    gateway = ObjectStore(_SyncClient())
    assert gateway.bucket == "b"
    assert await gateway.put("k1", b"v", "text/plain") == "https://b/k1"
    assert await gateway.get("k1") == b"v"
    assert await gateway.list("courses/") == {"courses/a/"}
    assert await gateway.list_keys("") == ["k1"]
    await gateway.delete("k1")
    with pytest.raises(ObjectNotFoundError):
        await gateway.get("k1")
    assert gateway.url_for("k2") == "https://b/k2"
