import pytest
from fastapi.testclient import TestClient

from placeus.core.limiter import limiter, should_exempt_request
from placeus.main import create_app
from tests.fixtures.app import make_settings
from tests.fixtures.mocks.storage import InMemoryObjectStore
from tests.fixtures.mocks.transcoder import FakeRunner


@pytest.fixture()
def limited_client(tmp_path, key_cache, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "0")
    limiter.reset()
    app = create_app(
        app_settings=make_settings(tmp_path),
        store=InMemoryObjectStore(),
        key_cache=key_cache,
        runner=FakeRunner(),
    )
    with TestClient(app) as client:
        yield client
    limiter.reset()


def test_route_limit_answers_429_once_exhausted(limited_client: TestClient):
    for _ in range(120):
        assert limited_client.get("/videos").status_code == 200
    assert limited_client.get("/videos").status_code == 429


def test_health_probe_is_never_limited(limited_client: TestClient):
    for _ in range(130):
        assert limited_client.get("/healthz").status_code == 200


def test_bypass_flag_is_read_per_request(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "1")
    assert should_exempt_request(None)
    monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "0")
    assert not should_exempt_request(None)
