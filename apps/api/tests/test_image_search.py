import logging

import httpx
import pytest

from config import settings
from services import image_search
from services.image_search import fetch_image_for_query, pick_photo_url


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def pexels_key(monkeypatch):
    monkeypatch.setattr(settings, "PEXELS_API_KEY", "test-pexels-key")


@pytest.mark.asyncio
async def test_returns_landscape_url_and_sends_expected_query(pexels_key):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["params"] = dict(request.url.params)
        captured["auth"] = request.headers.get("authorization")
        return httpx.Response(
            200,
            json={"photos": [{"url": "https://pexels.com/p/1", "src": {"landscape": "https://img/land.jpg", "large": "https://img/large.jpg"}}]},
        )

    async with _client(handler) as client:
        url = await fetch_image_for_query("coffee shop", client=client, use_cache=False)

    assert url == "https://img/land.jpg"
    assert captured["params"] == {"query": "coffee shop", "per_page": "1", "orientation": "landscape"}
    assert captured["auth"] == "test-pexels-key"


@pytest.mark.asyncio
async def test_provider_error_degrades_to_none_with_warning(pexels_key, caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "unavailable"})

    caplog.set_level(logging.WARNING, logger=image_search.logger.name)
    async with _client(handler) as client:
        assert await fetch_image_for_query("bakery", client=client, use_cache=False) is None
    assert any("Pexels error" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_transport_failure_degrades_to_none(pexels_key):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    async with _client(handler) as client:
        assert await fetch_image_for_query("bakery", client=client, use_cache=False) is None


@pytest.mark.asyncio
async def test_missing_api_key_skips_provider():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        assert await fetch_image_for_query("anything", client=client, use_cache=False) is None
    assert calls == []


@pytest.mark.asyncio
async def test_cached_result_skips_provider(pexels_key, monkeypatch):
    async def cached(query):
        return "https://img/cached.jpg"

    monkeypatch.setattr(image_search, "_load_cached_image", cached)

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("provider should not be called")

    async with _client(handler) as client:
        assert await fetch_image_for_query("cafe", client=client) == "https://img/cached.jpg"


@pytest.mark.asyncio
async def test_fresh_result_is_written_to_cache(pexels_key, monkeypatch):
    stored = {}

    async def miss(query):
        return None

    async def store(query, url):
        stored[query] = url

    monkeypatch.setattr(image_search, "_load_cached_image", miss)
    monkeypatch.setattr(image_search, "_store_cached_image", store)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"photos": []})

    async with _client(handler) as client:
        assert await fetch_image_for_query("empty result", client=client) is None
    assert stored == {"empty result": None}


@pytest.mark.parametrize(
    "payload,expected",
    [
        ({"photos": [{"src": {"large": "L", "medium": "M"}}]}, "L"),
        ({"photos": [{"src": {}, "url": "page"}]}, "page"),
        ({"photos": []}, None),
        ({}, None),
    ],
)
def test_pick_photo_url_preference(payload, expected):
    assert pick_photo_url(payload) == expected


@pytest.mark.asyncio
async def test_image_route_requires_auth(client):
    response = await client.get("/images/search", params={"query": "cafe"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_image_route_without_key_returns_null(client, auth_headers):
    response = await client.get("/images/search", params={"query": "cafe"}, headers=auth_headers("img-user"))
    assert response.status_code == 200
    assert response.json() == {"query": "cafe", "url": None}


@pytest.mark.asyncio
async def test_cache_client_bounds_redis_socket_calls(monkeypatch):
    monkeypatch.setattr(settings, "IMAGE_SEARCH_TIMEOUT_SECONDS", 2.5)
    client = image_search._cache_client()
    try:
        kwargs = client.connection_pool.connection_kwargs
        assert kwargs["socket_connect_timeout"] == 2.5
        assert kwargs["socket_timeout"] == 2.5
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_cache_timeout_degrades_to_miss(monkeypatch, caplog):
    built = []

    class TimedOutRedis:
        async def get(self, key):
            raise TimeoutError("redis read timed out")

        async def aclose(self):
            pass

    def from_url(url, **kwargs):
        built.append(kwargs)
        return TimedOutRedis()

    monkeypatch.setattr(image_search.redis, "from_url", from_url)
    caplog.set_level(logging.WARNING, logger=image_search.logger.name)

    assert await image_search._load_cached_image("cafe") is None
    assert built[0]["socket_connect_timeout"] is not None
    assert built[0]["socket_timeout"] is not None
    assert any("Image cache read failed" in record.getMessage() for record in caplog.records)
