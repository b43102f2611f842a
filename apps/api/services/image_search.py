"""Pexels image lookup for decorative site content."""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, Optional

import httpx
import redis.asyncio as redis

from config import settings
from services.errors import UpstreamProviderError


logger = logging.getLogger(__name__)

IMAGE_CACHE_KEY_PREFIX = "easyland:image:"
# Cached marker for "provider returned no photo" so misses are not re-fetched.
NO_IMAGE_SENTINEL = "-"
SRC_PREFERENCE = ("landscape", "large", "original", "medium")

if not settings.PEXELS_API_KEY:
    logger.warning("Missing PEXELS_API_KEY; image search disabled")


def _normalize_query(query: str) -> str:
    return " ".join(str(query or "").lower().split())


def _image_cache_key(query: str) -> str:
    digest = hashlib.sha1(_normalize_query(query).encode("utf-8")).hexdigest()
    return f"{IMAGE_CACHE_KEY_PREFIX}{digest}"


def pick_photo_url(payload: Dict[str, Any]) -> Optional[str]:
    photos = payload.get("photos") if isinstance(payload, dict) else None
    if not isinstance(photos, list) or not photos:
        return None
    photo = photos[0] if isinstance(photos[0], dict) else {}
    src = photo.get("src") if isinstance(photo.get("src"), dict) else {}
    for size in SRC_PREFERENCE:
        url = src.get(size)
        if isinstance(url, str) and url:
            return url
    url = photo.get("url")
    return url if isinstance(url, str) and url else None


def _cache_client() -> redis.Redis:
    timeout = max(float(settings.IMAGE_SEARCH_TIMEOUT_SECONDS), 0.5)
    return redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
    )


async def _load_cached_image(query: str) -> Optional[str]:
    client = _cache_client()
    try:
        return await client.get(_image_cache_key(query))
    except Exception as exc:
        logger.warning("Image cache read failed: %s", exc)
        return None
    finally:
        await client.aclose()


async def _store_cached_image(query: str, url: Optional[str]) -> None:
    ttl = max(int(settings.IMAGE_CACHE_TTL_SECONDS), 1)
    client = _cache_client()
    try:
        await client.setex(_image_cache_key(query), ttl, url or NO_IMAGE_SENTINEL)
    except Exception as exc:
        logger.warning("Image cache write failed: %s", exc)
    finally:
        await client.aclose()


async def search_pexels(query: str, client: httpx.AsyncClient) -> Optional[str]:
    """Call the provider; raises UpstreamProviderError on any transport or status failure."""
    try:
        response = await client.get(
            settings.PEXELS_API_URL,
            params={"query": query, "per_page": "1", "orientation": "landscape"},
            headers={"Authorization": settings.PEXELS_API_KEY},
            timeout=max(float(settings.IMAGE_SEARCH_TIMEOUT_SECONDS), 0.5),
        )
    except httpx.HTTPError as exc:
        raise UpstreamProviderError("pexels", f"request failed: {exc}") from exc

    if response.status_code != 200:
        raise UpstreamProviderError("pexels", f"status {response.status_code}")
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamProviderError("pexels", "invalid JSON body") from exc
    return pick_photo_url(payload)


async def fetch_image_for_query(
    query: str,
    client: Optional[httpx.AsyncClient] = None,
    use_cache: bool = True,
) -> Optional[str]:
    """Best landscape image URL for query, or None. Never raises."""
    if not settings.PEXELS_API_KEY or not _normalize_query(query):
        return None

    if use_cache:
        cached = await _load_cached_image(query)
        if cached:
            return None if cached == NO_IMAGE_SENTINEL else cached

    owns_client = client is None
    http_client = client or httpx.AsyncClient()
    try:
        url = await search_pexels(query, http_client)
    except UpstreamProviderError as exc:
        logger.warning("Pexels error for query=%r: %s", query, exc.detail)
        return None
    finally:
        if owns_client:
            await http_client.aclose()

    if use_cache:
        await _store_cached_image(query, url)
    return url
