"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import redis.asyncio as redis

from config import settings
from services.errors import StorageUnavailable
from services.store import check_store_health, store_timeout

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "redis": "unknown",
        "image_search": "configured" if settings.PEXELS_API_KEY else "disabled",
    }

    from database import engine

    try:
        await check_store_health(engine)
        health_status["database"] = "up"
    except StorageUnavailable:
        health_status["database"] = "down"
        health_status["status"] = "degraded"

    # Redis only backs the image cache, so an outage degrades but never fails.
    try:
        timeout = store_timeout()
        r = redis.from_url(settings.REDIS_URL, socket_connect_timeout=timeout, socket_timeout=timeout)
        try:
            await r.ping()
        finally:
            await r.aclose()
        health_status["redis"] = "up"
    except Exception:
        health_status["redis"] = "down"
        health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe: the store must answer."""
    from database import engine

    try:
        await check_store_health(engine)
    except StorageUnavailable:
        return JSONResponse(status_code=503, content={"ready": False, "missing": ["database"]})
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
