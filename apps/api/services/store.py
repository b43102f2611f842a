"""Timeout and failure mapping for store-backed service calls."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from config import settings
from services.errors import StorageUnavailable


logger = logging.getLogger(__name__)

T = TypeVar("T")

_STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def store_timeout() -> float:
    return max(float(settings.STORE_TIMEOUT_SECONDS), 0.1)


def _find_session(args: tuple, kwargs: dict) -> Optional[AsyncSession]:
    db = kwargs.get("db")
    if isinstance(db, AsyncSession):
        return db
    for value in args:
        if isinstance(value, AsyncSession):
            return value
    return None


def store_operation(operation: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Bound a service coroutine by the store timeout and map driver failures.

    On timeout or a database error the session is rolled back and
    StorageUnavailable is raised. Domain errors pass through unchanged.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=store_timeout())
            except _STORE_ERRORS as exc:
                logger.exception("Store operation %s failed: %s", operation, exc)
                db = _find_session(args, kwargs)
                if db is not None:
                    try:
                        await db.rollback()
                    except _STORE_ERRORS as rollback_exc:
                        logger.warning("Rollback after %s failed: %s", operation, rollback_exc)
                raise StorageUnavailable(operation, exc) from exc

        return wrapper

    return decorator


async def check_store_health(bind: AsyncEngine) -> None:
    """Round-trip a trivial query; raises StorageUnavailable when the store is down."""

    async def _ping() -> None:
        async with bind.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_ping(), timeout=store_timeout())
    except _STORE_ERRORS as exc:
        logger.warning("Store health check failed: %s", exc)
        raise StorageUnavailable("health_check", exc) from exc
