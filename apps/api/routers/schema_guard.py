"""Per-request idempotent schema bootstrap, enabled by SCHEMA_BOOTSTRAP_ON_REQUEST."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from config import settings
from database import get_db


Ensurer = Callable[[Optional[AsyncEngine]], Awaitable[None]]


def schema_guard(*ensurers: Ensurer) -> Callable[..., Awaitable[None]]:
    """Return a dependency that ensures the given tables before the handler runs.

    Startup bootstrap is the default deployment model; this path exists for
    deployments without a separate migration step.
    """

    async def _dependency(db: AsyncSession = Depends(get_db)) -> None:
        if not settings.SCHEMA_BOOTSTRAP_ON_REQUEST:
            return
        for ensure in ensurers:
            await ensure(db.bind)

    return _dependency
