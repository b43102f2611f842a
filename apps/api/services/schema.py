"""Idempotent create-if-absent bootstrap for the store's tables."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy import Table, inspect
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from database import engine as default_engine
from models.contact_submission import ContactSubmission
from models.credit_account import CreditAccount
from models.credit_transaction import CreditTransaction
from models.pending_conversion import PendingConversion
from models.site import Site
from services.errors import StorageUnavailable
from services.store import store_timeout


logger = logging.getLogger(__name__)


async def _table_exists(bind: AsyncEngine, table: Table) -> bool:
    async with bind.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table.name))


async def _ensure_table(table: Table, bind: Optional[AsyncEngine]) -> None:
    target = bind or default_engine

    async def _create() -> None:
        try:
            async with target.begin() as conn:
                await conn.run_sync(table.create, checkfirst=True)
        except DBAPIError:
            # A concurrent bootstrap may have created the table between the
            # existence check and CREATE TABLE.
            if await _table_exists(target, table):
                logger.info("Table %s created concurrently; continuing", table.name)
                return
            raise

    try:
        await asyncio.wait_for(_create(), timeout=store_timeout())
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.exception("Schema bootstrap for %s failed: %s", table.name, exc)
        raise StorageUnavailable(f"ensure_{table.name}", exc) from exc


async def ensure_credits_table(bind: Optional[AsyncEngine] = None) -> None:
    await _ensure_table(CreditAccount.__table__, bind)


async def ensure_credit_transactions_table(bind: Optional[AsyncEngine] = None) -> None:
    await ensure_credits_table(bind)
    await _ensure_table(CreditTransaction.__table__, bind)


async def ensure_pending_conversions_table(bind: Optional[AsyncEngine] = None) -> None:
    await _ensure_table(PendingConversion.__table__, bind)


async def ensure_sites_table(bind: Optional[AsyncEngine] = None) -> None:
    await _ensure_table(Site.__table__, bind)


async def ensure_contact_submissions_table(bind: Optional[AsyncEngine] = None) -> None:
    await ensure_sites_table(bind)
    await _ensure_table(ContactSubmission.__table__, bind)


async def bootstrap_schema(bind: Optional[AsyncEngine] = None) -> None:
    """Ensure every table exists, parents before children."""
    await ensure_credits_table(bind)
    await ensure_credit_transactions_table(bind)
    await ensure_pending_conversions_table(bind)
    await ensure_sites_table(bind)
    await ensure_contact_submissions_table(bind)
