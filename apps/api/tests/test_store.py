import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from config import settings
from models.credit_account import CreditAccount
from services.errors import InsufficientCredits, StorageUnavailable
from services.store import check_store_health, store_operation


@pytest.mark.asyncio
async def test_timeout_surfaces_as_storage_unavailable(monkeypatch):
    monkeypatch.setattr(settings, "STORE_TIMEOUT_SECONDS", 0.1)

    @store_operation("slow_call")
    async def slow_call():
        await asyncio.sleep(1)
        return "done"

    with pytest.raises(StorageUnavailable) as excinfo:
        await slow_call()
    assert excinfo.value.operation == "slow_call"


@pytest.mark.asyncio
async def test_driver_errors_are_mapped_and_session_rolled_back(db):
    @store_operation("broken_call")
    async def broken_call(user_id, session):
        session.add(CreditAccount(user_id=user_id, balance=7))
        await session.flush()
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    with pytest.raises(StorageUnavailable):
        await broken_call("someone", db)

    result = await db.execute(select(CreditAccount).where(CreditAccount.user_id == "someone"))
    assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_domain_errors_pass_through():
    @store_operation("spend")
    async def spend():
        raise InsufficientCredits(required=5, available=1)

    with pytest.raises(InsufficientCredits):
        await spend()


@pytest.mark.asyncio
async def test_health_check_reports_unreachable_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'nope' / 'store.db'}")
    with pytest.raises(StorageUnavailable):
        await check_store_health(engine)
    await engine.dispose()


@pytest.mark.asyncio
async def test_health_check_passes_for_live_store(db_engine):
    await check_store_health(db_engine)
