from typing import Callable, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, configure_sqlite_locking, get_db
from main import app
from services.session_token import create_session_token


@pytest.fixture(autouse=True)
def isolate_settings(monkeypatch):
    """Keep tests independent of the developer's .env."""
    monkeypatch.setattr(settings, "ALLOW_DEFAULT_PRINCIPAL", False)
    monkeypatch.setattr(settings, "SITES_UNAUTHENTICATED_LISTING", "empty")
    monkeypatch.setattr(settings, "SCHEMA_BOOTSTRAP_ON_REQUEST", False)
    monkeypatch.setattr(settings, "PEXELS_API_KEY", "")
    monkeypatch.setattr(settings, "STORE_TIMEOUT_SECONDS", 10.0)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = configure_sqlite_locking(create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'easyland.db'}"))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_headers() -> Callable[[str], Dict[str, str]]:
    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_session_token(user_id)['token']}"}

    return _headers
