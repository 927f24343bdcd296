"""Shared pytest fixtures: a throwaway SQLite store, a fresh service manager and an API client."""

import datetime
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shortlink.config import Settings
from shortlink.dependencies import ServiceManager
from shortlink.main import app
from shortlink.store import LinkStore


class FakeClock:
    """Controllable time source for expiry checks."""

    def __init__(self, now: datetime.datetime) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += datetime.timedelta(**delta)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'shortlink.db'}",
        BASE_URL="http://test",
        STATIC_DIR=str(tmp_path / "static"),
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime.datetime(2025, 1, 1, 12, 0, tzinfo=datetime.timezone.utc))


@pytest_asyncio.fixture
async def manager(settings: Settings, clock: FakeClock) -> AsyncGenerator[ServiceManager, None]:
    services = ServiceManager(settings, clock=clock)
    await services.initialize()
    yield services
    await services.cleanup()


@pytest.fixture
def store(manager: ServiceManager) -> LinkStore:
    return manager.store


@pytest_asyncio.fixture
async def client(manager: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    previous = app.state.services
    app.state.services = manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.services = previous
