"""Integration-test fixtures.

The app is exercised through ASGITransport, which does not run the
lifespan, so each test installs a freshly built container on app.state.
External collaborators are AsyncMocks from the root conftest; stores are
in memory.
"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from config.settings import Settings
from src.container import ServiceContainer, build_container
from src.main import app


@pytest.fixture
def relay_settings() -> Settings:
    return Settings(
        NULLIFIER_STORE="memory",
        MAX_BATCH_SIZE=2,
        MIN_BATCH_SIZE=1,
        ALLOWED_MARKETS=["mkt-election", "mkt-weather"],
        MPC_ENABLED=False,
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
async def container(
    relay_settings: Settings,
    hasher: object,
    venue: AsyncMock,
    prover: AsyncMock,
    payouts: AsyncMock,
) -> AsyncGenerator[ServiceContainer, None]:
    built = await build_container(
        relay_settings, hasher=hasher, venue=venue, prover=prover, payouts=payouts
    )
    yield built
    await built.aclose()


@pytest.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    app.state.container = container
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
