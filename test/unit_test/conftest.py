from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ratchet_ai.agent_core.events import SSEHub
from ratchet_ai.agent_core.security import InMemorySecretsProvider, SecretGuard
from ratchet_ai.core.database import create_all, create_engine, create_sessionmaker


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database file with every table (and the memory FTS index) created.

    A file rather than ``:memory:`` so concurrent sessions (a waiter polling while
    a reviewer resolves) each get their own connection.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'ratchet-test.db'}")
    await create_all(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_sessionmaker(engine)


@pytest.fixture
def hub() -> SSEHub:
    hub = SSEHub()
    yield hub
    hub.stop()


@pytest.fixture
def secrets() -> InMemorySecretsProvider:
    return InMemorySecretsProvider({"GH_TOKEN": "ghp_abc123secret"})


@pytest_asyncio.fixture
async def guard(secrets: InMemorySecretsProvider) -> SecretGuard:
    guard = SecretGuard(secrets, "memory")
    await guard.load_all_secrets()
    return guard
