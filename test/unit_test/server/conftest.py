from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from ratchet_ai.agent_core.gates import ApprovalManager, HumanRequestManager
from ratchet_ai.agent_core.provider import HTTPSource
from ratchet_ai.agent_core.runtime import ServiceRegistry
from ratchet_ai.server.main import create_app


@pytest.fixture
def approvals(session_factory, hub) -> ApprovalManager:
    return ApprovalManager(session_factory, hub, poll_interval=0.01)


@pytest.fixture
def human_requests(session_factory, hub) -> HumanRequestManager:
    return HumanRequestManager(session_factory, hub, poll_interval=0.01)


@pytest.fixture
def interactions(hub) -> HTTPSource:
    return HTTPSource(hub)


@pytest.fixture
def services(session_factory, hub, guard, approvals, human_requests, interactions) -> ServiceRegistry:
    return ServiceRegistry(
        session_factory=session_factory,
        guard=guard,
        approvals=approvals,
        human_requests=human_requests,
        hub=hub,
        interactions=interactions,
    )


@pytest.fixture
def app(services) -> FastAPI:
    return create_app(services)


@pytest_asyncio.fixture(name="client")
async def client_fixture(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app; the lifespan is not run, services are pre-built."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client
