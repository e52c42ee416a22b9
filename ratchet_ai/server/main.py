"""
Main Application Entry Point.

This module builds the FastAPI application around a ``ServiceRegistry``:
the SSE event stream, the approval and human-request endpoints, and the
interactive test-provider endpoints.
``create_app`` accepts pre-built services (tests, embedding); without them the
services are wired from settings.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from ratchet_ai import __version__
from ratchet_ai.agent_core.events import SSEHub
from ratchet_ai.agent_core.gates import ApprovalManager, HumanRequestManager
from ratchet_ai.agent_core.memory import MemoryStore
from ratchet_ai.agent_core.policy import PolicyAction, ToolPolicyEngine
from ratchet_ai.agent_core.provider import HTTPSource, ProviderRegistry, ScriptedProvider
from ratchet_ai.agent_core.runtime import ServiceRegistry
from ratchet_ai.agent_core.security import EnvSecretsProvider, SecretGuard
from ratchet_ai.agent_core.skills import SkillManager
from ratchet_ai.agent_core.subagents import SubAgentManager
from ratchet_ai.agent_core.tools import ToolRegistry, register_builtin_tools
from ratchet_ai.agent_core.transcript import TranscriptRecorder
from ratchet_ai.core.database import create_all, create_engine, create_sessionmaker
from ratchet_ai.core.logging_config import get_logger, setup_logging

from .api.v1 import approvals, events, health, human_requests, interactions
from .core.config import Settings, settings

logger = get_logger(__name__)

API_V1_STR = "/api/v1"


def build_services(config: Settings, engine: AsyncEngine) -> ServiceRegistry:
    """Wire the default service set from settings."""
    session_factory = create_sessionmaker(engine)
    hub = SSEHub(buffer_size=config.sse.buffer_size, path=config.sse.path)
    guard = SecretGuard(EnvSecretsProvider(), backend_name="env")
    approvals_mgr = ApprovalManager(session_factory, hub=hub)
    requests_mgr = HumanRequestManager(session_factory, hub=hub)
    sub_agents = SubAgentManager(
        session_factory,
        max_per_parent=config.sub_agent.max_per_parent,
        max_depth=config.sub_agent.max_depth,
    )
    memory = MemoryStore(session_factory)
    interactive = HTTPSource(hub)
    providers = ProviderRegistry(session_factory, guard=guard)
    providers.register_factory(
        "test_http",
        lambda api_key, cfg: ScriptedProvider(interactive, name="test", model=cfg.model or "mock"),
    )
    default_policy = PolicyAction.allow if config.tool_policy_default == "allow" else PolicyAction.deny
    tools = ToolRegistry(policy=ToolPolicyEngine(session_factory, default_policy=default_policy))
    register_builtin_tools(
        tools,
        workspace=config.workspace_root,
        approvals=approvals_mgr,
        human_requests=requests_mgr,
        sub_agents=sub_agents,
        memory=memory,
    )
    return ServiceRegistry(
        session_factory=session_factory,
        providers=providers,
        tools=tools,
        guard=guard,
        transcripts=TranscriptRecorder(session_factory, guard=guard),
        sub_agents=sub_agents,
        approvals=approvals_mgr,
        human_requests=requests_mgr,
        memory=memory,
        skills=SkillManager(session_factory),
        hub=hub,
        interactions=interactive,
    )


def create_app(
    services: Optional[ServiceRegistry] = None,
    *,
    engine: Optional[AsyncEngine] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        services: Services to expose; built from ``config`` when omitted.
        engine: Database engine whose tables are created at startup.
        config: Settings; the module-level settings when omitted.
    """
    config = config or settings
    if services is None:
        engine = engine or create_engine(config.database_url)
        services = build_services(config, engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, load skills and secrets on startup; stop the hub on shutdown."""
        logger.info("Starting up Ratchet-AI Server...")
        if engine is not None:
            await create_all(engine)
            logger.info("Database initialized successfully")
        if services.skills is not None and config.skills_dir:
            await services.skills.load_directory(config.skills_dir)
        if services.guard is not None:
            await services.guard.load_all_secrets()

        yield

        logger.info("Shutting down Ratchet-AI Server...")
        if services.hub is not None:
            services.hub.stop()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Ratchet-AI",
        description="""
        Ratchet-AI Server API

        Observe agent loops through the event stream and answer the approvals and
        human requests they block on.
        """,
        version=__version__,
        openapi_url=f"{API_V1_STR}/openapi.json",
        docs_url=f"{API_V1_STR}/docs",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["health"])
    app.include_router(events.router, tags=["events"])
    app.include_router(approvals.router, prefix=f"{API_V1_STR}/approvals", tags=["approvals"])
    app.include_router(human_requests.router, prefix=f"{API_V1_STR}/requests", tags=["human-requests"])
    app.include_router(interactions.router, prefix=f"{API_V1_STR}/test/interactions", tags=["test-interactions"])
    return app


def run() -> None:
    """Run the server with uvicorn using the configured host and port."""
    import uvicorn

    setup_logging()
    uvicorn.run(create_app(), host=settings.server_host, port=settings.server_port)


if __name__ == "__main__":
    run()
