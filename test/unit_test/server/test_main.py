"""Unit tests for service wiring and the application lifespan."""

import asyncio
from pathlib import Path

import pytest

from ratchet_ai.agent_core.provider import ScriptedStep
from ratchet_ai.agent_core.schemas import Message, Role
from ratchet_ai.core.database.entities.providers import LLMProvider
from ratchet_ai.server.core.config import Settings
from ratchet_ai.server.main import build_services, create_app


@pytest.fixture
def config(tmp_path: Path) -> Settings:
    skills = tmp_path / "skills"
    skills.mkdir()
    (skills / "writing.md").write_text("---\nname: Writing\n---\nBe concise.", encoding="utf-8")
    return Settings(
        _env_file=None,
        RATCHET_SKILLS_DIR=str(skills),
        RATCHET_WORKSPACE_ROOT=str(tmp_path / "workspaces"),
        RATCHET_SUB_AGENT_MAX_PER_PARENT=2,
        RATCHET_SSE_BUFFER_SIZE=128,
    )


class TestBuildServices:
    def test_every_service_is_wired(self, config, engine):
        services = build_services(config, engine)

        assert services.provider is None
        assert services.hub.buffer_size == 128
        assert services.sub_agents.max_per_parent == 2
        assert services.transcripts.guard is services.guard
        assert services.approvals.hub is services.hub
        assert services.human_requests.hub is services.hub
        assert services.providers.guard is services.guard
        assert services.interactions is not None

    def test_builtin_tools_registered(self, config, engine):
        names = {d.name for d in build_services(config, engine).tools.all_defs()}

        assert {
            "file_read",
            "file_write",
            "file_list",
            "request_approval",
            "request_human",
            "check_human_request",
            "agent_spawn",
            "agent_check",
            "agent_wait",
            "memory_search",
            "memory_save",
        } <= names

    def test_policy_default_follows_settings(self, config, engine):
        tools = build_services(config, engine).tools
        assert tools.policy is not None
        assert tools.policy.default_policy.value == "deny"

    async def test_http_provider_rows_wait_for_api_answers(self, config, engine):
        services = build_services(config, engine)
        async with services.session_factory() as s:
            s.add(LLMProvider(alias="qa", type="test_http", model="qa-model"))
            await s.commit()

        provider = await services.providers.resolve("qa")
        call = asyncio.create_task(provider.chat([Message(role=Role.user, content="hi")], None))
        for _ in range(200):
            pending = services.interactions.list_pending()
            if pending:
                break
            await asyncio.sleep(0.01)
        services.interactions.respond(pending[0]["id"], ScriptedStep(content="hello from QA"))

        assert provider.model == "qa-model"
        assert (await asyncio.wait_for(call, 1)).content == "hello from QA"


class TestLifespan:
    async def test_startup_creates_tables_and_loads_skills(self, config, engine):
        app = create_app(engine=engine, config=config)
        services = app.state.services
        observer = services.hub.register()

        async with app.router.lifespan_context(app):
            skills = await services.skills.list_skills()
            assert [s.name for s in skills] == ["Writing"]

        assert observer.closed is True
        assert services.hub.client_count == 0
