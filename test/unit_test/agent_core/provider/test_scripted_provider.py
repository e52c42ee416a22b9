from pathlib import Path

import pytest
from sqlalchemy import delete

from ratchet_ai.agent_core.errors import ConfigurationError, ProviderError, ScriptExhaustedError
from ratchet_ai.agent_core.provider import (
    Provider,
    ProviderRegistry,
    ScriptedProvider,
    ScriptedSource,
    ScriptedStep,
    load_scenario,
)
from ratchet_ai.agent_core.provider.registry import MOCK_COMPLETION
from ratchet_ai.agent_core.runtime.context_manager import SUMMARISER_PROMPT
from ratchet_ai.agent_core.schemas import Message, Role, StreamEventType, ToolCall
from ratchet_ai.core.database.entities.providers import LLMProvider

USER = [Message(role=Role.user, content="go")]


class TestScriptedProvider:
    async def test_replays_steps_in_order(self):
        provider = ScriptedProvider(
            ScriptedSource(
                [
                    ScriptedStep(content="reading", tool_calls=[ToolCall(id="tc1", name="file_read", arguments={})]),
                    ScriptedStep(content="done"),
                ]
            )
        )

        first = await provider.chat(USER, None)
        second = await provider.chat(USER, None)

        assert first.content == "reading"
        assert first.tool_calls[0].id == "tc1"
        assert second.content == "done"
        assert second.tool_calls == []
        assert isinstance(provider, Provider)

    async def test_exhaustion_raises(self):
        provider = ScriptedProvider(ScriptedSource([ScriptedStep(content="only")]))
        await provider.chat(USER, None)
        with pytest.raises(ScriptExhaustedError):
            await provider.chat(USER, None)

    async def test_loop_restarts(self):
        provider = ScriptedProvider(ScriptedSource([ScriptedStep(content="a"), ScriptedStep(content="b")], loop=True))
        contents = [(await provider.chat(USER, None)).content for _ in range(5)]
        assert contents == ["a", "b", "a", "b", "a"]

    async def test_error_step(self):
        provider = ScriptedProvider(ScriptedSource([ScriptedStep(error="rate limited")]))
        with pytest.raises(ProviderError, match="rate limited"):
            await provider.chat(USER, None)

    async def test_missing_tool_call_ids_generated(self):
        provider = ScriptedProvider(ScriptedSource([ScriptedStep(tool_calls=[ToolCall(name="file_list")])]))
        response = await provider.chat(USER, None)
        assert response.tool_calls[0].id.startswith("call_")

    async def test_summary_requests_do_not_consume_steps(self):
        source = ScriptedSource([ScriptedStep(content="real")])
        provider = ScriptedProvider(source)

        summary = await provider.chat([Message(role=Role.system, content=SUMMARISER_PROMPT)], None)

        assert summary.content.startswith("Summary:")
        assert source.remaining == 1

    async def test_stream_events(self):
        provider = ScriptedProvider(
            ScriptedSource([ScriptedStep(content="hi", tool_calls=[ToolCall(id="t", name="file_list")])])
        )
        events = [e async for e in provider.stream(USER, None)]
        assert [e.type for e in events] == [StreamEventType.text, StreamEventType.tool_call, StreamEventType.done]


class TestLoadScenario:
    def test_yaml_scenario(self, tmp_path: Path):
        path = tmp_path / "happy.yaml"
        path.write_text(
            "name: happy-path\n"
            "loop: true\n"
            "steps:\n"
            "  - content: \"I'll read the input file.\"\n"
            "    tool_calls:\n"
            "      - {id: tc1, name: file_read, arguments: {path: input.txt}}\n"
            "  - content: Task complete.\n",
            encoding="utf-8",
        )

        source = load_scenario(path)

        assert source.remaining == 2
        step = source.next_step()
        assert step.tool_calls[0].arguments == {"path": "input.txt"}
        assert source.next_step().content == "Task complete."
        assert source.next_step().content == "I'll read the input file."

    def test_empty_scenario_rejected(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("name: empty\nsteps: []\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_scenario(path)


class TestProviderRegistry:
    def _provider(self, name: str) -> ScriptedProvider:
        return ScriptedProvider(ScriptedSource([ScriptedStep(content=name)]), name=name)

    async def test_first_registered_is_default(self):
        registry = ProviderRegistry()
        first, second = self._provider("a"), self._provider("b")
        registry.register("a", first)
        registry.register("b", second)

        assert await registry.resolve("") is first
        assert await registry.resolve("default") is first
        assert await registry.resolve("b") is second
        assert registry.aliases() == ["a", "b"]

    async def test_explicit_default(self):
        registry = ProviderRegistry()
        registry.register("a", self._provider("a"))
        registry.register("b", self._provider("b"), default=True)
        assert (await registry.resolve()).name == "b"

    async def test_unknown_alias(self):
        with pytest.raises(ConfigurationError):
            await ProviderRegistry().resolve("missing")


async def _add_config(session_factory, **fields) -> None:
    async with session_factory() as s:
        s.add(LLMProvider(**fields))
        await s.commit()


class TestDatabaseProviderRegistry:
    async def test_alias_resolved_from_row(self, session_factory, guard):
        await _add_config(session_factory, alias="fast", type="mock", model="mock-large", secret_name="GH_TOKEN")
        registry = ProviderRegistry(session_factory, guard=guard)

        provider = await registry.resolve("fast")

        assert provider.name == "mock"
        assert provider.model == "mock-large"
        assert (await provider.chat(USER, None)).content == MOCK_COMPLETION
        assert registry.aliases() == ["fast"]

    async def test_api_key_is_read_through_the_guard_backend(self, session_factory, guard, secrets):
        await secrets.set("VENDOR_KEY", "sk-vendor-123")
        await _add_config(session_factory, alias="vendor", type="vendor", model="v1", secret_name="VENDOR_KEY")
        registry = ProviderRegistry(session_factory, guard=guard)
        seen = {}

        def factory(api_key, config):
            seen["key"] = api_key
            seen["alias"] = config.alias
            return ScriptedProvider(ScriptedSource([ScriptedStep(content="v")]), name="vendor")

        registry.register_factory("vendor", factory)
        await registry.resolve("vendor")

        assert seen == {"key": "sk-vendor-123", "alias": "vendor"}
        assert guard.redact("key sk-vendor-123") == "key [REDACTED:VENDOR_KEY]"

    async def test_built_provider_is_cached(self, session_factory, guard):
        await _add_config(session_factory, alias="fast", type="mock")
        registry = ProviderRegistry(session_factory, guard=guard)

        first = await registry.resolve("fast")
        async with session_factory() as s:
            await s.execute(delete(LLMProvider))
            await s.commit()
        second = await registry.resolve("fast")

        assert second is first
        registry.invalidate("fast")
        with pytest.raises(ConfigurationError):
            await registry.resolve("fast")

    async def test_secret_rotation_invalidates_dependent_aliases(self, session_factory, guard):
        await _add_config(session_factory, alias="a", type="mock", secret_name="GH_TOKEN")
        await _add_config(session_factory, alias="b", type="mock")
        registry = ProviderRegistry(session_factory, guard=guard)
        first_a, first_b = await registry.resolve("a"), await registry.resolve("b")

        await registry.invalidate_secret("GH_TOKEN")

        assert await registry.resolve("a") is not first_a
        assert await registry.resolve("b") is first_b

    async def test_default_row(self, session_factory, guard):
        await _add_config(session_factory, alias="other", type="mock", model="m-1")
        await _add_config(session_factory, alias="main", type="mock", model="m-2", is_default=True)
        registry = ProviderRegistry(session_factory, guard=guard)

        provider = await registry.resolve("")

        assert provider.model == "m-2"
        assert await registry.resolve("default") is provider
        assert await registry.resolve("main") is provider

    async def test_alias_miss(self, session_factory, guard):
        registry = ProviderRegistry(session_factory, guard=guard)
        with pytest.raises(ConfigurationError, match='provider "nope" not registered'):
            await registry.resolve("nope")

    async def test_unknown_type(self, session_factory, guard):
        await _add_config(session_factory, alias="x", type="carrier-pigeon")
        with pytest.raises(ConfigurationError, match="unknown provider type"):
            await ProviderRegistry(session_factory, guard=guard).resolve("x")

    async def test_missing_secret(self, session_factory, guard):
        await _add_config(session_factory, alias="x", type="mock", secret_name="ABSENT")
        with pytest.raises(ConfigurationError, match='secret "ABSENT" not found'):
            await ProviderRegistry(session_factory, guard=guard).resolve("x")

    async def test_secret_without_guard(self, session_factory):
        await _add_config(session_factory, alias="x", type="mock", secret_name="GH_TOKEN")
        with pytest.raises(ConfigurationError, match="no secrets backend"):
            await ProviderRegistry(session_factory).resolve("x")
