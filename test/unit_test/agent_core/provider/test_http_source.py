import asyncio
import json

import pytest

from ratchet_ai.agent_core.errors import NotFoundError, ProviderError
from ratchet_ai.agent_core.provider import (
    INTERACTION_PENDING_EVENT,
    HTTPSource,
    Interaction,
    ScriptedProvider,
    ScriptedStep,
)
from ratchet_ai.agent_core.schemas import Message, Role, ToolCall, ToolDefinition

USER = [Message(role=Role.user, content="go")]


async def _wait_for_pending(source: HTTPSource) -> str:
    for _ in range(200):
        pending = source.list_pending()
        if pending:
            return pending[0]["id"]
        await asyncio.sleep(0.01)
    raise AssertionError("no interaction became pending")


class TestHTTPSource:
    async def test_pending_interaction_is_announced(self, hub):
        client = hub.register()
        source = HTTPSource(hub)
        interaction = Interaction(
            id="i1",
            messages=USER,
            tools=[ToolDefinition(name="file_read", description="Read a file")],
        )

        waiter = asyncio.create_task(source.get_response(interaction))
        await _wait_for_pending(source)

        event = client.queue.get_nowait()
        assert event.event == INTERACTION_PENDING_EVENT == "test_interaction_pending"
        data = json.loads(event.data)
        assert data["id"] == "i1"
        assert data["msg_count"] == 1
        assert data["tool_count"] == 1
        assert source.pending_count == 1
        waiter.cancel()

    async def test_respond_unblocks_the_waiting_call(self):
        source = HTTPSource()
        waiter = asyncio.create_task(source.get_response(Interaction(id="i1", messages=USER)))
        await _wait_for_pending(source)

        source.respond("i1", ScriptedStep(content="hello"))

        step = await asyncio.wait_for(waiter, 1)
        assert step.content == "hello"
        assert source.pending_count == 0

    async def test_get_interaction_returns_the_full_conversation(self):
        source = HTTPSource()
        waiter = asyncio.create_task(source.get_response(Interaction(id="i1", messages=USER)))
        await _wait_for_pending(source)

        details = source.get_interaction("i1").to_dict()

        assert details["id"] == "i1"
        assert details["messages"][0]["content"] == "go"
        assert details["tools"] == []
        waiter.cancel()

    async def test_unknown_interaction(self):
        source = HTTPSource()
        with pytest.raises(NotFoundError):
            source.get_interaction("nope")
        with pytest.raises(NotFoundError):
            source.respond("nope", ScriptedStep(content="x"))

    async def test_second_response_is_rejected(self):
        source = HTTPSource()
        waiter = asyncio.create_task(source.get_response(Interaction(id="i1", messages=USER)))
        await _wait_for_pending(source)
        source.respond("i1", ScriptedStep(content="first"))

        with pytest.raises(NotFoundError):
            source.respond("i1", ScriptedStep(content="second"))
        assert (await waiter).content == "first"

    async def test_cancelled_call_is_removed(self):
        source = HTTPSource()
        waiter = asyncio.create_task(source.get_response(Interaction(id="i1", messages=USER)))
        await _wait_for_pending(source)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert source.pending_count == 0
        assert source.list_pending() == []

    async def test_without_hub(self):
        source = HTTPSource()
        waiter = asyncio.create_task(source.get_response(Interaction(id="i1", messages=USER)))
        assert await _wait_for_pending(source) == "i1"
        waiter.cancel()


class TestInteractiveProvider:
    async def test_chat_waits_for_the_response(self):
        source = HTTPSource()
        provider = ScriptedProvider(source)

        call = asyncio.create_task(provider.chat(USER, None))
        interaction_id = await _wait_for_pending(source)
        source.respond(
            interaction_id,
            ScriptedStep(content="reading", tool_calls=[ToolCall(name="file_read", arguments={"path": "a.txt"})]),
        )

        response = await asyncio.wait_for(call, 1)
        assert response.content == "reading"
        assert response.tool_calls[0].id.startswith("call_")
        assert provider.interaction_count == 1

    async def test_injected_error(self):
        source = HTTPSource()
        provider = ScriptedProvider(source)

        call = asyncio.create_task(provider.chat(USER, None))
        source.respond(await _wait_for_pending(source), ScriptedStep(error="overloaded"))

        with pytest.raises(ProviderError, match="overloaded"):
            await call

    async def test_no_response_times_out(self):
        source = HTTPSource()
        provider = ScriptedProvider(source, response_timeout=0.05)

        with pytest.raises(ProviderError, match="no response within 0.05s"):
            await provider.chat(USER, None)
        assert source.pending_count == 0
