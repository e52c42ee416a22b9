"""
Unit tests for the SSE event stream endpoint.

The endpoint function is called directly and its body iterator consumed, so the
test does not depend on an HTTP client that can read an endless response.
"""

import json

import pytest
from sse_starlette.sse import EventSourceResponse

from ratchet_ai.server.api.v1 import events


class _FakeRequest:
    def __init__(self) -> None:
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


async def test_stream_relays_hub_events(hub):
    request = _FakeRequest()

    response = await events.stream_events(request, hub)

    assert isinstance(response, EventSourceResponse)
    assert hub.client_count == 1
    hub.broadcast_event("approval_requested", {"id": "ap1"})
    event = await response.body_iterator.__anext__()
    assert event.event == "approval_requested"
    assert json.loads(event.data) == {"id": "ap1"}


async def test_stream_ends_when_hub_stops(hub):
    response = await events.stream_events(_FakeRequest(), hub)

    hub.stop()

    with pytest.raises(StopAsyncIteration):
        await response.body_iterator.__anext__()
    assert hub.client_count == 0


async def test_stream_stops_on_disconnect(hub):
    request = _FakeRequest()
    response = await events.stream_events(request, hub)
    hub.broadcast_event("human_request_created", {"id": "hr1"})
    request.disconnected = True

    with pytest.raises(StopAsyncIteration):
        await response.body_iterator.__anext__()
    assert hub.client_count == 0
