"""
Event Stream Endpoint.

Server-Sent Events feed of everything broadcast on the hub (approval and
human-request lifecycle events, plus whatever peripheral code publishes).
"""

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from ratchet_ai.core.logging_config import get_logger
from ratchet_ai.server.deps import HubDep

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/events",
    summary="Stream Events",
    description="Subscribe to a Server-Sent Events (SSE) stream of hub broadcasts.",
    response_description="A stream of events.",
    responses={
        200: {
            "description": "SSE stream established",
            "content": {"text/event-stream": {"example": 'event: approval_requested\ndata: {"id": "..."}\n\n'}},
        }
    },
)
async def stream_events(request: Request, hub: HubDep):
    """
    Stream hub events via Server-Sent Events (SSE).

    Each event is sent as ``event: <type>`` and ``data: <json>``. A client that
    reads too slowly misses events rather than slowing producers down.
    """
    client = hub.register()
    logger.info(f"SSE client {client.id} subscribed")

    async def event_generator():
        try:
            async for event in hub.events(client):
                if await request.is_disconnected():
                    logger.info(f"SSE client {client.id} disconnected")
                    break
                yield ServerSentEvent(event=event.event, data=event.data)
        finally:
            hub.unregister(client)

    return EventSourceResponse(
        event_generator(),
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        sep="\n",
    )
