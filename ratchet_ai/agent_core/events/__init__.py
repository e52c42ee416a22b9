"""Push notifications to connected observers."""

from .sse_hub import HubEvent, SSEClient, SSEHub

__all__ = ["HubEvent", "SSEClient", "SSEHub"]
