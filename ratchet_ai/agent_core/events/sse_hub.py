from __future__ import annotations

"""Server-sent events fan-out.

Producers (approval manager, human-request manager, peripheral code) call
``broadcast_event``; each connected observer owns a bounded queue that the HTTP
handler drains. A full queue drops the event for that client only, so a slow
observer never back-pressures the agent loops.

Wire format per event: ``"event: <type>\\ndata: <json>"`` followed by a blank line.
"""

import asyncio
import itertools
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 64


@dataclass(frozen=True)
class HubEvent:
    event: str
    data: str

    @property
    def payload(self) -> str:
        return f"event: {self.event}\ndata: {self.data}"


@dataclass
class SSEClient:
    id: int
    queue: "asyncio.Queue[Optional[HubEvent]]"
    closed: bool = field(default=False)


class SSEHub:
    """Multi-client broadcast with bounded per-client buffers."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE, path: str = "/events") -> None:
        self.buffer_size = max(buffer_size, DEFAULT_BUFFER_SIZE)
        self.path = path
        self._lock = threading.Lock()
        self._clients: Dict[int, SSEClient] = {}
        self._ids = itertools.count(1)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def register(self) -> SSEClient:
        client = SSEClient(id=next(self._ids), queue=asyncio.Queue(maxsize=self.buffer_size))
        with self._lock:
            self._clients[client.id] = client
        logger.debug("SSE client %d connected (%d total)", client.id, len(self._clients))
        return client

    def unregister(self, client: SSEClient) -> None:
        with self._lock:
            self._clients.pop(client.id, None)
        self._close(client)
        logger.debug("SSE client %d disconnected", client.id)

    def broadcast_event(self, event_type: str, data: Any) -> None:
        """Send an event to every connected client without blocking.

        ``data`` is JSON-encoded unless it is already a string.
        """
        encoded = data if isinstance(data, str) else json.dumps(data, default=str)
        event = HubEvent(event=event_type, data=encoded)
        with self._lock:
            clients = list(self._clients.values())
        for client in clients:
            if client.closed:
                continue
            try:
                client.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("SSE client %d buffer full; dropping %s", client.id, event_type)

    async def stream(self, client: SSEClient) -> AsyncIterator[str]:
        """Yield wire-formatted events for ``client`` until the hub stops or the consumer goes away."""
        try:
            while True:
                event = await client.queue.get()
                if event is None:
                    break
                yield event.payload + "\n\n"
        finally:
            self.unregister(client)

    async def events(self, client: SSEClient) -> AsyncIterator[HubEvent]:
        """Like ``stream`` but yields structured events, for the HTTP layer."""
        try:
            while True:
                event = await client.queue.get()
                if event is None:
                    break
                yield event
        finally:
            self.unregister(client)

    def stop(self) -> None:
        """Close every client queue and clear the client set."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            self._close(client)

    @staticmethod
    def _close(client: SSEClient) -> None:
        if client.closed:
            return
        client.closed = True
        # Make room for the sentinel so a full queue still terminates its reader.
        while True:
            try:
                client.queue.put_nowait(None)
                return
            except asyncio.QueueFull:
                client.queue.get_nowait()
