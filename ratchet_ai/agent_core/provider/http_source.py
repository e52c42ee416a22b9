from __future__ import annotations

"""Interactive response source.

``HTTPSource`` lets a person or a QA script play the language model. Every
chat call becomes a pending interaction and a ``test_interaction_pending``
event on the hub; the call blocks until ``respond`` supplies the step, or
until the waiting call is cancelled (provider timeout, shutdown).
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..events import SSEHub
from .scripted import Interaction, ScriptedStep

logger = logging.getLogger(__name__)

INTERACTION_PENDING_EVENT = "test_interaction_pending"


@dataclass
class _PendingInteraction:
    interaction: Interaction
    future: "asyncio.Future[ScriptedStep]"


class HTTPSource:
    """Pending interactions keyed by id, answered through the API."""

    def __init__(self, hub: Optional[SSEHub] = None) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[str, _PendingInteraction] = {}
        self._hub = hub

    def set_hub(self, hub: Optional[SSEHub]) -> None:
        with self._lock:
            self._hub = hub

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    async def get_response(self, interaction: Interaction) -> ScriptedStep:
        future: asyncio.Future[ScriptedStep] = asyncio.get_running_loop().create_future()
        with self._lock:
            self._pending[interaction.id] = _PendingInteraction(interaction, future)
            hub = self._hub

        if hub is not None:
            hub.broadcast_event(INTERACTION_PENDING_EVENT, interaction.summary())
        logger.info("Interaction %s waiting for a response", interaction.id)

        try:
            return await future
        finally:
            with self._lock:
                self._pending.pop(interaction.id, None)

    def list_pending(self) -> List[Dict[str, Any]]:
        """Summaries of every pending interaction, oldest first."""
        with self._lock:
            pending = [p.interaction for p in self._pending.values()]
        return [i.summary() for i in sorted(pending, key=lambda i: i.created_at)]

    def get_interaction(self, interaction_id: str) -> Interaction:
        """
        Raises:
            NotFoundError: If no interaction with that id is pending.
        """
        with self._lock:
            pending = self._pending.get(interaction_id)
        if pending is None:
            raise NotFoundError(f'interaction "{interaction_id}" not found')
        return pending.interaction

    def respond(self, interaction_id: str, step: ScriptedStep) -> None:
        """
        Answer a pending interaction, unblocking the waiting chat call.

        Raises:
            NotFoundError: If the interaction is not pending (unknown, already
                answered, or its caller gave up).
        """
        with self._lock:
            pending = self._pending.pop(interaction_id, None)
        if pending is None or pending.future.done():
            raise NotFoundError(f'interaction "{interaction_id}" not found or already responded')
        pending.future.get_loop().call_soon_threadsafe(_settle, pending.future, step)
        logger.info("Interaction %s answered", interaction_id)


def _settle(future: "asyncio.Future[ScriptedStep]", step: ScriptedStep) -> None:
    if not future.done():
        future.set_result(step)
