from __future__ import annotations

"""Provider and embedder protocols."""

from typing import AsyncIterator, List, Optional, Protocol, Sequence, runtime_checkable

from ..schemas import ChatResponse, Message, StreamEvent, ToolDefinition


@runtime_checkable
class Provider(Protocol):
    """A chat-capable language model.

    ``name`` identifies the backend (e.g. ``"anthropic"``); ``model`` is the
    model identifier used to size the context window.
    """

    name: str
    model: str

    async def chat(self, messages: Sequence[Message], tools: Optional[List[ToolDefinition]]) -> ChatResponse: ...

    def stream(
        self, messages: Sequence[Message], tools: Optional[List[ToolDefinition]]
    ) -> AsyncIterator[StreamEvent]: ...


@runtime_checkable
class Embedder(Protocol):
    """Optional capability of a provider: turn text into a float32 vector."""

    async def embed(self, text: str) -> List[float]: ...
