from __future__ import annotations

"""Scripted provider for tests and demonstrations.

``ScriptedProvider`` turns each chat call into an ``Interaction`` and asks its
response source for the step to answer with (content, tool calls, an optional
error and an optional delay). ``ScriptedSource`` hands out a fixed sequence of
steps; ``HTTPSource`` (see ``http_source``) waits for a person or a QA script
to answer over the API. Summarisation requests issued by the
context manager are answered with a canned summary without consuming a step.

Scenarios can be kept in YAML files::

    name: happy-path
    loop: false
    steps:
      - content: "I'll read the input file."
        tool_calls:
          - {id: tc1, name: file_read, arguments: {path: input.txt}}
      - content: "Task complete."
"""

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence
from uuid import uuid4

import yaml

from ..errors import ProviderError, ScriptExhaustedError
from ..schemas import (
    ChatResponse,
    Message,
    Role,
    StreamEvent,
    StreamEventType,
    ToolCall,
    ToolDefinition,
    Usage,
)

CANNED_SUMMARY = (
    "Summary: The agent has been working on the assigned task. Key actions and results have been recorded."
)

DEFAULT_RESPONSE_TIMEOUT = 300.0


@dataclass
class ScriptedStep:
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    error: str = ""
    delay: float = 0.0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ScriptedStep":
        return cls(
            content=str(raw.get("content") or ""),
            tool_calls=[ToolCall.model_validate(tc) for tc in raw.get("tool_calls") or []],
            error=str(raw.get("error") or ""),
            delay=float(raw.get("delay") or 0.0),
        )


@dataclass
class Interaction:
    """One chat call waiting for a response."""

    id: str
    messages: List[Message]
    tools: List[ToolDefinition] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "msg_count": len(self.messages),
            "tool_count": len(self.tools),
            "created_at": self.created_at.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "tools": [t.model_dump(mode="json") for t in self.tools],
            "created_at": self.created_at.isoformat(),
        }


class ResponseSource(Protocol):
    """Supplies the step a ``ScriptedProvider`` answers an interaction with.

    Implementations may block, e.g. while waiting for a person to respond.
    """

    async def get_response(self, interaction: Interaction) -> ScriptedStep: ...


def load_scenario(path: str | Path) -> "ScriptedSource":
    """Build a ``ScriptedSource`` from a YAML scenario file."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    steps = [ScriptedStep.from_dict(s) for s in data.get("steps") or []]
    if not steps:
        raise ValueError(f"scenario {path} has no steps")
    return ScriptedSource(steps, loop=bool(data.get("loop", False)))


def is_summarization_request(messages: Sequence[Message]) -> bool:
    for m in messages:
        if m.role == Role.system:
            lower = m.content.lower()
            if "summariser" in lower or "summarizer" in lower or "precise summar" in lower:
                return True
    return False


class ScriptedSource:
    def __init__(self, steps: Sequence[ScriptedStep], loop: bool = False) -> None:
        self._steps = list(steps)
        self._loop = loop
        self._idx = 0
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        with self._lock:
            return max(len(self._steps) - self._idx, 0)

    def next_step(self) -> ScriptedStep:
        with self._lock:
            if self._idx >= len(self._steps):
                if not self._loop or not self._steps:
                    raise ScriptExhaustedError(f"scripted source exhausted: all {len(self._steps)} steps consumed")
                self._idx = 0
            step = self._steps[self._idx]
            self._idx += 1
            return step

    async def get_response(self, interaction: Interaction) -> ScriptedStep:
        return self.next_step()


class ScriptedProvider:
    """Provider answering every chat call from a ``ResponseSource``.

    ``response_timeout`` bounds how long a single call waits on the source.
    """

    def __init__(
        self,
        source: ResponseSource,
        name: str = "test",
        model: str = "mock",
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
    ) -> None:
        self.source = source
        self.name = name
        self.model = model
        self.response_timeout = response_timeout
        self.calls: List[List[Message]] = []

    @property
    def interaction_count(self) -> int:
        return len(self.calls)

    async def chat(self, messages: Sequence[Message], tools: Optional[List[ToolDefinition]]) -> ChatResponse:
        self.calls.append([m.model_copy(deep=True) for m in messages])
        if is_summarization_request(messages):
            return ChatResponse(content=CANNED_SUMMARY, usage=Usage(input_tokens=10, output_tokens=20))
        interaction = Interaction(id=str(uuid4()), messages=list(messages), tools=list(tools or []))
        try:
            step = await asyncio.wait_for(self.source.get_response(interaction), self.response_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"no response within {self.response_timeout:g}s") from e
        if step.delay > 0:
            await asyncio.sleep(step.delay)
        if step.error:
            raise ProviderError(step.error)
        tool_calls = [
            tc if tc.id else tc.model_copy(update={"id": f"call_{uuid4().hex[:12]}"}) for tc in step.tool_calls
        ]
        return ChatResponse(
            content=step.content,
            tool_calls=tool_calls,
            usage=Usage(input_tokens=10, output_tokens=max(1, len(step.content) // 4)),
        )

    async def stream(
        self, messages: Sequence[Message], tools: Optional[List[ToolDefinition]]
    ) -> AsyncIterator[StreamEvent]:
        response = await self.chat(messages, tools)
        if response.content:
            yield StreamEvent(type=StreamEventType.text, text=response.content)
        for tc in response.tool_calls:
            yield StreamEvent(type=StreamEventType.tool_call, tool_call=tc)
        yield StreamEvent(type=StreamEventType.done, usage=response.usage)
