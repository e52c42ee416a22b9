from __future__ import annotations

"""Exception hierarchy for the agent execution core.

Only configuration problems and programming errors escape the agent loop as
exceptions. Everything the model or a tool can cause is converted into a
``StepResult`` or a tool error message instead.
"""

from typing import Any, Dict


class RatchetError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(RatchetError):
    """A required service or piece of agent context is missing."""


class NotFoundError(RatchetError):
    """A persisted record (approval, human request, task, agent) does not exist."""


class ProviderError(RatchetError):
    """A model provider failed to produce a response."""


class ScriptExhaustedError(ProviderError):
    """A scripted provider ran out of steps."""


class ToolError(RatchetError):
    """Base class for tool lookup and execution failures."""


class ToolNotFoundError(ToolError):
    def __init__(self, name: str) -> None:
        super().__init__(f'tool "{name}" not found in registry')
        self.name = name


class ToolPolicyDeniedError(ToolError):
    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f'tool "{name}" denied by policy: {reason}')
        self.name = name
        self.reason = reason


class SubAgentError(RatchetError):
    """Spawning a sub-agent violated a depth or fan-out limit."""


class SubAgentWaitTimeout(SubAgentError):
    """Waiting for sub-agent tasks exceeded the wall-clock timeout.

    ``results`` holds every task, with ``status="timeout"`` for those that did
    not finish.
    """

    def __init__(self, results: Dict[str, Dict[str, Any]]) -> None:
        super().__init__("task did not complete within timeout")
        self.results = results
