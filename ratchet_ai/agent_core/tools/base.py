from __future__ import annotations

"""Tool protocol and execution context.

A tool is the unit the model can invoke by name. The agent loop resolves the
name through ``ToolRegistry`` and executes it with a ``ToolContext`` that
identifies the calling agent and its workspace.

Tools should:

- validate their own arguments and raise on bad input (the loop turns any
  exception into an ``"Error: ..."`` tool message for the model),
- return JSON-serialisable values,
- leave allow/deny decisions to the registry's policy engine.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from ..policy.models import ToolScope
from ..schemas import ToolDefinition


@runtime_checkable
class ContainerExecutor(Protocol):
    """Runs commands inside a per-project container; only the interface is used here."""

    def is_available(self) -> bool: ...

    async def exec(self, project_id: str, command: str, timeout: float = 30.0) -> Dict[str, Any]: ...


@dataclass(frozen=True)
class ToolContext:
    """Execution context passed to tool implementations.

    Attributes
    ----------
    agent_id, task_id, team_id:
        The caller; also the scope the policy engine decides on.
    project_id, workspace_path:
        Where file tools are confined to.
    container:
        Present only when a container executor is ready for this project.
    """

    agent_id: str = ""
    task_id: str = ""
    team_id: str = ""
    project_id: str = ""
    workspace_path: str = ""
    container: Optional[ContainerExecutor] = None

    @property
    def scope(self) -> ToolScope:
        return ToolScope(agent_id=self.agent_id, task_id=self.task_id, team_id=self.team_id)


class Tool(Protocol):
    """Protocol for tool implementations."""

    name: str
    description: str

    def definition(self) -> ToolDefinition: ...

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any: ...


class BaseTool:
    """Convenience base for tools described by a static JSON schema.

    Subclasses set ``name``, ``description``, ``parameters`` (JSON schema
    properties) and ``required`` as class attributes.
    """

    name: str = ""
    description: str = ""
    parameters: Dict[str, Any] = {}
    required: List[str] = []

    def definition(self) -> ToolDefinition:
        schema: Dict[str, Any] = {"type": "object", "properties": dict(self.parameters)}
        if self.required:
            schema["required"] = list(self.required)
        return ToolDefinition(name=self.name, description=self.description, parameters=schema)

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        raise NotImplementedError


def str_arg(args: Dict[str, Any], key: str, *, required: bool = False, default: str = "") -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value:
        if required:
            raise ValueError(f"{key} is required")
        return default
    return value


def int_arg(args: Dict[str, Any], key: str, default: int) -> int:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return int(value)
