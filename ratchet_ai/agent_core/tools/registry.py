from __future__ import annotations

"""Tool registry.

The registry maps tool names to implementations and is the only path through
which the agent loop executes tools. Every execution is checked against the
policy engine first, using the caller scope carried by ``ToolContext``.

Tools served by an MCP server are registered under ``mcp_<server>__<tool>``
and can be swapped as a group with ``unregister_mcp``/``register_mcp``. A loop
that looks a tool up during a reload sees either the old or the new set.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from ..errors import ToolNotFoundError, ToolPolicyDeniedError
from ..policy import PolicyAction, ToolPolicyEngine
from ..schemas import ToolDefinition
from .base import Tool, ToolContext

logger = logging.getLogger(__name__)


def mcp_tool_name(server: str, tool: str) -> str:
    return f"mcp_{server}__{tool}"


class MCPToolAdapter:
    """Exposes a tool from an MCP server under its namespaced registry name."""

    def __init__(self, server: str, tool: Tool) -> None:
        self.server = server
        self.inner = tool
        self.name = mcp_tool_name(server, tool.name)
        self.description = tool.description

    def definition(self) -> ToolDefinition:
        return self.inner.definition().model_copy(update={"name": self.name})

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        return await self.inner.execute(ctx, args)


class ToolRegistry:
    """
    In-memory mapping of tool names to implementations.

    Notes:
        - ``register`` overwrites any existing mapping for the name.
        - Without a policy engine every registered tool is allowed.
    """

    def __init__(self, policy: Optional[ToolPolicyEngine] = None) -> None:
        self._lock = threading.RLock()
        self._tools: Dict[str, Tool] = {}
        self._mcp: Dict[str, List[str]] = {}
        self.policy = policy

    def register(self, tool: Tool) -> None:
        with self._lock:
            self._tools[tool.name] = tool

    def register_mcp(self, server: str, tools: Iterable[Tool]) -> List[str]:
        names: List[str] = []
        with self._lock:
            for tool in tools:
                adapter = MCPToolAdapter(server, tool)
                self._tools[adapter.name] = adapter
                names.append(adapter.name)
            self._mcp.setdefault(server, []).extend(names)
        logger.info("Registered %d tools from MCP server %s", len(names), server)
        return names

    def unregister_mcp(self, server: str) -> int:
        with self._lock:
            names = self._mcp.pop(server, [])
            for name in names:
                self._tools.pop(name, None)
        logger.info("Unregistered %d tools from MCP server %s", len(names), server)
        return len(names)

    def get(self, name: str) -> Optional[Tool]:
        with self._lock:
            return self._tools.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._tools)

    def all_defs(self) -> List[ToolDefinition]:
        with self._lock:
            tools = [self._tools[n] for n in sorted(self._tools)]
        return [t.definition() for t in tools]

    async def execute(self, ctx: ToolContext, name: str, args: Dict[str, Any]) -> Any:
        """
        Execute a tool after checking policy.

        Raises:
            ToolNotFoundError: If no tool is registered under ``name``.
            ToolPolicyDeniedError: If the policy engine denies the call.
        """
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        if self.policy is not None:
            decision = await self.policy.decide(ctx.scope, name)
            if decision.action == PolicyAction.deny:
                logger.info("Tool %s denied for agent %s: %s", name, ctx.agent_id, decision.reason)
                raise ToolPolicyDeniedError(name, decision.reason)
            if decision.action == PolicyAction.require_approval:
                logger.info("Tool %s flagged for approval for agent %s; executing", name, ctx.agent_id)
        return await tool.execute(ctx, args or {})
