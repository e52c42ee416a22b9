from __future__ import annotations

"""Registration of the built-in tool set.

Only tools whose backing service is available are registered, so an agent
without a memory store never sees ``memory_search``.
"""

import logging
from typing import List, Optional

from ..gates import ApprovalManager, HumanRequestManager
from ..memory import MemoryStore
from ..subagents import SubAgentManager
from .agents import AgentCheckTool, AgentSpawnTool, AgentWaitTool
from .base import Tool
from .files import FileListTool, FileReadTool, FileWriteTool
from .gates import CheckHumanRequestTool, RequestApprovalTool, RequestHumanTool
from .memory import MemorySaveTool, MemorySearchTool
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    workspace: Optional[str] = None,
    approvals: Optional[ApprovalManager] = None,
    human_requests: Optional[HumanRequestManager] = None,
    sub_agents: Optional[SubAgentManager] = None,
    memory: Optional[MemoryStore] = None,
) -> List[str]:
    """Register the built-in tools backed by the given services; returns their names."""
    tools: List[Tool] = [FileReadTool(workspace), FileWriteTool(workspace), FileListTool(workspace)]
    if approvals is not None:
        tools.append(RequestApprovalTool(approvals))
    if human_requests is not None:
        tools += [RequestHumanTool(human_requests), CheckHumanRequestTool(human_requests)]
    if sub_agents is not None:
        tools += [AgentSpawnTool(sub_agents), AgentCheckTool(sub_agents), AgentWaitTool(sub_agents)]
    if memory is not None:
        tools += [MemorySearchTool(memory), MemorySaveTool(memory)]

    for tool in tools:
        registry.register(tool)
    names = [t.name for t in tools]
    logger.debug("Registered built-in tools: %s", ", ".join(names))
    return names
