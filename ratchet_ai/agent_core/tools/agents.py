from __future__ import annotations

"""Sub-agent tools: spawn, check and wait."""

from typing import Any, Dict, List

from ..errors import SubAgentWaitTimeout
from ..subagents import SubAgentManager
from .base import BaseTool, ToolContext, int_arg, str_arg

DEFAULT_SUB_AGENT_PROMPT = "You are a helpful AI sub-agent. Complete the assigned task and report your findings."


class AgentSpawnTool(BaseTool):
    name = "agent_spawn"
    description = "Spawn an ephemeral sub-agent to handle a delegated task in parallel"
    parameters = {
        "name": {"type": "string", "description": "A short name for the sub-agent and its task"},
        "task_description": {"type": "string", "description": "The task to delegate to the sub-agent"},
        "system_prompt": {"type": "string", "description": "Optional system prompt for the sub-agent personality"},
    }
    required = ["name", "task_description"]

    def __init__(self, manager: SubAgentManager) -> None:
        self.manager = manager

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        name = str_arg(args, "name", required=True)
        task_description = str_arg(args, "task_description", required=True)
        if not ctx.agent_id:
            raise ValueError("agent_spawn: no parent agent ID in context")
        task_id = await self.manager.spawn(
            ctx.agent_id,
            name,
            task_description,
            str_arg(args, "system_prompt", default=DEFAULT_SUB_AGENT_PROMPT),
            project_id=ctx.project_id,
        )
        return {"task_id": task_id, "name": name, "status": "spawned"}


class AgentCheckTool(BaseTool):
    name = "agent_check"
    description = "Check the status of a spawned sub-agent task"
    parameters = {"task_id": {"type": "string", "description": "The task ID returned by agent_spawn"}}
    required = ["task_id"]

    def __init__(self, manager: SubAgentManager) -> None:
        self.manager = manager

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        task_id = str_arg(args, "task_id", required=True)
        status, result = await self.manager.check_task(task_id)
        return {"task_id": task_id, "status": status, "result": result}


class AgentWaitTool(BaseTool):
    name = "agent_wait"
    description = "Wait for one or more spawned sub-agent tasks to complete"
    parameters = {
        "task_ids": {"type": "array", "items": {"type": "string"}, "description": "List of task IDs to wait for"},
        "timeout_seconds": {"type": "integer", "description": "Maximum seconds to wait (default 300)"},
    }
    required = ["task_ids"]

    def __init__(self, manager: SubAgentManager) -> None:
        self.manager = manager

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        raw = args.get("task_ids")
        if not isinstance(raw, list) or not raw:
            raise ValueError("task_ids must be a non-empty array")
        task_ids: List[str] = [v for v in raw if isinstance(v, str) and v]
        if not task_ids:
            raise ValueError("task_ids must contain at least one valid string ID")
        timeout = int_arg(args, "timeout_seconds", 300)
        error = ""
        try:
            results = await self.manager.wait_tasks(task_ids, float(timeout))
        except SubAgentWaitTimeout as e:
            results = e.results
            error = str(e)
        out: Dict[str, Any] = {"results": [results[t] for t in task_ids if t in results]}
        if error:
            out["error"] = error
        return out
