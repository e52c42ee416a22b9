from __future__ import annotations

"""Memory tools: search and save facts for the calling agent."""

from typing import Any, Dict

from ..memory import MemoryStore
from .base import BaseTool, ToolContext, int_arg, str_arg


class MemorySearchTool(BaseTool):
    name = "memory_search"
    description = "Search persistent agent memory"
    parameters = {
        "query": {"type": "string", "description": "Keywords to search for"},
        "limit": {"type": "integer", "description": "Maximum number of results to return (default 5)"},
    }
    required = ["query"]

    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        query = str_arg(args, "query", required=True)
        if not ctx.agent_id:
            raise ValueError("agent ID not available")
        entries = await self.store.search(ctx.agent_id, query, int_arg(args, "limit", 5))
        results = [
            {"id": e.id, "content": e.content, "category": e.category, "created_at": e.created_at.isoformat()}
            for e in entries
        ]
        return {"results": results, "count": len(results)}


class MemorySaveTool(BaseTool):
    name = "memory_save"
    description = "Save a fact or decision to persistent memory"
    parameters = {
        "content": {"type": "string", "description": "The fact, decision or preference to remember"},
        "category": {"type": "string", "description": "Category (e.g. decision, fact, preference); default general"},
    }
    required = ["content"]

    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        content = str_arg(args, "content", required=True)
        category = str_arg(args, "category", default="general")
        if not ctx.agent_id:
            raise ValueError("agent ID not available")
        await self.store.save_text(ctx.agent_id, content, category)
        return {"saved": True, "category": category}
