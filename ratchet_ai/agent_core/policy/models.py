from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class PolicyScope(str, Enum):
    global_ = "global"
    team = "team"
    agent = "agent"


class PolicyAction(str, Enum):
    allow = "allow"
    deny = "deny"
    require_approval = "require_approval"


TOOL_GROUPS: Dict[str, Tuple[str, ...]] = {
    "group:fs": ("file_read", "file_write", "file_list"),
    "group:runtime": ("shell_exec",),
    "group:web": ("web_fetch", "web_search"),
    "group:git": ("git_clone", "git_status", "git_commit", "git_push", "git_diff"),
    "group:memory": ("memory_search", "memory_save"),
    "group:agents": ("agent_spawn", "agent_check", "agent_wait"),
    "group:human": ("request_approval", "request_human", "check_human_request"),
    "group:task": ("task_create", "task_update"),
    "group:message": ("message_send",),
}


@dataclass(frozen=True)
class ToolScope:
    """Who is calling a tool: the triple the policy engine decides on."""

    agent_id: str = ""
    task_id: str = ""
    team_id: str = ""


@dataclass(frozen=True)
class PolicyDecision:
    """
    Result of evaluating the policy rows for one tool call.

    Attributes:
        action: allow, deny or require_approval.
        reason: Human-readable explanation, surfaced in deny errors.
    """

    action: PolicyAction
    reason: str

    @property
    def allowed(self) -> bool:
        return self.action != PolicyAction.deny


def policy_matches_tool(pattern: str, tool_name: str) -> bool:
    """Exact name, ``*``, a ``group:`` alias, or a trailing-``*`` prefix."""
    if pattern == tool_name or pattern == "*":
        return True
    if pattern.startswith("group:"):
        return tool_name in TOOL_GROUPS.get(pattern, ())
    if pattern.endswith("*"):
        return tool_name.startswith(pattern[:-1])
    return False
