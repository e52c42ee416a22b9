"""Tool allow/deny policy evaluated before every tool execution."""

from .engine import ToolPolicyEngine
from .models import TOOL_GROUPS, PolicyAction, PolicyDecision, PolicyScope, ToolScope, policy_matches_tool

__all__ = [
    "PolicyAction",
    "PolicyDecision",
    "PolicyScope",
    "TOOL_GROUPS",
    "ToolPolicyEngine",
    "ToolScope",
    "policy_matches_tool",
]
