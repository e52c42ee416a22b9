"""LangGraph-based agent execution loop.

The loop drives one task at a time against a ``ServiceRegistry``: provider
calls, tool execution through the policy-checked registry, approval and
human-request waits, loop detection and context compaction.

The main entry point is ``AgentExecutor``.
"""

from .config import AgentLoopConfig, parse_duration
from .context_manager import ContextManager, estimate_tokens
from .engine import AgentExecutor
from .loop_detector import LoopDetectionConfig, LoopDetector, LoopStatus
from .models import AgentTask, ServiceRegistry

__all__ = [
    "AgentExecutor",
    "AgentLoopConfig",
    "AgentTask",
    "ContextManager",
    "LoopDetectionConfig",
    "LoopDetector",
    "LoopStatus",
    "ServiceRegistry",
    "estimate_tokens",
    "parse_duration",
]
