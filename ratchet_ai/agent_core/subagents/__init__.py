"""Bounded fan-out of ephemeral child agents."""

from .manager import SubAgentManager, SubTaskResult

__all__ = ["SubAgentManager", "SubTaskResult"]
