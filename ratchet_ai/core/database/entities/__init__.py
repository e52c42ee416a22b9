"""
Database entity models.

Modules:
- agents: agents, tasks and projects (the records the loop reads and sub-agents write)
- transcripts: append-only per-task message journal
- approvals: human approval gate
- human_requests: generic human request gate
- memory: long-term agent memory entries
- policies: tool allow/deny rules
- providers: language-model provider configurations resolved by alias
- skills: skill documents and their assignment to agents
"""

from . import agents, approvals, human_requests, memory, policies, providers, skills, transcripts

__all__ = [
    "agents",
    "approvals",
    "human_requests",
    "memory",
    "policies",
    "providers",
    "skills",
    "transcripts",
]
