"""Ratchet-AI.

This package contains the execution core of an autonomous agent orchestration
platform: given a persisted task assigned to an agent, it drives a bounded,
tool-augmented reasoning loop against a pluggable language-model provider.

Core subpackages
----------------

- ``ratchet_ai.agent_core``:

  - The LangGraph-based agent execution loop (``runtime.engine``).
  - Loop detection and context-window compaction.
  - Persistent human gates (approvals and generic human requests).
  - Sub-agent fan-out with depth and concurrency limits.
  - The tool registry, its policy engine, and the built-in tools.
  - Secret redaction, transcript recording, memory and skills.

- ``ratchet_ai.core``:

  - Logging configuration and the SQLModel persistence layer.

- ``ratchet_ai.server``:

  - Settings and the FastAPI surface (SSE stream, approval and human-request
    resolution endpoints).

Typical workflow
----------------

1. Build a ``ServiceRegistry`` with the services available in the process.
2. Create an ``AgentExecutor`` and call ``execute`` with the agent and task.
3. Observe progress through the SSE hub and the transcript table; resolve
   approvals and human requests over HTTP while the loop waits.
"""

__version__ = "0.1.0"
