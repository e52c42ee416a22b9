"""Agent execution core: the per-task loop and the services it composes.

Design overview
---------------

``runtime.engine.AgentExecutor`` drives one task at a time through a LangGraph
state machine (prepare, think, act, finish). Each iteration asks the provider
for a response, dispatches the requested tool calls through the policy-gated
``tools.ToolRegistry``, and feeds results back to the model.

Around that loop sit the collaborating services, all optional except the
provider:

- ``security.SecretGuard`` redacts known secret values from every message.
- ``transcript.TranscriptRecorder`` journals each message durably.
- ``runtime.LoopDetector`` classifies tool-call history into ok/warning/break.
- ``runtime.ContextManager`` compacts long conversations.
- ``gates.ApprovalManager`` and ``gates.HumanRequestManager`` block the loop on
  human input.
- ``subagents.SubAgentManager`` spawns bounded ephemeral children.
- ``memory.MemoryStore`` and ``skills.SkillManager`` enrich the system prompt.
- ``events.SSEHub`` pushes notifications to observers.

Terminal outcomes (failed, loop_detected, approval_timeout, request_expired)
are returned as ``schemas.StepResult`` values; only configuration problems are
raised.
"""
