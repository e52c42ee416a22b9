from __future__ import annotations

"""LangGraph agent loop.

``AgentExecutor`` drives one task: it asks the provider for the next step,
executes the requested tools, feeds the results back and repeats until the
model answers without tool calls or ``max_iterations`` provider calls have
been made.

Execution model
---------------

- ``prepare`` builds the tool context, adds skills and relevant memories to
  the system prompt and records the prologue.
- ``think`` runs one iteration's provider call (after compaction and
  redaction) and records the assistant response.
- ``act`` executes the tool calls of that response in order. Approval and
  blocking human-request tools are followed by a wait on the corresponding
  manager.
- ``finish`` cancels leftover sub-agents and saves the conversation to memory.

Outcomes
--------

Soft failures are values, never exceptions. A provider error, a loop break,
an approval timeout and an expired human request each end the run with a
``StepResult`` carrying the matching status; those runs skip ``finish``.
Only configuration errors (no provider) raise. Cancellation propagates from
whichever await is in flight; transcript rows already written stay.
"""

import json
import logging
from typing import Any, List, Optional, Tuple

from langgraph.graph import END, StateGraph
from sqlalchemy import update

from ratchet_ai.core.database import utc_now
from ratchet_ai.core.database.entities.agents import Project, Task

from ..errors import ConfigurationError
from ..gates.human_request import parse_metadata
from ..provider import Embedder, Provider
from ..schemas import (
    ApprovalStatus,
    HumanRequestStatus,
    HumanRequestType,
    Message,
    Role,
    StepResult,
    StepStatus,
    TaskStatus,
    ToolCall,
)
from ..tools import REQUEST_APPROVAL, REQUEST_HUMAN, ToolContext
from .config import AgentLoopConfig
from .context_manager import ContextManager
from .loop_detector import LoopDetector, LoopStatus
from .models import AgentTask, ServiceRegistry, _GraphState, _LoopRun

logger = logging.getLogger(__name__)

MEMORY_PROMPT_LIMIT = 5


class AgentExecutor:
    """Run the agent loop for single tasks against a ``ServiceRegistry``."""

    def __init__(self, services: ServiceRegistry, config: Optional[AgentLoopConfig] = None) -> None:
        """
        Initialize the executor.

        Args:
            services: The services loops may use; missing ones are skipped.
            config: Loop limits and timeouts; defaults when omitted.
        """
        self._services = services
        self._config = config or AgentLoopConfig()
        self._graph = self._build_graph()

    @property
    def config(self) -> AgentLoopConfig:
        return self._config

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_GraphState)
        g.add_node("prepare", self._node_prepare)
        g.add_node("think", self._node_think)
        g.add_node("act", self._node_act)
        g.add_node("finish", self._node_finish)

        g.set_entry_point("prepare")
        g.add_edge("prepare", "think")
        g.add_conditional_edges(
            "think",
            self._route_after_think,
            {"act": "act", "finish": "finish", "stop": END},
        )
        g.add_conditional_edges(
            "act",
            self._route_after_act,
            {"think": "think", "finish": "finish", "stop": END},
        )
        g.add_edge("finish", END)
        return g.compile()

    async def execute(self, task: AgentTask) -> StepResult:
        """
        Run the loop for ``task`` until it completes or ends early.

        Returns:
            The step result; ``status`` is ``completed`` unless a branch ended
            the run early.

        Raises:
            ConfigurationError: If no provider can be resolved.
        """
        provider = await self._resolve_provider(task)
        run = _LoopRun(
            task=task,
            provider=provider,
            tool_ctx=ToolContext(agent_id=task.agent_id, task_id=task.task_id, team_id=task.team_id),
            tool_defs=[],
            detector=LoopDetector(self._config.loop_detection.to_detector_config()),
            context=ContextManager(
                getattr(provider, "model", "") or getattr(provider, "name", ""),
                threshold=self._config.context.compaction_threshold,
                limit=self._config.context.context_limit,
            ),
        )
        state: _GraphState = {"run": run, "messages": [], "iteration": 0, "final_content": ""}
        # Each iteration visits think and act once; the extra steps cover prepare and finish.
        final = await self._graph.ainvoke(
            state, config={"recursion_limit": 2 * self._config.max_iterations + 10}
        )
        outcome = final.get("outcome")
        if outcome is None:
            outcome = StepResult(
                result=final["final_content"], status=StepStatus.completed, iterations=final["iteration"]
            )
        await self._update_task(task, outcome)
        return outcome

    async def _resolve_provider(self, task: AgentTask) -> Provider:
        services = self._services
        if services.providers is not None:
            try:
                provider = await services.providers.resolve(task.provider_alias)
                logger.info(
                    "Provider resolved for agent %s: alias=%r name=%s",
                    task.agent_name,
                    task.provider_alias,
                    getattr(provider, "name", ""),
                )
                return provider
            except ConfigurationError as e:
                logger.debug("Provider registry lookup failed for %r: %s", task.provider_alias, e)

        provider = services.named_providers.get(self._config.provider) if self._config.provider else None
        if provider is None:
            provider = services.provider
        if provider is None:
            raise ConfigurationError(f"no provider available for agent {task.agent_name!r}")
        logger.info("Provider resolved for agent %s: name=%s", task.agent_name, getattr(provider, "name", ""))
        return provider

    # -- nodes ---------------------------------------------------------------

    async def _node_prepare(self, state: _GraphState) -> _GraphState:
        """Build the tool context, the system prompt and the prologue."""
        run = state["run"]
        task = run.task
        run.tool_ctx = await self._build_tool_context(task)

        system_prompt = task.system_prompt
        if self._services.skills is not None:
            try:
                skill_prompt = await self._services.skills.build_skill_prompt(task.agent_id)
            except Exception as e:
                logger.warning("Skill prompt unavailable for agent %s: %s", task.agent_id, e)
                skill_prompt = ""
            if skill_prompt:
                system_prompt = f"{system_prompt}\n\n{skill_prompt}"

        if self._services.memory is not None and task.agent_id:
            try:
                memories = await self._services.memory.search(task.agent_id, task.description, MEMORY_PROMPT_LIMIT)
            except Exception as e:
                logger.warning("Memory search failed for agent %s: %s", task.agent_id, e)
                memories = []
            if memories:
                lines = "".join(f"- [{m.category}] {m.content}\n" for m in memories)
                system_prompt = f"{system_prompt}\n\n## Relevant Memory\n{lines}"

        messages = [
            Message(role=Role.system, content=system_prompt),
            Message(role=Role.user, content=f'Task for agent "{task.agent_name}":\n\n{task.description}'),
        ]
        if self._services.tools is not None:
            run.tool_defs = self._services.tools.all_defs()
        for message in messages:
            await self._record(run, message, 0)

        await self._mark_task_started(task)
        state["messages"] = messages
        return state

    async def _node_think(self, state: _GraphState) -> _GraphState:
        """One provider call, preceded by compaction and redaction."""
        run = state["run"]
        task = run.task
        iteration = state["iteration"] + 1
        state["iteration"] = iteration
        messages = state["messages"]

        if run.context.needs_compaction(messages):
            estimated, limit = run.context.token_usage(messages)
            before = run.context.compactions
            messages = await run.context.compact(messages, run.provider)
            state["messages"] = messages
            if run.context.compactions > before:
                logger.info(
                    "Compacted context for agent %s at iteration %d: %d of %d tokens (compaction #%d)",
                    task.agent_name,
                    iteration,
                    estimated,
                    limit,
                    run.context.compactions,
                )
                await self._record(
                    run,
                    Message(
                        role=Role.user,
                        content=(
                            f"[SYSTEM] Context window compacted (compaction #{run.context.compactions}). "
                            f"Estimated {estimated} tokens of {limit} limit."
                        ),
                    ),
                    iteration,
                )

        guard = self._services.guard
        if guard is not None:
            for message in messages:
                guard.check_and_redact(message)

        try:
            response = await run.provider.chat(messages, run.tool_defs or None)
        except Exception as e:
            error = f"LLM call failed at iteration {iteration}: {e}"
            logger.error("Chat failed for agent %s at iteration %d: %s", task.agent_name, iteration, e)
            state["outcome"] = StepResult(result=error, status=StepStatus.failed, iterations=iteration, error=error)
            return state

        state["final_content"] = response.content
        assistant = Message(role=Role.assistant, content=response.content, tool_calls=list(response.tool_calls))
        await self._record(run, assistant, iteration)
        messages.append(assistant)
        state["pending_calls"] = list(response.tool_calls)
        return state

    async def _node_act(self, state: _GraphState) -> _GraphState:
        """Execute the pending tool calls in order."""
        run = state["run"]
        task = run.task
        iteration = state["iteration"]
        messages = state["messages"]
        calls: List[ToolCall] = state.get("pending_calls") or []
        state["pending_calls"] = []

        for tc in calls:
            result_str, is_error = await self._execute_tool(run, tc)

            if tc.name == REQUEST_APPROVAL and not is_error:
                result_str, stop = await self._await_approval(run, result_str, iteration)
                if stop:
                    state["outcome"] = StepResult(
                        result=result_str, status=StepStatus.approval_timeout, iterations=iteration, error=result_str
                    )
                    return state

            if tc.name == REQUEST_HUMAN and not is_error:
                reply, stop = await self._await_human_request(run, result_str, iteration)
                if stop:
                    state["outcome"] = StepResult(
                        result=reply, status=StepStatus.request_expired, iterations=iteration, error=reply
                    )
                    return state
                if reply:
                    result_str = reply

            if self._services.guard is not None:
                result_str = self._services.guard.redact(result_str)

            tool_message = Message(role=Role.tool, content=result_str, tool_call_id=tc.id)
            messages.append(tool_message)
            await self._record(run, tool_message, iteration)

            run.detector.record(tc.name, tc.arguments, result_str, is_error)
            status, detail = run.detector.check()
            if status == LoopStatus.warning:
                warning = Message(
                    role=Role.user, content=f"[SYSTEM] Loop warning: {detail}. Please try a different approach."
                )
                messages.append(warning)
                await self._record(run, warning, iteration)
            elif status == LoopStatus.break_:
                summary = f"Agent loop terminated: {detail}"
                logger.warning(
                    "Loop detected for agent %s at iteration %d: %s", task.agent_name, iteration, detail
                )
                await self._record(run, Message(role=Role.user, content=f"[SYSTEM] {summary}"), iteration)
                state["outcome"] = StepResult(
                    result=summary, status=StepStatus.loop_detected, iterations=iteration, error=detail
                )
                return state
        return state

    async def _node_finish(self, state: _GraphState) -> _GraphState:
        """Cancel orphaned sub-agents and save the assistant's output to memory."""
        run = state["run"]
        task = run.task
        if self._services.sub_agents is not None:
            try:
                await self._services.sub_agents.cancel_children(task.agent_id)
            except Exception as e:
                logger.warning("Failed to cancel sub-agent children of %s: %s", task.agent_name, e)

        if self._services.memory is not None and task.agent_id:
            transcript = "".join(
                f"{m.content}\n\n" for m in state["messages"] if m.role == Role.assistant and m.content
            )
            if transcript:
                embedder = run.provider if isinstance(run.provider, Embedder) else None
                try:
                    await self._services.memory.extract_and_save(task.agent_id, transcript, embedder)
                except Exception as e:
                    logger.warning("Failed to extract and save memory for %s: %s", task.agent_name, e)
        return state

    # -- routing -------------------------------------------------------------

    def _route_after_think(self, state: _GraphState) -> str:
        if state.get("outcome") is not None:
            return "stop"
        if state.get("pending_calls"):
            return "act"
        return "finish"

    def _route_after_act(self, state: _GraphState) -> str:
        if state.get("outcome") is not None:
            return "stop"
        if state["iteration"] >= self._config.max_iterations:
            return "finish"
        return "think"

    # -- helpers -------------------------------------------------------------

    async def _build_tool_context(self, task: AgentTask) -> ToolContext:
        workspace = ""
        container = None
        if task.project_id:
            workspace = await self._project_workspace(task.project_id)
            executor = self._services.container
            if executor is not None and executor.is_available():
                container = executor
        return ToolContext(
            agent_id=task.agent_id,
            task_id=task.task_id,
            team_id=task.team_id,
            project_id=task.project_id,
            workspace_path=workspace,
            container=container,
        )

    async def _project_workspace(self, project_id: str) -> str:
        factory = self._services.session_factory
        if factory is None:
            return ""
        try:
            async with factory() as s:
                project = await s.get(Project, project_id)
        except Exception as e:
            logger.warning("Workspace lookup failed for project %s: %s", project_id, e)
            return ""
        return project.workspace_path if project is not None else ""

    async def _execute_tool(self, run: _LoopRun, tc: ToolCall) -> Tuple[str, bool]:
        registry = self._services.tools
        if registry is None:
            return "Tool execution not available", True
        try:
            result = await registry.execute(run.tool_ctx, tc.name, tc.arguments)
        except Exception as e:
            logger.debug("Tool %s failed for agent %s: %s", tc.name, run.task.agent_name, e)
            return f"Error: {e}", True
        return json.dumps(result, default=str), False

    async def _await_approval(self, run: _LoopRun, result_str: str, iteration: int) -> Tuple[str, bool]:
        """Wait on a just-created approval. Returns the tool message and whether to stop."""
        parsed = _parse_object(result_str)
        approval_id = parsed.get("approval_id") if parsed else None
        manager = self._services.approvals
        if not isinstance(approval_id, str) or not approval_id or manager is None:
            return result_str, False

        logger.info(
            "Agent %s waiting for approval %s at iteration %d", run.task.agent_name, approval_id, iteration
        )
        try:
            approval = await manager.wait_for_resolution(approval_id, self._config.approval_timeout)
        except Exception as e:
            return f"Approval wait error: {e}", False

        if approval.status == ApprovalStatus.approved.value:
            return f"Approval granted. Reviewer comment: {approval.reviewer_comment}. You may proceed.", False
        if approval.status == ApprovalStatus.rejected.value:
            return (
                f"Approval rejected. Reviewer comment: {approval.reviewer_comment}. "
                "Please reconsider your approach.",
                False,
            )
        if approval.status == ApprovalStatus.timeout.value:
            return (
                "Approval request timed out after waiting. Action was not approved within the timeout period.",
                True,
            )
        return result_str, False

    async def _await_human_request(self, run: _LoopRun, result_str: str, iteration: int) -> Tuple[str, bool]:
        """
        Wait on a blocking human request.

        Returns the replacement tool message ("" to keep the raw result) and
        whether to stop.
        """
        parsed = _parse_object(result_str)
        if not parsed or parsed.get("blocking") is not True:
            return "", False
        request_id = parsed.get("request_id")
        manager = self._services.human_requests
        if not isinstance(request_id, str) or not request_id or manager is None:
            return "", False

        logger.info(
            "Agent %s waiting for human request %s at iteration %d", run.task.agent_name, request_id, iteration
        )
        try:
            request = await manager.wait_for_resolution(request_id, self._config.request_timeout)
        except Exception as e:
            return f"Human request wait error: {e}", False

        if request.status == HumanRequestStatus.resolved.value:
            if request.request_type == HumanRequestType.token.value:
                secret_name = parse_metadata(request).get("secret_name")
                where = (
                    f'secret "{secret_name}"'
                    if isinstance(secret_name, str) and secret_name
                    else "the configured secret store"
                )
                reply = (
                    f"Human provided the requested token. It has been stored in {where}. "
                    "Do not request the raw value; read it via the secrets provider."
                )
            else:
                reply = f"Human responded to your request. Response: {request.response_data}"
            if request.response_comment:
                reply += f" Comment: {request.response_comment}"
            return reply, False
        if request.status == HumanRequestStatus.cancelled.value:
            return f"Human cancelled your request. Comment: {request.response_comment}", False
        if request.status == HumanRequestStatus.expired.value:
            return "Human request timed out. No response was received within the timeout period.", True
        return "", False

    async def _record(self, run: _LoopRun, message: Message, iteration: int) -> None:
        recorder = self._services.transcripts
        if recorder is None:
            return
        task = run.task
        try:
            await recorder.record_message(
                message,
                agent_id=task.agent_id,
                task_id=task.task_id,
                project_id=task.project_id,
                iteration=iteration,
            )
        except Exception as e:
            logger.warning("Transcript write failed for task %s: %s", task.task_id, e)

    async def _mark_task_started(self, task: AgentTask) -> None:
        await self._write_task(task.task_id, status=TaskStatus.in_progress.value)

    async def _update_task(self, task: AgentTask, outcome: StepResult) -> None:
        await self._write_task(
            task.task_id,
            status=outcome.status.value,
            result=outcome.result,
            error=outcome.error or "",
        )

    async def _write_task(self, task_id: str, **values: Any) -> None:
        factory = self._services.session_factory
        if factory is None or not task_id:
            return
        try:
            async with factory() as s:
                await s.execute(update(Task).where(Task.id == task_id).values(updated_at=utc_now(), **values))
                await s.commit()
        except Exception as e:
            logger.warning("Task %s status update failed: %s", task_id, e)


def _parse_object(raw: str) -> Optional[dict]:
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None
