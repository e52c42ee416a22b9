from __future__ import annotations

"""Sub-agent manager.

A parent agent may spawn ephemeral children, each bound to a freshly created
task. Limits are derived from live queries, never from in-memory counters:

- ``max_per_parent`` caps the children of one parent that are still active
  (status not in completed/failed/idle).
- ``max_depth`` caps how far below a non-ephemeral agent spawning may go; with
  the default of 1 an ephemeral agent cannot spawn at all.

Spawn and cancel serialize on an ``asyncio.Lock`` so the count-then-insert
sequence cannot interleave within one process.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database import utc_now
from ratchet_ai.core.database.entities.agents import Agent, Task

from ..errors import NotFoundError, SubAgentError, SubAgentWaitTimeout
from ..schemas import TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_PARENT = 5
DEFAULT_MAX_DEPTH = 1
DEFAULT_WAIT_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 2.0
SUB_AGENT_TASK_PRIORITY = 5

_INACTIVE_AGENT_STATUSES = ("completed", "failed", "idle")
_FINISHED_TASK_STATUSES = (TaskStatus.completed.value, TaskStatus.failed.value, TaskStatus.cancelled.value)


@dataclass(frozen=True)
class SubTaskResult:
    task_id: str
    status: str
    result: str = ""
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"task_id": self.task_id, "status": self.status, "result": self.result, "error": self.error}


@dataclass
class SubAgentManager:
    session_factory: async_sessionmaker[AsyncSession]
    max_per_parent: int = DEFAULT_MAX_PER_PARENT
    max_depth: int = DEFAULT_MAX_DEPTH
    poll_interval: float = DEFAULT_POLL_INTERVAL
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_per_parent <= 0:
            self.max_per_parent = DEFAULT_MAX_PER_PARENT
        if self.max_depth <= 0:
            self.max_depth = DEFAULT_MAX_DEPTH

    async def count_active(self, parent_agent_id: str) -> int:
        async with self.session_factory() as s:
            stmt = (
                select(func.count())
                .select_from(Agent)
                .where(
                    Agent.parent_agent_id == parent_agent_id,
                    Agent.is_ephemeral.is_(True),
                    Agent.status.not_in(_INACTIVE_AGENT_STATUSES),
                )
            )
            return int((await s.execute(stmt)).scalar_one())

    async def _depth_of(self, s: AsyncSession, agent: Agent) -> int:
        """Number of ephemeral hops between ``agent`` and its non-ephemeral ancestor."""
        depth = 0
        seen = set()
        current: Optional[Agent] = agent
        while current is not None and current.is_ephemeral and current.id not in seen:
            depth += 1
            seen.add(current.id)
            if not current.parent_agent_id:
                break
            current = await s.get(Agent, current.parent_agent_id)
        return depth

    async def spawn(
        self,
        parent_agent_id: str,
        name: str,
        task_description: str,
        system_prompt: str = "",
        project_id: str = "",
    ) -> str:
        """
        Create an ephemeral child agent and its task.

        Args:
            parent_agent_id: The spawning agent.
            name: Display name for the child; also the task title.
            task_description: What the child should do.
            system_prompt: The child's system prompt.
            project_id: Project the child task belongs to, usually the parent's.

        Returns:
            The new task id.

        Raises:
            SubAgentError: If the parent is too deep to spawn or already has
                ``max_per_parent`` active children.
        """
        async with self._lock:
            async with self.session_factory() as s:
                parent = await s.get(Agent, parent_agent_id)
                if parent is not None and parent.is_ephemeral:
                    depth = await self._depth_of(s, parent)
                    if depth >= self.max_depth:
                        raise SubAgentError(
                            f"ephemeral agents cannot spawn sub-agents (max depth {self.max_depth})"
                        )

            count = await self.count_active(parent_agent_id)
            if count >= self.max_per_parent:
                raise SubAgentError(
                    f'parent "{parent_agent_id}" already has {count} active sub-agents (max {self.max_per_parent})'
                )

            now = utc_now()
            child = Agent(
                name=name,
                role="sub-agent",
                system_prompt=system_prompt,
                status="busy",
                is_lead=False,
                is_ephemeral=True,
                parent_agent_id=parent_agent_id,
                created_at=now,
                updated_at=now,
            )
            task = Task(
                title=name,
                description=task_description,
                status=TaskStatus.pending.value,
                priority=SUB_AGENT_TASK_PRIORITY,
                assigned_to=child.id,
                parent_id=parent_agent_id,
                project_id=project_id,
                created_at=now,
                updated_at=now,
            )
            async with self.session_factory() as s:
                s.add(child)
                s.add(task)
                await s.commit()

        logger.info("Agent %s spawned sub-agent %s (%s) with task %s", parent_agent_id, child.id, name, task.id)
        return task.id

    async def check_task(self, task_id: str) -> Tuple[str, str]:
        """
        Return ``(status, result)`` for a task; an empty result falls back to the task error.

        Raises:
            NotFoundError: If the task does not exist.
        """
        async with self.session_factory() as s:
            task = await s.get(Task, task_id)
        if task is None:
            raise NotFoundError(f'task "{task_id}" not found')
        result = task.result
        if not result and task.error:
            result = task.error
        return task.status, result

    async def wait_tasks(
        self, task_ids: Sequence[str], timeout: Optional[float] = None
    ) -> Dict[str, Dict[str, Any]]:
        """
        Block until every task reaches completed, failed or cancelled.

        Tasks already finished are returned without sleeping. A task that cannot
        be read is reported with ``status="error"``.

        Raises:
            SubAgentWaitTimeout: When ``timeout`` elapses; its ``results`` hold
                the finished tasks plus ``status="timeout"`` for the rest.
        """
        if timeout is None or timeout <= 0:
            timeout = DEFAULT_WAIT_TIMEOUT
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        results: Dict[str, Dict[str, Any]] = {}
        pending: List[str] = list(dict.fromkeys(task_ids))

        while True:
            still_pending: List[str] = []
            for task_id in pending:
                try:
                    status, result = await self.check_task(task_id)
                except NotFoundError as e:
                    results[task_id] = SubTaskResult(task_id=task_id, status="error", error=str(e)).to_dict()
                    continue
                if status in _FINISHED_TASK_STATUSES:
                    results[task_id] = SubTaskResult(task_id=task_id, status=status, result=result).to_dict()
                else:
                    still_pending.append(task_id)
            pending = still_pending
            if not pending:
                return results

            remaining = deadline - loop.time()
            if remaining <= 0:
                for task_id in pending:
                    results[task_id] = SubTaskResult(
                        task_id=task_id, status="timeout", error="task did not complete within timeout"
                    ).to_dict()
                logger.warning("Timed out waiting for %d sub-agent tasks", len(pending))
                raise SubAgentWaitTimeout(results)

            await asyncio.sleep(min(self.poll_interval, remaining))

    async def cancel_children(self, parent_agent_id: str) -> int:
        """
        Cancel the open tasks of every ephemeral child and idle the children.

        Returns:
            Number of tasks cancelled.
        """
        async with self._lock:
            async with self.session_factory() as s:
                children = select(Agent.id).where(
                    Agent.parent_agent_id == parent_agent_id, Agent.is_ephemeral.is_(True)
                )
                now = utc_now()
                cancelled = await s.execute(
                    update(Task)
                    .where(
                        Task.assigned_to.in_(children),
                        Task.status.in_((TaskStatus.pending.value, TaskStatus.in_progress.value)),
                    )
                    .values(status=TaskStatus.cancelled.value, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                await s.execute(
                    update(Agent)
                    .where(Agent.parent_agent_id == parent_agent_id, Agent.is_ephemeral.is_(True))
                    .values(status="idle", updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                await s.commit()
        count = cancelled.rowcount or 0
        if count:
            logger.info("Cancelled %d sub-agent tasks of %s", count, parent_agent_id)
        return count
