from __future__ import annotations

"""Approval manager.

Transaction model
-----------------

Every method opens its own ``AsyncSession`` and commits before returning.
Resolution is a conditional ``UPDATE ... WHERE status = 'pending'``: of any
number of concurrent approve/reject/timeout writers, exactly one changes the
row and the others are no-ops.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database import as_utc, new_id, utc_now
from ratchet_ai.core.database.entities.approvals import Approval

from ..errors import NotFoundError
from ..events import SSEHub
from ..schemas import ApprovalStatus

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MINUTES = 30
DEFAULT_POLL_INTERVAL = 2.0


@dataclass
class ApprovalManager:
    session_factory: async_sessionmaker[AsyncSession]
    hub: Optional[SSEHub] = None
    default_timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def _push(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.hub is None:
            return
        try:
            self.hub.broadcast_event(event_type, payload)
        except Exception as e:
            logger.debug("Dropping %s event: %s", event_type, e)

    async def create(self, approval: Approval) -> Approval:
        """
        Persist a new pending approval and announce it.

        Args:
            approval: Unsaved approval. ``id`` and ``timeout_minutes`` are filled
                in when missing; ``status`` is forced to pending.

        Returns:
            The persisted approval.
        """
        if not approval.id:
            approval.id = new_id()
        if not approval.timeout_minutes or approval.timeout_minutes <= 0:
            approval.timeout_minutes = self.default_timeout_minutes
        approval.status = ApprovalStatus.pending.value
        approval.created_at = utc_now()
        approval.resolved_at = None
        async with self.session_factory() as s:
            s.add(approval)
            await s.commit()
        logger.info("Approval %s requested by agent %s: %s", approval.id, approval.agent_id, approval.action)
        self._push(
            "approval_requested",
            {
                "id": approval.id,
                "action": approval.action,
                "reason": approval.reason,
                "details": approval.details,
                "status": ApprovalStatus.pending.value,
            },
        )
        return approval

    async def create_approval(self, agent_id: str, task_id: str, action: str, reason: str, details: str = "") -> str:
        approval = await self.create(
            Approval(agent_id=agent_id, task_id=task_id, action=action, reason=reason, details=details)
        )
        return approval.id

    async def _resolve(self, approval_id: str, status: ApprovalStatus, comment: str) -> bool:
        async with self.session_factory() as s:
            result = await s.execute(
                update(Approval)
                .where(Approval.id == approval_id, Approval.status == ApprovalStatus.pending.value)
                .values(status=status.value, reviewer_comment=comment, resolved_at=utc_now())
            )
            await s.commit()
        changed = (result.rowcount or 0) > 0
        if changed:
            logger.info("Approval %s %s", approval_id, status.value)
            self._push(
                "approval_resolved",
                {"id": approval_id, "status": status.value, "reviewer_comment": comment},
            )
        else:
            logger.debug("Approval %s not pending; %s ignored", approval_id, status.value)
        return changed

    async def approve(self, approval_id: str, comment: str = "") -> bool:
        """Approve a pending approval. Returns False if it was not pending."""
        return await self._resolve(approval_id, ApprovalStatus.approved, comment)

    async def reject(self, approval_id: str, comment: str = "") -> bool:
        """Reject a pending approval. Returns False if it was not pending."""
        return await self._resolve(approval_id, ApprovalStatus.rejected, comment)

    async def get(self, approval_id: str) -> Optional[Approval]:
        async with self.session_factory() as s:
            return await s.get(Approval, approval_id)

    async def list_pending(self) -> List[Approval]:
        async with self.session_factory() as s:
            stmt = (
                select(Approval)
                .where(Approval.status == ApprovalStatus.pending.value)
                .order_by(Approval.created_at.asc())
            )
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def check_timeout(self) -> int:
        """
        Mark every pending approval whose deadline has passed as timed out.

        Returns:
            Number of approvals transitioned.
        """
        now = utc_now()
        async with self.session_factory() as s:
            result = await s.execute(select(Approval).where(Approval.status == ApprovalStatus.pending.value))
            expired = [
                a.id
                for a in result.scalars().all()
                if as_utc(a.created_at) + timedelta(minutes=a.timeout_minutes) < now
            ]
            if not expired:
                return 0
            upd = await s.execute(
                update(Approval)
                .where(Approval.id.in_(expired), Approval.status == ApprovalStatus.pending.value)
                .values(status=ApprovalStatus.timeout.value, resolved_at=now)
            )
            await s.commit()
        count = upd.rowcount or 0
        if count:
            logger.info("Timed out %d pending approvals", count)
        return count

    async def wait_for_resolution(self, approval_id: str, timeout: float) -> Approval:
        """
        Poll until the approval leaves ``pending`` or ``timeout`` seconds pass.

        On timeout the row is moved to ``timeout`` with a conditional update and
        an approval carrying that status is returned. Cancellation of the
        calling task propagates without touching the row.

        Raises:
            NotFoundError: If the approval does not exist.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(timeout, 0.0)
        while True:
            approval = await self.get(approval_id)
            if approval is None:
                raise NotFoundError(f"approval {approval_id} not found")
            if approval.status != ApprovalStatus.pending.value:
                return approval

            remaining = deadline - loop.time()
            if remaining <= 0:
                async with self.session_factory() as s:
                    result = await s.execute(
                        update(Approval)
                        .where(Approval.id == approval_id, Approval.status == ApprovalStatus.pending.value)
                        .values(status=ApprovalStatus.timeout.value, resolved_at=utc_now())
                    )
                    await s.commit()
                if (result.rowcount or 0) == 0:
                    # A reviewer got there first.
                    latest = await self.get(approval_id)
                    if latest is not None and latest.status != ApprovalStatus.pending.value:
                        return latest
                logger.info("Approval %s timed out after %.1fs", approval_id, timeout)
                approval.status = ApprovalStatus.timeout.value
                return approval

            await asyncio.sleep(min(self.poll_interval, remaining))
