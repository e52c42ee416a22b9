import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import update

from ratchet_ai.agent_core.errors import NotFoundError
from ratchet_ai.agent_core.gates import ApprovalManager
from ratchet_ai.core.database import utc_now
from ratchet_ai.core.database.entities.approvals import Approval


@pytest.fixture
def approvals(session_factory, hub):
    return ApprovalManager(session_factory, hub, poll_interval=0.01)


class TestApprovalLifecycle:
    async def test_create_is_pending_and_announced(self, approvals, hub):
        client = hub.register()

        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it", "prod")

        approval = await approvals.get(approval_id)
        assert approval.status == "pending"
        assert approval.timeout_minutes == 30
        assert approval.resolved_at is None
        event = client.queue.get_nowait()
        assert event.event == "approval_requested"
        assert '"action": "deploy"' in event.data

    async def test_approve_sets_comment_and_resolved_at(self, approvals):
        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it")

        assert await approvals.approve(approval_id, "looks good") is True

        approval = await approvals.get(approval_id)
        assert approval.status == "approved"
        assert approval.reviewer_comment == "looks good"
        assert approval.resolved_at is not None

    async def test_second_resolution_is_noop(self, approvals):
        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it")
        await approvals.reject(approval_id, "no")

        assert await approvals.approve(approval_id, "yes") is False

        approval = await approvals.get(approval_id)
        assert approval.status == "rejected"
        assert approval.reviewer_comment == "no"

    async def test_concurrent_resolution_single_winner(self, approvals):
        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it")

        outcomes = await asyncio.gather(
            approvals.approve(approval_id, "a"),
            approvals.reject(approval_id, "b"),
            approvals.approve(approval_id, "c"),
        )

        assert sum(outcomes) == 1
        approval = await approvals.get(approval_id)
        assert approval.status in ("approved", "rejected")

    async def test_resolution_broadcast(self, approvals, hub):
        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it")
        client = hub.register()
        await approvals.approve(approval_id)
        assert client.queue.get_nowait().event == "approval_resolved"

    async def test_list_pending_oldest_first(self, approvals):
        first = await approvals.create_approval("ag1", "t1", "a", "r")
        second = await approvals.create_approval("ag1", "t1", "b", "r")
        resolved = await approvals.create_approval("ag1", "t1", "c", "r")
        await approvals.approve(resolved)

        pending = await approvals.list_pending()

        assert [a.id for a in pending] == [first, second]


class TestApprovalTimeouts:
    async def test_check_timeout_marks_overdue(self, approvals, session_factory):
        overdue = await approvals.create_approval("ag1", "t1", "a", "r")
        fresh = await approvals.create_approval("ag1", "t1", "b", "r")
        async with session_factory() as s:
            await s.execute(
                update(Approval)
                .where(Approval.id == overdue)
                .values(created_at=utc_now() - timedelta(minutes=31))
            )
            await s.commit()

        assert await approvals.check_timeout() == 1

        assert (await approvals.get(overdue)).status == "timeout"
        assert (await approvals.get(fresh)).status == "pending"

    async def test_wait_returns_resolution(self, approvals):
        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it")

        async def reviewer():
            await asyncio.sleep(0.05)
            await approvals.approve(approval_id, "ok")

        result, _ = await asyncio.gather(approvals.wait_for_resolution(approval_id, 5), reviewer())

        assert result.status == "approved"
        assert result.reviewer_comment == "ok"

    async def test_wait_times_out_and_persists(self, approvals):
        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it")

        result = await approvals.wait_for_resolution(approval_id, 0.05)

        assert result.status == "timeout"
        assert (await approvals.get(approval_id)).status == "timeout"
        assert await approvals.approve(approval_id) is False

    async def test_wait_unknown_raises(self, approvals):
        with pytest.raises(NotFoundError):
            await approvals.wait_for_resolution("missing", 0.01)

    async def test_wait_cancellation_leaves_row_pending(self, session_factory):
        approvals = ApprovalManager(session_factory, poll_interval=1.0)
        approval_id = await approvals.create_approval("ag1", "t1", "deploy", "ship it")
        waiter = asyncio.create_task(approvals.wait_for_resolution(approval_id, 10))
        await asyncio.sleep(0.03)
        waiter.cancel()

        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert (await approvals.get(approval_id)).status == "pending"
