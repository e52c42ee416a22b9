"""
Unit tests for Approvals API endpoints.

Tests cover:
- Listing pending approvals
- Approving and rejecting, including the reviewer comment
- 404 for unknown approvals and 409 for approvals already resolved
"""

from httpx import AsyncClient

BASE = "http://localhost/api/v1/approvals"


async def test_list_pending(client: AsyncClient, approvals):
    first = await approvals.create_approval("ag1", "t1", "deploy", "release")
    second = await approvals.create_approval("ag1", "t1", "rollback", "bad release")
    await approvals.approve(second)

    response = await client.get(f"{BASE}/")

    assert response.status_code == 200
    body = response.json()
    assert [a["id"] for a in body] == [first]
    assert body[0]["action"] == "deploy"
    assert body[0]["status"] == "pending"


async def test_get_approval(client: AsyncClient, approvals):
    approval_id = await approvals.create_approval("ag1", "t1", "deploy", "release", "prod only")

    response = await client.get(f"{BASE}/{approval_id}")

    assert response.status_code == 200
    assert response.json()["details"] == "prod only"


async def test_get_missing_approval(client: AsyncClient):
    response = await client.get(f"{BASE}/nope")
    assert response.status_code == 404
    assert response.json()["detail"] == "Approval not found"


async def test_approve(client: AsyncClient, approvals):
    approval_id = await approvals.create_approval("ag1", "t1", "deploy", "release")

    response = await client.post(f"{BASE}/{approval_id}/approve", json={"comment": "ship it"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["reviewer_comment"] == "ship it"
    assert body["resolved_at"] is not None
    assert (await approvals.get(approval_id)).status == "approved"


async def test_reject_without_comment(client: AsyncClient, approvals):
    approval_id = await approvals.create_approval("ag1", "t1", "drop table", "cleanup")

    response = await client.post(f"{BASE}/{approval_id}/reject", json={})

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["reviewer_comment"] == ""


async def test_second_decision_conflicts(client: AsyncClient, approvals):
    approval_id = await approvals.create_approval("ag1", "t1", "deploy", "release")
    await client.post(f"{BASE}/{approval_id}/approve", json={"comment": "ok"})

    response = await client.post(f"{BASE}/{approval_id}/reject", json={"comment": "changed my mind"})

    assert response.status_code == 409
    approval = await approvals.get(approval_id)
    assert approval.status == "approved"
    assert approval.reviewer_comment == "ok"


async def test_decide_missing_approval(client: AsyncClient):
    response = await client.post(f"{BASE}/nope/approve", json={"comment": ""})
    assert response.status_code == 404


async def test_decision_is_broadcast(client: AsyncClient, approvals, hub):
    approval_id = await approvals.create_approval("ag1", "t1", "deploy", "release")
    observer = hub.register()

    await client.post(f"{BASE}/{approval_id}/approve", json={"comment": "ok"})

    event = observer.queue.get_nowait()
    assert event.event == "approval_resolved"
    assert approval_id in event.data
