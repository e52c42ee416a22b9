"""
Approvals API Endpoints.

Human-in-the-loop review of actions agents asked permission for. Resolving an
approval releases the agent loop waiting on it.
"""

from typing import List

from fastapi import APIRouter, HTTPException

from ratchet_ai.core.database.entities.approvals import Approval
from ratchet_ai.core.logging_config import get_logger
from ratchet_ai.server.deps import ApprovalsDep
from ratchet_ai.server.schemas import ApprovalDecision

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/",
    response_model=List[Approval],
    summary="List Pending Approvals",
    description="Retrieve pending approval requests, oldest first.",
    response_description="A list of pending approvals.",
)
async def list_approvals(approvals: ApprovalsDep):
    return await approvals.list_pending()


@router.get(
    "/{approval_id}",
    response_model=Approval,
    summary="Get Approval",
    responses={404: {"description": "Approval not found"}},
)
async def get_approval(approval_id: str, approvals: ApprovalsDep):
    approval = await approvals.get(approval_id)
    if approval is None:
        raise HTTPException(status_code=404, detail="Approval not found")
    return approval


async def _decide(approvals: ApprovalsDep, approval_id: str, approve: bool, comment: str) -> Approval:
    approval = await approvals.get(approval_id)
    if approval is None:
        raise HTTPException(status_code=404, detail="Approval not found")
    changed = await (approvals.approve if approve else approvals.reject)(approval_id, comment)
    if not changed:
        raise HTTPException(status_code=409, detail="Approval already resolved")
    logger.info(f"Approval {approval_id} {'approved' if approve else 'rejected'}")
    return await approvals.get(approval_id)


@router.post(
    "/{approval_id}/approve",
    response_model=Approval,
    summary="Approve",
    description="Approve a pending request; the waiting agent continues with the reviewer comment.",
    responses={404: {"description": "Approval not found"}, 409: {"description": "Approval already resolved"}},
)
async def approve(approval_id: str, decision: ApprovalDecision, approvals: ApprovalsDep):
    return await _decide(approvals, approval_id, True, decision.comment)


@router.post(
    "/{approval_id}/reject",
    response_model=Approval,
    summary="Reject",
    description="Reject a pending request; the waiting agent is told to reconsider.",
    responses={404: {"description": "Approval not found"}, 409: {"description": "Approval already resolved"}},
)
async def reject(approval_id: str, decision: ApprovalDecision, approvals: ApprovalsDep):
    return await _decide(approvals, approval_id, False, decision.comment)
