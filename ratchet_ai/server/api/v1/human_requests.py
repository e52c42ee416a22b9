"""
Human Requests API Endpoints.

Operators answer the requests agents raise for tokens, binaries, access or
information. Resolving a token request whose metadata names a
``secret_name`` stores the supplied value in the secrets backend.
"""

import json
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException

from ratchet_ai.agent_core.errors import NotFoundError
from ratchet_ai.agent_core.gates import store_token_response, token_secret_target
from ratchet_ai.agent_core.gates.human_request import request_to_dict
from ratchet_ai.core.logging_config import get_logger
from ratchet_ai.server.deps import GuardDep, HumanRequestsDep
from ratchet_ai.server.schemas import HumanRequestCancel, HumanRequestResolve

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/",
    summary="List Pending Requests",
    description="Pending human requests, most urgent first.",
)
async def list_requests(requests: HumanRequestsDep) -> List[Dict[str, Any]]:
    return [request_to_dict(r) for r in await requests.list_pending()]


@router.get("/{request_id}", summary="Get Request", responses={404: {"description": "Request not found"}})
async def get_request(request_id: str, requests: HumanRequestsDep) -> Dict[str, Any]:
    try:
        return await requests.get_request(request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post(
    "/{request_id}/resolve",
    summary="Resolve Request",
    description="Answer a pending request. Token values are stored as secrets, never echoed back.",
    responses={
        404: {"description": "Request not found"},
        409: {"description": "Request already closed"},
        502: {"description": "Secrets backend rejected the token; request left pending"},
        503: {"description": "No secrets backend to store the token in; request left pending"},
    },
)
async def resolve_request(
    request_id: str, body: HumanRequestResolve, requests: HumanRequestsDep, guard: GuardDep
) -> Dict[str, Any]:
    request = await requests.get(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Request not found")
    if request.status != "pending":
        raise HTTPException(status_code=409, detail=f"Request already {request.status}")

    response_data = body.response_data if isinstance(body.response_data, str) else json.dumps(body.response_data)
    target = token_secret_target(request, response_data)
    stored = response_data
    if target is not None:
        # Stored before resolving; a failed write leaves the request pending.
        if guard is None or guard.provider is None:
            raise HTTPException(status_code=503, detail="No secrets backend configured to store the token")
        try:
            await store_token_response(request, response_data, guard)
        except Exception as e:
            logger.error(f"Failed to store token for human request {request_id}: {e}", exc_info=True)
            raise HTTPException(status_code=502, detail=f"Failed to store token in secret {target[0]}") from e
        stored = json.dumps({"stored_in_secret": target[0]})

    if not await requests.resolve(request_id, stored, body.comment, body.resolved_by):
        raise HTTPException(status_code=409, detail="Request already closed")
    logger.info(f"Human request {request_id} resolved by {body.resolved_by}")
    return await requests.get_request(request_id)


@router.post(
    "/{request_id}/cancel",
    summary="Cancel Request",
    responses={404: {"description": "Request not found"}, 409: {"description": "Request already closed"}},
)
async def cancel_request(request_id: str, body: HumanRequestCancel, requests: HumanRequestsDep) -> Dict[str, Any]:
    if await requests.get(request_id) is None:
        raise HTTPException(status_code=404, detail="Request not found")
    if not await requests.cancel(request_id, body.comment):
        raise HTTPException(status_code=409, detail="Request already closed")
    return await requests.get_request(request_id)
