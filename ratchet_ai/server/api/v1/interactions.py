"""
Test Interaction Endpoints.

When agents run on the interactive test provider, each model call waits here
until someone answers it. New calls are announced on the event stream as
``test_interaction_pending``.
"""

from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from ratchet_ai.agent_core.errors import NotFoundError
from ratchet_ai.agent_core.provider import ScriptedStep
from ratchet_ai.core.logging_config import get_logger
from ratchet_ai.server.deps import InteractionsDep
from ratchet_ai.server.schemas import InteractionRespond

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/",
    summary="List Pending Interactions",
    description="Model calls waiting for a response, oldest first.",
)
async def list_interactions(source: InteractionsDep) -> Dict[str, Any]:
    pending = source.list_pending()
    return {"interactions": pending, "count": len(pending)}


@router.get(
    "/{interaction_id}",
    summary="Get Interaction",
    description="The full conversation and tool definitions of a pending model call.",
    responses={404: {"description": "Interaction not pending"}},
)
async def get_interaction(interaction_id: str, source: InteractionsDep) -> Dict[str, Any]:
    try:
        return source.get_interaction(interaction_id).to_dict()
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post(
    "/{interaction_id}/respond",
    summary="Respond To Interaction",
    description="Answer a pending model call in place of the model.",
    responses={404: {"description": "Interaction not pending"}},
)
async def respond_to_interaction(
    interaction_id: str, body: InteractionRespond, source: InteractionsDep
) -> Dict[str, Any]:
    step = ScriptedStep(content=body.content, tool_calls=list(body.tool_calls), error=body.error)
    try:
        source.respond(interaction_id, step)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    logger.info(f"Interaction {interaction_id} answered over the API")
    return {"id": interaction_id, "success": True}
