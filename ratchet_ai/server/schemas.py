"""
API request schemas.

Bodies accepted by the approval, human-request and test-interaction endpoints.
"""

from typing import Any, List

from pydantic import BaseModel, Field

from ratchet_ai.agent_core.schemas import ToolCall


class ApprovalDecision(BaseModel):
    """Reviewer decision payload for approve/reject."""

    comment: str = Field(default="", description="Reviewer comment passed back to the agent")


class HumanRequestResolve(BaseModel):
    """Payload resolving a human request.

    For token requests ``response_data`` is a JSON object whose ``value`` is
    stored in the secrets backend instead of being shown to the agent.
    """

    response_data: Any = Field(default="", description="Response for the agent; a JSON object with ``value`` for token requests")
    comment: str = Field(default="", description="Optional comment for the agent")
    resolved_by: str = Field(default="human", description="Who resolved the request")


class HumanRequestCancel(BaseModel):
    comment: str = Field(default="", description="Why the request was cancelled")


class InteractionRespond(BaseModel):
    """The reply a person or QA script gives in place of the model."""

    content: str = Field(default="", description="Assistant text")
    tool_calls: List[ToolCall] = Field(default_factory=list, description="Tool calls to request; ids are generated when empty")
    error: str = Field(default="", description="When set, the chat call fails with this provider error")
