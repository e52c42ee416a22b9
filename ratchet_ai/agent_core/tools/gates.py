from __future__ import annotations

"""Tools that open human gates.

``request_approval`` and ``request_human`` only create the pending record; the
agent loop recognises their results and does the blocking wait itself.
"""

import json
from typing import Any, Dict

from ..gates import ApprovalManager, HumanRequestManager
from ..schemas import HumanRequestType, Urgency
from .base import BaseTool, ToolContext, str_arg

REQUEST_APPROVAL = "request_approval"
REQUEST_HUMAN = "request_human"


class RequestApprovalTool(BaseTool):
    name = REQUEST_APPROVAL
    description = (
        "Request human approval before performing a risky or irreversible action. "
        "The agent pauses until a reviewer approves or rejects the request."
    )
    parameters = {
        "action": {"type": "string", "description": "The action you want to perform"},
        "reason": {"type": "string", "description": "Why the action is needed"},
        "details": {"type": "string", "description": "Extra details for the reviewer"},
    }
    required = ["action", "reason"]

    def __init__(self, manager: ApprovalManager) -> None:
        self.manager = manager

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        action = str_arg(args, "action", required=True)
        reason = str_arg(args, "reason", required=True)
        details = args.get("details")
        if details is not None and not isinstance(details, str):
            details = json.dumps(details, default=str)
        approval_id = await self.manager.create_approval(ctx.agent_id, ctx.task_id, action, reason, details or "")
        return {
            "approval_id": approval_id,
            "status": "pending",
            "action": action,
            "reason": reason,
            "message": "Approval request submitted. Waiting for human review.",
        }


class RequestHumanTool(BaseTool):
    name = REQUEST_HUMAN
    description = (
        "Request something from the human operator (tokens, tool installation, access, information). "
        "Creates a pending request that the human will see and respond to."
    )
    parameters = {
        "request_type": {
            "type": "string",
            "enum": [t.value for t in HumanRequestType],
            "description": "Category of request: 'token' for API keys, 'binary' for CLI tools, "
            "'access' for service access, 'info' for clarification, 'custom' for anything else",
        },
        "title": {"type": "string", "description": "Short summary of what you need"},
        "description": {"type": "string", "description": "Detailed explanation of what you need and why"},
        "urgency": {
            "type": "string",
            "enum": [u.value for u in Urgency],
            "description": "How urgently this is needed (default: normal)",
        },
        "metadata": {
            "type": "object",
            "description": 'Extra context hints, e.g. {"secret_name": "GITHUB_TOKEN"} to auto-store the provided value',
        },
        "blocking": {
            "type": "boolean",
            "description": "If true, pause until the human responds. Default false.",
        },
    }
    required = ["request_type", "title"]

    def __init__(self, manager: HumanRequestManager) -> None:
        self.manager = manager

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        request_type = str_arg(args, "request_type", required=True)
        title = str_arg(args, "title", required=True)
        metadata = args.get("metadata")
        request_id = await self.manager.create_request(
            agent_id=ctx.agent_id,
            task_id=ctx.task_id,
            project_id=ctx.project_id,
            request_type=request_type,
            title=title,
            description=str_arg(args, "description"),
            urgency=str_arg(args, "urgency", default=Urgency.normal.value),
            metadata=metadata if isinstance(metadata, dict) else None,
        )
        return {
            "request_id": request_id,
            "status": "pending",
            "request_type": request_type,
            "title": title,
            "blocking": args.get("blocking") is True,
            "message": "Request submitted. The human operator will be notified.",
        }


class CheckHumanRequestTool(BaseTool):
    name = "check_human_request"
    description = "Check the status of a previously created human request to see if the human has responded"
    parameters = {"request_id": {"type": "string", "description": "The ID of the request to check"}}
    required = ["request_id"]

    def __init__(self, manager: HumanRequestManager) -> None:
        self.manager = manager

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        return await self.manager.get_request(str_arg(args, "request_id", required=True))
