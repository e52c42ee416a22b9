from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import BaseSchema


class Role(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    timeout = "timeout"


class HumanRequestStatus(str, Enum):
    pending = "pending"
    resolved = "resolved"
    cancelled = "cancelled"
    expired = "expired"


class HumanRequestType(str, Enum):
    token = "token"
    binary = "binary"
    access = "access"
    info = "info"
    custom = "custom"


class Urgency(str, Enum):
    low = "low"
    normal = "normal"
    high = "high"
    critical = "critical"


class StepStatus(str, Enum):
    """Terminal status of one agent loop run; mirrored onto the task row."""

    completed = "completed"
    failed = "failed"
    loop_detected = "loop_detected"
    approval_timeout = "approval_timeout"
    request_expired = "request_expired"


class ToolCall(BaseSchema):
    id: str = ""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class Message(BaseSchema):
    """One conversation message.

    ``content`` may be rewritten in place by secret redaction; nothing else
    changes after the message is appended to a conversation.
    """

    role: Role
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None


class ToolResult(BaseSchema):
    content: str
    is_error: bool = False


class ToolDefinition(BaseSchema):
    """What the model sees for a tool: name, description and a JSON schema."""

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class Usage(BaseSchema):
    input_tokens: int = 0
    output_tokens: int = 0


class ChatResponse(BaseSchema):
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


class StreamEventType(str, Enum):
    text = "text"
    tool_call = "tool_call"
    done = "done"


class StreamEvent(BaseSchema):
    type: StreamEventType
    text: str = ""
    tool_call: Optional[ToolCall] = None
    usage: Optional[Usage] = None


class StepResult(BaseSchema):
    """Structured outcome of one agent loop run."""

    result: str = ""
    status: StepStatus
    iterations: int = 0
    error: Optional[str] = None

    @property
    def is_terminal_failure(self) -> bool:
        return self.status != StepStatus.completed

    def to_output(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"result": self.result, "status": self.status.value, "iterations": self.iterations}
        if self.error is not None:
            out["error"] = self.error
        return out
