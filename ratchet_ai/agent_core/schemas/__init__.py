"""Domain schemas shared by the loop, the provider boundary and the tools."""

from .base import BaseSchema
from .domain import (
    ApprovalStatus,
    ChatResponse,
    HumanRequestStatus,
    HumanRequestType,
    Message,
    Role,
    StepResult,
    StepStatus,
    StreamEvent,
    StreamEventType,
    TaskStatus,
    ToolCall,
    ToolDefinition,
    ToolResult,
    Urgency,
    Usage,
)

__all__ = [
    "ApprovalStatus",
    "BaseSchema",
    "ChatResponse",
    "HumanRequestStatus",
    "HumanRequestType",
    "Message",
    "Role",
    "StepResult",
    "StepStatus",
    "StreamEvent",
    "StreamEventType",
    "TaskStatus",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "Urgency",
    "Usage",
]
