"""
Tool policy entity model.

Each row allows or denies a tool name pattern at global, team or agent scope.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import DateTime, Field

from ..base import Base, new_id, utc_now


class ToolPolicy(Base, table=True):
    """Entity for tool policy rules.

    Table: tool_policies
    """

    __tablename__ = "tool_policies"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    scope: str = Field(default="global", max_length=16, index=True)
    scope_id: str = Field(default="", max_length=64)
    tool_pattern: str = Field(max_length=255)
    action: str = Field(default="allow", max_length=32)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"ToolPolicy(scope={self.scope}:{self.scope_id}, pattern={self.tool_pattern}, action={self.action})"
