"""
Approval entity model.

Approvals pause an agent loop until a reviewer approves or rejects a proposed
action, or the request times out. ``status`` moves from ``pending`` to a
terminal value exactly once.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import DateTime, Field, Text

from ..base import Base, new_id, utc_now


class Approval(Base, table=True):
    """Entity for approval requests.

    Table: approvals
    """

    __tablename__ = "approvals"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    agent_id: str = Field(default="", max_length=64, index=True)
    task_id: str = Field(default="", max_length=64, index=True)
    action: str = Field(default="", sa_type=Text)
    reason: str = Field(default="", sa_type=Text)
    details: str = Field(default="", sa_type=Text)
    status: str = Field(default="pending", max_length=16, index=True)
    reviewer_comment: str = Field(default="", sa_type=Text)
    timeout_minutes: int = Field(default=30)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True), index=True)
    resolved_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"Approval(id={self.id}, action={self.action}, status={self.status})"
