"""
Human request entity model.

A generic out-of-band request from an agent to a human (a token, a file, an
access grant, a piece of information). Same lifecycle shape as approvals.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column
from sqlmodel import DateTime, Field, Text

from ..base import Base, new_id, utc_now


class HumanRequest(Base, table=True):
    """Entity for human requests.

    ``request_metadata`` is stored in the ``metadata`` column as a JSON object;
    ``response_data`` is the raw JSON string supplied by the resolver.

    Table: human_requests
    """

    __tablename__ = "human_requests"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    agent_id: str = Field(default="", max_length=64, index=True)
    task_id: str = Field(default="", max_length=64, index=True)
    project_id: str = Field(default="", max_length=64)
    request_type: str = Field(default="info", max_length=32)
    title: str = Field(default="", sa_type=Text)
    description: str = Field(default="", sa_type=Text)
    urgency: str = Field(default="normal", max_length=16)
    status: str = Field(default="pending", max_length=16, index=True)
    response_data: str = Field(default="", sa_type=Text)
    response_comment: str = Field(default="", sa_type=Text)
    resolved_by: str = Field(default="", max_length=128)
    request_metadata: str = Field(default="{}", sa_column=Column("metadata", Text, nullable=False, default="{}"))
    timeout_minutes: int = Field(default=60)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True), index=True)
    resolved_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"HumanRequest(id={self.id}, type={self.request_type}, status={self.status})"
