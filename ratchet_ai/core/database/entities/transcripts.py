"""
Transcript entity model.

Every message passing through an agent loop is journaled here, after secret
redaction. Rows are never updated.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import DateTime, Field, Text

from ..base import Base, new_id, utc_now


class TranscriptEntry(Base, table=True):
    """Entity for a single transcript line.

    ``tool_calls`` holds the JSON-encoded list of tool calls made by an
    assistant message (``"[]"`` for every other role).

    Table: transcripts
    """

    __tablename__ = "transcripts"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    agent_id: str = Field(default="", max_length=64, index=True)
    task_id: str = Field(default="", max_length=64, index=True)
    project_id: str = Field(default="", max_length=64)
    iteration: int = Field(default=0)
    role: str = Field(max_length=16)
    content: str = Field(default="", sa_type=Text)
    tool_calls: str = Field(default="[]", sa_type=Text)
    tool_call_id: str = Field(default="", max_length=128)
    redacted: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True), index=True)

    def __repr__(self) -> str:
        return f"TranscriptEntry(task_id={self.task_id}, iteration={self.iteration}, role={self.role})"
