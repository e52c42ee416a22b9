"""
Memory entity model.

Long-term memory fragments saved per agent. The optional embedding is a packed
little-endian float32 array. Keyword search runs against the companion FTS5
table ``memory_entries_fts`` created by ``create_all``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import LargeBinary
from sqlmodel import DateTime, Field, Text

from ..base import Base, new_id, utc_now


class MemoryEntry(Base, table=True):
    """Entity for memory entries.

    Table: memory_entries
    """

    __tablename__ = "memory_entries"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    agent_id: str = Field(max_length=64, index=True)
    content: str = Field(sa_type=Text)
    category: str = Field(default="general", max_length=64)
    embedding: Optional[bytes] = Field(default=None, sa_type=LargeBinary)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True), index=True)
