"""
Skill entity models.

Skills are Markdown documents injected into an agent's system prompt;
``AgentSkill`` links them to agents.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import DateTime, Field, Text

from ..base import Base, utc_now


class Skill(Base, table=True):
    """Entity for skills. ``required_tools`` is a JSON array of tool names.

    Table: skills
    """

    __tablename__ = "skills"

    id: str = Field(primary_key=True, max_length=128)
    name: str = Field(max_length=255)
    description: str = Field(default="", sa_type=Text)
    content: str = Field(default="", sa_type=Text)
    category: str = Field(default="", max_length=64)
    required_tools: str = Field(default="[]", sa_type=Text)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class AgentSkill(Base, table=True):
    """Assignment of a skill to an agent.

    Table: agent_skills
    """

    __tablename__ = "agent_skills"

    agent_id: str = Field(primary_key=True, max_length=64)
    skill_id: str = Field(primary_key=True, max_length=128)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
