"""
Agent, task and project entity models.

Agents are durable identities bound to a provider; ephemeral agents are
children created by a parent to carry out one sub-task. Tasks are units of
work assigned to exactly one agent. Projects only matter to the loop for their
workspace path.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import DateTime, Field, Text

from ..base import Base, new_id, utc_now


class Agent(Base, table=True):
    """Entity for agent identities.

    Table: agents
    """

    __tablename__ = "agents"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    name: str = Field(max_length=255)
    role: str = Field(default="", max_length=64)
    system_prompt: str = Field(default="", sa_type=Text)
    provider: str = Field(default="", max_length=128)
    model: str = Field(default="", max_length=128)
    status: str = Field(default="idle", max_length=32, index=True)
    team_id: str = Field(default="", max_length=64, index=True)
    is_lead: bool = Field(default=False)
    is_ephemeral: bool = Field(default=False, index=True)
    parent_agent_id: str = Field(default="", max_length=64, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"Agent(id={self.id}, name={self.name}, status={self.status}, ephemeral={self.is_ephemeral})"


class Task(Base, table=True):
    """Entity for tasks.

    Table: tasks
    """

    __tablename__ = "tasks"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    title: str = Field(max_length=255)
    description: str = Field(default="", sa_type=Text)
    status: str = Field(default="pending", max_length=32, index=True)
    priority: int = Field(default=1)
    assigned_to: str = Field(default="", max_length=64, index=True)
    parent_id: str = Field(default="", max_length=64, index=True)
    result: str = Field(default="", sa_type=Text)
    error: str = Field(default="", sa_type=Text)
    project_id: str = Field(default="", max_length=64, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"Task(id={self.id}, status={self.status}, assigned_to={self.assigned_to})"


class Project(Base, table=True):
    """Entity for projects.

    Table: projects
    """

    __tablename__ = "projects"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    name: str = Field(default="", max_length=255)
    description: Optional[str] = Field(default=None, sa_type=Text)
    workspace_path: str = Field(default="", sa_type=Text)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
