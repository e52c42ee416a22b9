from __future__ import annotations

"""Skill manager.

A skill is a Markdown file, optionally opened by a YAML frontmatter block::

    ---
    name: Code Review
    description: Reviewing pull requests
    category: development
    required_tools: [file_read]
    ---
    Body injected into the system prompt.

The file stem is the skill id. Skills assigned to an agent are rendered into a
``## Skills`` section of its system prompt.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database import utc_now
from ratchet_ai.core.database.entities.skills import AgentSkill, Skill

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

SKILL_PROMPT_HEADER = "## Skills\n\nYou have the following skills available:\n\n"


def parse_skill_file(filename: str, data: str) -> Skill:
    """
    Build a ``Skill`` from a Markdown file name and its contents.

    Raises:
        ConfigurationError: If the frontmatter is not valid YAML.
    """
    skill_id = filename[:-3] if filename.endswith(".md") else filename
    body = data
    front: Dict[str, Any] = {}

    stripped = data.strip()
    if stripped.startswith("---"):
        parts = stripped.split("---", 2)
        if len(parts) == 3:
            try:
                loaded = yaml.safe_load(parts[1])
            except yaml.YAMLError as e:
                raise ConfigurationError(f"parse frontmatter of {filename}: {e}") from e
            if isinstance(loaded, dict):
                front = loaded
            body = parts[2].strip()

    name = front.get("name") or skill_id.replace("-", " ").title()
    tools = front.get("required_tools") or []
    return Skill(
        id=skill_id,
        name=str(name),
        description=str(front.get("description") or ""),
        content=body,
        category=str(front.get("category") or ""),
        required_tools=json.dumps([str(t) for t in tools]),
    )


def required_tools(skill: Skill) -> List[str]:
    try:
        tools = json.loads(skill.required_tools or "[]")
    except ValueError:
        return []
    return tools if isinstance(tools, list) else []


@dataclass
class SkillManager:
    session_factory: async_sessionmaker[AsyncSession]

    async def upsert(self, skill: Skill) -> None:
        async with self.session_factory() as s:
            existing = await s.get(Skill, skill.id)
            if existing is None:
                s.add(skill)
            else:
                existing.name = skill.name
                existing.description = skill.description
                existing.content = skill.content
                existing.category = skill.category
                existing.required_tools = skill.required_tools
            await s.commit()

    async def load_directory(self, path: Union[str, Path]) -> int:
        """
        Upsert every ``*.md`` file of ``path``. A missing directory loads nothing.

        Returns:
            Number of skills loaded.
        """
        directory = Path(path)
        if not directory.is_dir():
            logger.debug("Skill directory %s not found; no skills loaded", directory)
            return 0
        count = 0
        for file in sorted(directory.glob("*.md")):
            if not file.is_file():
                continue
            await self.upsert(parse_skill_file(file.name, file.read_text(encoding="utf-8")))
            count += 1
        logger.info("Loaded %d skills from %s", count, directory)
        return count

    async def get(self, skill_id: str) -> Optional[Skill]:
        async with self.session_factory() as s:
            return await s.get(Skill, skill_id)

    async def list_skills(self) -> List[Skill]:
        async with self.session_factory() as s:
            result = await s.execute(select(Skill).order_by(Skill.name.asc()))
            return list(result.scalars().all())

    async def assign(self, agent_id: str, skill_id: str) -> None:
        """Assign a skill to an agent; assigning twice is a no-op."""
        async with self.session_factory() as s:
            if await s.get(AgentSkill, (agent_id, skill_id)) is None:
                s.add(AgentSkill(agent_id=agent_id, skill_id=skill_id, created_at=utc_now()))
                await s.commit()

    async def unassign(self, agent_id: str, skill_id: str) -> None:
        async with self.session_factory() as s:
            await s.execute(
                delete(AgentSkill).where(AgentSkill.agent_id == agent_id, AgentSkill.skill_id == skill_id)
            )
            await s.commit()

    async def get_agent_skills(self, agent_id: str) -> List[Skill]:
        async with self.session_factory() as s:
            stmt = (
                select(Skill)
                .join(AgentSkill, AgentSkill.skill_id == Skill.id)
                .where(AgentSkill.agent_id == agent_id)
                .order_by(Skill.name.asc())
            )
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def build_skill_prompt(self, agent_id: str) -> str:
        skills = await self.get_agent_skills(agent_id)
        if not skills:
            return ""
        parts = [SKILL_PROMPT_HEADER]
        for skill in skills:
            parts.append(f"### {skill.name}\n\n{skill.content}\n\n")
        return "".join(parts)
