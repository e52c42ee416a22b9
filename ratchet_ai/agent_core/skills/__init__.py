"""Markdown skills assignable to agents."""

from .manager import SkillManager, parse_skill_file, required_tools

__all__ = ["SkillManager", "parse_skill_file", "required_tools"]
