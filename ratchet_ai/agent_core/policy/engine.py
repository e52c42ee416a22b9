from __future__ import annotations

"""Database-backed tool policy engine.

Rows in ``tool_policies`` allow or deny tool name patterns at global, team or
agent scope. For a given call, the applicable rows are the global ones plus
those whose ``scope_id`` matches the caller's team or agent. A matching deny
always wins; otherwise a matching ``require_approval`` or allow admits the
call; with no matching row the configured default applies (deny unless set to
allow).
"""

import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database import new_id
from ratchet_ai.core.database.entities.policies import ToolPolicy

from .models import PolicyAction, PolicyDecision, PolicyScope, ToolScope, policy_matches_tool

logger = logging.getLogger(__name__)


@dataclass
class ToolPolicyEngine:
    session_factory: async_sessionmaker[AsyncSession]
    default_policy: PolicyAction = PolicyAction.deny

    async def add_policy(self, policy: ToolPolicy) -> ToolPolicy:
        """
        Insert a policy row.

        Raises:
            ValueError: If the pattern is empty or the action/scope is unknown.
        """
        if not policy.tool_pattern:
            raise ValueError("tool_policy: tool_pattern is required")
        try:
            PolicyAction(policy.action)
        except ValueError:
            raise ValueError(f"tool_policy: invalid action {policy.action!r}") from None
        if not policy.scope:
            policy.scope = PolicyScope.global_.value
        try:
            PolicyScope(policy.scope)
        except ValueError:
            raise ValueError(f"tool_policy: invalid scope {policy.scope!r}") from None
        if not policy.id:
            policy.id = new_id()
        async with self.session_factory() as s:
            s.add(policy)
            await s.commit()
        return policy

    async def remove_policy(self, policy_id: str) -> bool:
        async with self.session_factory() as s:
            result = await s.execute(delete(ToolPolicy).where(ToolPolicy.id == policy_id))
            await s.commit()
        return (result.rowcount or 0) > 0

    async def list_policies(self) -> List[ToolPolicy]:
        async with self.session_factory() as s:
            result = await s.execute(select(ToolPolicy).order_by(ToolPolicy.created_at.asc()))
            return list(result.scalars().all())

    async def decide(self, scope: ToolScope, tool_name: str) -> PolicyDecision:
        try:
            policies = await self.list_policies()
        except Exception as e:
            logger.error("Tool policy lookup failed for %s: %s", tool_name, e)
            return PolicyDecision(PolicyAction.deny, "policy engine error; defaulting to deny")

        matching = [
            p
            for p in policies
            if policy_matches_tool(p.tool_pattern, tool_name)
            and (
                p.scope == PolicyScope.global_.value
                or (p.scope == PolicyScope.team.value and p.scope_id == scope.team_id)
                or (p.scope == PolicyScope.agent.value and p.scope_id == scope.agent_id)
            )
        ]
        if not matching:
            if self.default_policy == PolicyAction.allow:
                return PolicyDecision(PolicyAction.allow, "no policy; defaulting to allow")
            return PolicyDecision(PolicyAction.deny, "no policy; defaulting to deny")

        for p in matching:
            if p.action == PolicyAction.deny.value:
                if p.scope_id:
                    return PolicyDecision(
                        PolicyAction.deny, f'denied by {p.scope} policy "{p.id}" (scope_id={p.scope_id})'
                    )
                return PolicyDecision(PolicyAction.deny, f'denied by {p.scope} policy "{p.id}"')
        for p in matching:
            if p.action == PolicyAction.require_approval.value:
                return PolicyDecision(PolicyAction.require_approval, f'{p.scope} policy "{p.id}" requires approval')
        return PolicyDecision(PolicyAction.allow, "allowed by policy")
