from __future__ import annotations

"""Human request manager.

A human request is the general form of an approval: an agent asks a person for
a token, a binary, an access grant or a piece of information, optionally
blocking until it is answered. Resolution follows the same single-writer
conditional update as approvals.

Token requests whose metadata names a ``secret_name`` are special: the value
supplied by the resolver is written into the secrets backend and registered
with the secret guard (``store_token_response``), and the agent is only told
where the value lives.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database import as_utc, new_id, utc_now
from ratchet_ai.core.database.entities.human_requests import HumanRequest

from ..errors import NotFoundError
from ..events import SSEHub
from ..schemas import HumanRequestStatus, HumanRequestType, Urgency
from ..security import SecretGuard

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MINUTES = 60
DEFAULT_POLL_INTERVAL = 2.0

_URGENCY_ORDER = case(
    (HumanRequest.urgency == Urgency.critical.value, 0),
    (HumanRequest.urgency == Urgency.high.value, 1),
    (HumanRequest.urgency == Urgency.normal.value, 2),
    (HumanRequest.urgency == Urgency.low.value, 3),
    else_=4,
)


def parse_metadata(request: HumanRequest) -> Dict[str, Any]:
    try:
        meta = json.loads(request.request_metadata or "{}")
    except ValueError:
        return {}
    return meta if isinstance(meta, dict) else {}


def request_to_dict(request: HumanRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "agent_id": request.agent_id,
        "task_id": request.task_id,
        "project_id": request.project_id,
        "request_type": request.request_type,
        "title": request.title,
        "description": request.description,
        "urgency": request.urgency,
        "status": request.status,
        "response_data": request.response_data,
        "response_comment": request.response_comment,
        "resolved_by": request.resolved_by,
        "timeout_minutes": request.timeout_minutes,
        "metadata": request.request_metadata,
        "created_at": request.created_at.isoformat() if request.created_at else None,
        "resolved_at": request.resolved_at.isoformat() if request.resolved_at else None,
    }


@dataclass
class HumanRequestManager:
    session_factory: async_sessionmaker[AsyncSession]
    hub: Optional[SSEHub] = None
    default_timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def _push(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.hub is None:
            return
        try:
            self.hub.broadcast_event(event_type, payload)
        except Exception as e:
            logger.debug("Dropping %s event: %s", event_type, e)

    async def create(self, request: HumanRequest) -> HumanRequest:
        """
        Persist a new pending request and announce it.

        Missing urgency, type, metadata and timeout fall back to ``normal``,
        ``info``, ``{}`` and the manager default.
        """
        if not request.id:
            request.id = new_id()
        if not request.urgency:
            request.urgency = Urgency.normal.value
        if not request.request_type:
            request.request_type = HumanRequestType.info.value
        if not request.request_metadata:
            request.request_metadata = "{}"
        if not request.timeout_minutes or request.timeout_minutes <= 0:
            request.timeout_minutes = self.default_timeout_minutes
        request.status = HumanRequestStatus.pending.value
        request.created_at = utc_now()
        request.resolved_at = None
        async with self.session_factory() as s:
            s.add(request)
            await s.commit()
        logger.info(
            "Human request %s (%s) created by agent %s: %s",
            request.id,
            request.request_type,
            request.agent_id,
            request.title,
        )
        self._push(
            "human_request_created",
            {
                "id": request.id,
                "agent_id": request.agent_id,
                "task_id": request.task_id,
                "request_type": request.request_type,
                "title": request.title,
                "urgency": request.urgency,
                "status": HumanRequestStatus.pending.value,
            },
        )
        return request

    async def create_request(
        self,
        *,
        agent_id: str,
        task_id: str,
        project_id: str = "",
        request_type: str = HumanRequestType.info.value,
        title: str,
        description: str = "",
        urgency: str = Urgency.normal.value,
        metadata: Optional[Dict[str, Any]] = None,
        timeout_minutes: int = 0,
    ) -> str:
        request = await self.create(
            HumanRequest(
                agent_id=agent_id,
                task_id=task_id,
                project_id=project_id,
                request_type=request_type,
                title=title,
                description=description,
                urgency=urgency,
                request_metadata=json.dumps(metadata or {}),
                timeout_minutes=timeout_minutes,
            )
        )
        return request.id

    async def _transition(self, request_id: str, **values: Any) -> bool:
        async with self.session_factory() as s:
            result = await s.execute(
                update(HumanRequest)
                .where(HumanRequest.id == request_id, HumanRequest.status == HumanRequestStatus.pending.value)
                .values(resolved_at=utc_now(), **values)
            )
            await s.commit()
        return (result.rowcount or 0) > 0

    async def resolve(
        self,
        request_id: str,
        response_data: str,
        comment: str = "",
        resolved_by: str = "human",
    ) -> bool:
        """Resolve a pending request. Returns False if it was not pending."""
        changed = await self._transition(
            request_id,
            status=HumanRequestStatus.resolved.value,
            response_data=response_data,
            response_comment=comment,
            resolved_by=resolved_by,
        )
        if changed:
            logger.info("Human request %s resolved by %s", request_id, resolved_by)
            self._push(
                "human_request_resolved",
                {"id": request_id, "status": HumanRequestStatus.resolved.value, "resolved_by": resolved_by},
            )
        return changed

    async def cancel(self, request_id: str, comment: str = "") -> bool:
        """Cancel a pending request. Returns False if it was not pending."""
        changed = await self._transition(
            request_id, status=HumanRequestStatus.cancelled.value, response_comment=comment
        )
        if changed:
            logger.info("Human request %s cancelled", request_id)
            self._push("human_request_cancelled", {"id": request_id, "status": HumanRequestStatus.cancelled.value})
        return changed

    async def get(self, request_id: str) -> Optional[HumanRequest]:
        async with self.session_factory() as s:
            return await s.get(HumanRequest, request_id)

    async def get_request(self, request_id: str) -> Dict[str, Any]:
        """
        Return the request as a plain dict (the shape exposed to tools).

        Raises:
            NotFoundError: If the request does not exist.
        """
        request = await self.get(request_id)
        if request is None:
            raise NotFoundError(f"human request {request_id} not found")
        return request_to_dict(request)

    async def list_pending(self) -> List[HumanRequest]:
        """Pending requests, most urgent first, then oldest first."""
        async with self.session_factory() as s:
            stmt = (
                select(HumanRequest)
                .where(HumanRequest.status == HumanRequestStatus.pending.value)
                .order_by(_URGENCY_ORDER, HumanRequest.created_at.asc())
            )
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def list_by_agent(self, agent_id: str) -> List[HumanRequest]:
        async with self.session_factory() as s:
            stmt = (
                select(HumanRequest)
                .where(HumanRequest.agent_id == agent_id)
                .order_by(HumanRequest.created_at.desc())
            )
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def check_expired(self) -> int:
        """Expire every pending request past its deadline; returns how many changed."""
        now = utc_now()
        async with self.session_factory() as s:
            result = await s.execute(
                select(HumanRequest).where(HumanRequest.status == HumanRequestStatus.pending.value)
            )
            expired = [
                r.id
                for r in result.scalars().all()
                if r.timeout_minutes > 0 and as_utc(r.created_at) + timedelta(minutes=r.timeout_minutes) < now
            ]
            if not expired:
                return 0
            upd = await s.execute(
                update(HumanRequest)
                .where(HumanRequest.id.in_(expired), HumanRequest.status == HumanRequestStatus.pending.value)
                .values(status=HumanRequestStatus.expired.value, resolved_at=now)
            )
            await s.commit()
        return upd.rowcount or 0

    async def wait_for_resolution(self, request_id: str, timeout: float) -> HumanRequest:
        """
        Poll until the request leaves ``pending`` or ``timeout`` seconds pass.

        On timeout the row is marked ``expired`` and returned with that status.

        Raises:
            NotFoundError: If the request does not exist.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(timeout, 0.0)
        while True:
            request = await self.get(request_id)
            if request is None:
                raise NotFoundError(f"human request {request_id} not found")
            if request.status != HumanRequestStatus.pending.value:
                return request

            remaining = deadline - loop.time()
            if remaining <= 0:
                if not await self._transition(request_id, status=HumanRequestStatus.expired.value):
                    latest = await self.get(request_id)
                    if latest is not None and latest.status != HumanRequestStatus.pending.value:
                        return latest
                logger.info("Human request %s expired after %.1fs", request_id, timeout)
                request.status = HumanRequestStatus.expired.value
                return request

            await asyncio.sleep(min(self.poll_interval, remaining))


def token_secret_target(request: HumanRequest, response_data: str) -> Optional[Tuple[str, str]]:
    """
    Return ``(secret_name, value)`` when a response to ``request`` should be
    stored as a secret, else None.

    Applies only to ``token`` requests whose metadata carries ``secret_name``
    and whose response is a JSON object with a non-empty string ``value``.
    """
    if request.request_type != HumanRequestType.token.value:
        return None
    secret_name = parse_metadata(request).get("secret_name")
    if not isinstance(secret_name, str) or not secret_name:
        return None
    try:
        data = json.loads(response_data or "{}")
    except ValueError:
        return None
    value = data.get("value") if isinstance(data, dict) else None
    if not isinstance(value, str) or not value:
        return None
    return secret_name, value


async def store_token_response(request: HumanRequest, response_data: str, guard: Optional[SecretGuard]) -> Optional[str]:
    """
    Write the value of a resolved token request into the guard's secrets backend
    and register it for redaction.

    Returns:
        The secret name the value was stored under, or None if nothing was stored
        (not a storable token response, or no guard/provider configured).
    """
    target = token_secret_target(request, response_data)
    if target is None or guard is None or guard.provider is None:
        return None
    secret_name, value = target
    await guard.provider.set(secret_name, value)
    guard.add_known_secret(secret_name, value)
    logger.info("Stored token for human request %s in secret %s", request.id, secret_name)
    return secret_name
