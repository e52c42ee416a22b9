from __future__ import annotations

"""Transcript recorder.

Each call to ``record`` redacts the content through the secret guard, stamps
the row with a strictly increasing timestamp and commits it in its own
session. Rows are never updated or deleted by this module.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database import utc_now
from ratchet_ai.core.database.entities.transcripts import TranscriptEntry

from ..schemas import Message, ToolCall
from ..security import SecretGuard

logger = logging.getLogger(__name__)


def encode_tool_calls(tool_calls: Optional[Iterable[ToolCall]]) -> str:
    if not tool_calls:
        return "[]"
    return json.dumps([tc.model_dump() for tc in tool_calls], default=str)


@dataclass
class TranscriptRecorder:
    session_factory: async_sessionmaker[AsyncSession]
    guard: Optional[SecretGuard] = None
    _clock_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _last_ts: Optional[datetime] = field(default=None, init=False, repr=False)

    def _next_timestamp(self) -> datetime:
        with self._clock_lock:
            now = utc_now()
            if self._last_ts is not None and now <= self._last_ts:
                now = self._last_ts + timedelta(microseconds=1)
            self._last_ts = now
            return now

    async def record(self, entry: TranscriptEntry) -> TranscriptEntry:
        """
        Persist one transcript entry.

        The content is redacted first; ``redacted`` is set iff that changed it.
        ``created_at`` is always assigned here.

        Args:
            entry: The unsaved entry.

        Returns:
            The persisted entry.
        """
        if self.guard is not None:
            cleaned = self.guard.redact(entry.content)
            entry.redacted = cleaned != entry.content
            entry.content = cleaned
        if not entry.tool_calls:
            entry.tool_calls = "[]"
        entry.created_at = self._next_timestamp()
        async with self.session_factory() as s:
            s.add(entry)
            await s.commit()
        return entry

    async def record_message(
        self,
        message: Message,
        *,
        agent_id: str,
        task_id: str,
        project_id: str = "",
        iteration: int = 0,
    ) -> TranscriptEntry:
        return await self.record(
            TranscriptEntry(
                agent_id=agent_id,
                task_id=task_id,
                project_id=project_id,
                iteration=iteration,
                role=message.role.value,
                content=message.content,
                tool_calls=encode_tool_calls(message.tool_calls),
                tool_call_id=message.tool_call_id or "",
            )
        )

    async def get_by_task(self, task_id: str) -> List[TranscriptEntry]:
        async with self.session_factory() as s:
            stmt = select(TranscriptEntry).where(TranscriptEntry.task_id == task_id).order_by(TranscriptEntry.created_at.asc())
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def get_by_agent(self, agent_id: str) -> List[TranscriptEntry]:
        async with self.session_factory() as s:
            stmt = (
                select(TranscriptEntry)
                .where(TranscriptEntry.agent_id == agent_id)
                .order_by(TranscriptEntry.created_at.asc())
            )
            result = await s.execute(stmt)
            return list(result.scalars().all())
