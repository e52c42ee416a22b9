from __future__ import annotations

"""Persistent agent memory.

Entries live in ``memory_entries``; every save also writes the companion FTS5
table ``memory_entries_fts`` so keyword search can rank with BM25. When the
caller supplies a query embedding, ranking switches to a hybrid score of 70%
cosine similarity and 30% normalised BM25 over the agent's embedded entries.
"""

import logging
import math
import re
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database import new_id, utc_now
from ratchet_ai.core.database.entities.memory import MemoryEntry

from ..provider import Embedder

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 5
MIN_CHUNK_LENGTH = 20
TRANSCRIPT_CATEGORY = "transcript"
COSINE_WEIGHT = 0.7
BM25_WEIGHT = 0.3

_TOKEN_STRIP = re.compile(r"[^A-Za-z0-9_-]")

_FTS_INSERT = text(
    "INSERT INTO memory_entries_fts (id, agent_id, content, category) VALUES (:id, :agent_id, :content, :category)"
)
_FTS_SEARCH = text(
    "SELECT id, bm25(memory_entries_fts) AS score FROM memory_entries_fts "
    "WHERE memory_entries_fts MATCH :query AND agent_id = :agent_id "
    "ORDER BY score ASC LIMIT :limit"
)


def float32_to_bytes(values: Sequence[float]) -> bytes:
    return struct.pack(f"<{len(values)}f", *values)


def bytes_to_float32(blob: Optional[bytes]) -> List[float]:
    if not blob or len(blob) % 4:
        return []
    return list(struct.unpack(f"<{len(blob) // 4}f", blob))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity over the common prefix of ``a`` and ``b``; 0 for a zero vector."""
    n = min(len(a), len(b))
    if n == 0:
        return 0.0
    dot = norm_a = norm_b = 0.0
    for x, y in zip(a[:n], b[:n]):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def sanitize_fts_query(query: str) -> str:
    """
    Turn free text into a safe FTS5 query.

    Each whitespace-separated word keeps only ASCII letters, digits, ``-`` and
    ``_`` and becomes a quoted term; terms are ANDed implicitly. Returns an
    empty string when nothing survives.
    """
    tokens = [_TOKEN_STRIP.sub("", word) for word in query.split()]
    return " ".join(f'"{t}"' for t in tokens if t)


def split_transcript(transcript: str) -> List[str]:
    """Split on blank lines, joining the stripped lines of each paragraph with spaces."""
    chunks: List[str] = []
    current: List[str] = []
    for line in transcript.split("\n"):
        line = line.strip()
        if not line:
            if current:
                chunks.append(" ".join(current))
                current = []
            continue
        current.append(line)
    if current:
        chunks.append(" ".join(current))
    return chunks


@dataclass
class MemoryStore:
    session_factory: async_sessionmaker[AsyncSession]

    async def save(self, entry: MemoryEntry, embedding: Optional[Sequence[float]] = None) -> MemoryEntry:
        if not entry.id:
            entry.id = new_id()
        if not entry.category:
            entry.category = "general"
        if embedding:
            entry.embedding = float32_to_bytes(embedding)
        entry.created_at = utc_now()
        async with self.session_factory() as s:
            s.add(entry)
            await s.flush()
            await s.execute(
                _FTS_INSERT,
                {"id": entry.id, "agent_id": entry.agent_id, "content": entry.content, "category": entry.category},
            )
            await s.commit()
        logger.debug("Saved memory %s (%s) for agent %s", entry.id, entry.category, entry.agent_id)
        return entry

    async def save_text(self, agent_id: str, content: str, category: str = "general") -> MemoryEntry:
        return await self.save(MemoryEntry(agent_id=agent_id, content=content, category=category))

    async def _bm25(self, s: AsyncSession, agent_id: str, query: str, limit: int) -> List[tuple]:
        fts_query = sanitize_fts_query(query)
        if not fts_query:
            return []
        result = await s.execute(_FTS_SEARCH, {"query": fts_query, "agent_id": agent_id, "limit": limit})
        return [(row.id, float(row.score)) for row in result]

    async def search(
        self,
        agent_id: str,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[MemoryEntry]:
        """
        Find the agent's memories most relevant to ``query``.

        Without ``query_embedding`` results are ordered by BM25 rank. With one,
        every embedded entry of the agent is scored
        ``0.7 * cosine + 0.3 * bm25_norm`` where ``bm25_norm`` is the inverted
        min-max normalised BM25 score among the top ``3 * limit`` keyword hits
        (0.5 when they are all equal, 0 for entries that are not hits).
        """
        if limit <= 0:
            limit = DEFAULT_SEARCH_LIMIT
        if query_embedding:
            return await self._search_hybrid(agent_id, query, list(query_embedding), limit)

        async with self.session_factory() as s:
            ranked = await self._bm25(s, agent_id, query, limit)
            if not ranked:
                return []
            ids = [entry_id for entry_id, _ in ranked]
            rows = await s.execute(select(MemoryEntry).where(MemoryEntry.id.in_(ids)))
            by_id = {e.id: e for e in rows.scalars().all()}
        return [by_id[i] for i in ids if i in by_id]

    async def _search_hybrid(
        self, agent_id: str, query: str, query_embedding: List[float], limit: int
    ) -> List[MemoryEntry]:
        async with self.session_factory() as s:
            rows = await s.execute(
                select(MemoryEntry).where(MemoryEntry.agent_id == agent_id, MemoryEntry.embedding.is_not(None))
            )
            candidates = list(rows.scalars().all())
            ranked = await self._bm25(s, agent_id, query, limit * 3)

        bm25_norm: Dict[str, float] = {}
        if ranked:
            scores = [score for _, score in ranked]
            low, high = min(scores), max(scores)
            spread = high - low
            for entry_id, score in ranked:
                bm25_norm[entry_id] = 0.5 if spread == 0 else 1.0 - (score - low) / spread

        scored = []
        for entry in candidates:
            vector = bytes_to_float32(entry.embedding)
            if not vector:
                continue
            score = COSINE_WEIGHT * cosine_similarity(query_embedding, vector) + BM25_WEIGHT * bm25_norm.get(
                entry.id, 0.0
            )
            scored.append((score, entry))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in scored[:limit]]

    async def extract_and_save(
        self, agent_id: str, transcript: str, embedder: Optional[Embedder] = None
    ) -> int:
        """
        Save each paragraph of ``transcript`` of at least 20 characters as a
        ``transcript`` memory. Embedding failures store the entry without one.

        Returns:
            Number of entries saved.
        """
        saved = 0
        for chunk in split_transcript(transcript):
            if len(chunk) < MIN_CHUNK_LENGTH:
                continue
            embedding: Optional[List[float]] = None
            if embedder is not None:
                try:
                    embedding = list(await embedder.embed(chunk))
                except Exception as e:
                    logger.debug("Embedding failed for memory chunk of agent %s: %s", agent_id, e)
            await self.save(MemoryEntry(agent_id=agent_id, content=chunk, category=TRANSCRIPT_CATEGORY), embedding)
            saved += 1
        return saved

    async def list_by_agent(self, agent_id: str, limit: int = 100) -> List[MemoryEntry]:
        async with self.session_factory() as s:
            stmt = (
                select(MemoryEntry)
                .where(MemoryEntry.agent_id == agent_id)
                .order_by(MemoryEntry.created_at.desc())
                .limit(limit)
            )
            result = await s.execute(stmt)
            return list(result.scalars().all())
