from typing import List

import pytest

from ratchet_ai.agent_core.memory import (
    MemoryStore,
    bytes_to_float32,
    cosine_similarity,
    float32_to_bytes,
    sanitize_fts_query,
    split_transcript,
)
from ratchet_ai.core.database.entities.memory import MemoryEntry


class _KeywordEmbedder:
    """Two-dimensional embedding: (mentions deploy, mentions database)."""

    def __init__(self, fail_on: str = "") -> None:
        self.fail_on = fail_on

    async def embed(self, text: str) -> List[float]:
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("embedding backend down")
        lower = text.lower()
        return [1.0 if "deploy" in lower else 0.0, 1.0 if "database" in lower else 0.0]


class TestVectorHelpers:
    def test_float32_round_trip_is_little_endian(self):
        blob = float32_to_bytes([1.0, -2.5])
        assert blob == b"\x00\x00\x80\x3f\x00\x00\x20\xc0"
        assert bytes_to_float32(blob) == [1.0, -2.5]

    @pytest.mark.parametrize("blob", [None, b"", b"\x00\x01\x02"])
    def test_invalid_blob_decodes_empty(self, blob):
        assert bytes_to_float32(blob) == []

    def test_cosine(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 1], [-1, -1]) == pytest.approx(-1.0)
        assert cosine_similarity([0, 0], [1, 1]) == 0.0
        assert cosine_similarity([], [1]) == 0.0

    def test_cosine_uses_common_prefix(self):
        assert cosine_similarity([1, 0, 5], [1, 0]) == pytest.approx(1.0)


class TestTextHelpers:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("deploy pipeline", '"deploy" "pipeline"'),
            ('drop "table"; --', '"drop" "table" "--"'),
            ("OR AND NOT", '"OR" "AND" "NOT"'),
            ("***", ""),
            ("", ""),
        ],
    )
    def test_sanitize_fts_query(self, query, expected):
        assert sanitize_fts_query(query) == expected

    def test_split_transcript_joins_paragraph_lines(self):
        text = "  first line\nsecond line  \n\n\nnext paragraph\n\n"
        assert split_transcript(text) == ["first line second line", "next paragraph"]


class TestMemoryStore:
    async def test_save_and_keyword_search(self, session_factory):
        store = MemoryStore(session_factory)
        await store.save_text("ag1", "The deploy uses blue green switching", "fact")
        await store.save_text("ag1", "Database migrations run nightly", "fact")
        await store.save_text("ag2", "deploy notes for someone else", "fact")

        results = await store.search("ag1", "deploy")

        assert [r.content for r in results] == ["The deploy uses blue green switching"]

    async def test_search_orders_by_bm25(self, session_factory):
        store = MemoryStore(session_factory)
        await store.save_text("ag1", "deploy once in a long sentence about many other unrelated topics entirely")
        await store.save_text("ag1", "deploy deploy deploy")

        results = await store.search("ag1", "deploy")

        assert [r.content for r in results] == [
            "deploy deploy deploy",
            "deploy once in a long sentence about many other unrelated topics entirely",
        ]

    async def test_search_limit_and_empty_query(self, session_factory):
        store = MemoryStore(session_factory)
        for i in range(4):
            await store.save_text("ag1", f"note {i} about deploy")

        assert len(await store.search("ag1", "deploy", limit=2)) == 2
        assert await store.search("ag1", "!!!") == []
        assert await store.search("ag1", "missingword") == []

    async def test_fts_operators_are_literal(self, session_factory):
        store = MemoryStore(session_factory)
        await store.save_text("ag1", "use OR not")

        assert [r.content for r in await store.search("ag1", "OR")] == ["use OR not"]

    async def test_save_defaults_category(self, session_factory):
        store = MemoryStore(session_factory)
        entry = await store.save(MemoryEntry(agent_id="ag1", content="x", category=""))
        assert entry.category == "general"

    async def test_hybrid_search_prefers_similar_vectors(self, session_factory):
        store = MemoryStore(session_factory)
        await store.save(MemoryEntry(agent_id="ag1", content="deploy checklist"), [1.0, 0.0])
        await store.save(MemoryEntry(agent_id="ag1", content="database deploy runbook"), [0.0, 1.0])
        await store.save(MemoryEntry(agent_id="ag1", content="no vector deploy note"))

        results = await store.search("ag1", "deploy", limit=5, query_embedding=[0.0, 1.0])

        assert [r.content for r in results] == ["database deploy runbook", "deploy checklist"]

    async def test_hybrid_bm25_breaks_vector_ties(self, session_factory):
        store = MemoryStore(session_factory)
        await store.save(MemoryEntry(agent_id="ag1", content="unrelated words here"), [1.0, 0.0])
        await store.save(MemoryEntry(agent_id="ag1", content="the kubernetes cluster"), [1.0, 0.0])

        results = await store.search("ag1", "kubernetes", limit=2, query_embedding=[1.0, 0.0])

        assert results[0].content == "the kubernetes cluster"

    async def test_extract_and_save(self, session_factory):
        store = MemoryStore(session_factory)
        transcript = "short\n\nThe deploy pipeline now runs on merge.\n\nThe database is backed up every night.\n\n"

        saved = await store.extract_and_save("ag1", transcript, _KeywordEmbedder(fail_on="database"))

        entries = await store.list_by_agent("ag1")
        assert saved == 2
        assert {e.category for e in entries} == {"transcript"}
        by_content = {e.content: e for e in entries}
        assert bytes_to_float32(by_content["The deploy pipeline now runs on merge."].embedding) == [1.0, 0.0]
        assert by_content["The database is backed up every night."].embedding is None

    async def test_list_by_agent_newest_first(self, session_factory):
        store = MemoryStore(session_factory)
        await store.save_text("ag1", "first")
        await store.save_text("ag1", "second")
        assert [e.content for e in await store.list_by_agent("ag1")] == ["second", "first"]
        assert [e.content for e in await store.list_by_agent("ag1", limit=1)] == ["second"]
