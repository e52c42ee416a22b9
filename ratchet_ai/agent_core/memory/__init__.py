"""Persistent agent memory with keyword and hybrid search."""

from .store import (
    MemoryStore,
    bytes_to_float32,
    cosine_similarity,
    float32_to_bytes,
    sanitize_fts_query,
    split_transcript,
)

__all__ = [
    "MemoryStore",
    "bytes_to_float32",
    "cosine_similarity",
    "float32_to_bytes",
    "sanitize_fts_query",
    "split_transcript",
]
