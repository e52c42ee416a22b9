"""Durable append-only journal of agent loop messages."""

from .recorder import TranscriptRecorder

__all__ = ["TranscriptRecorder"]
