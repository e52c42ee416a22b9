"""
Centralized persistence layer.

SQLModel entities live in ``entities``; engine, session and schema helpers in
``utils``. Services in ``ratchet_ai.agent_core`` hold an ``async_sessionmaker``
and open one session per operation.
"""

from .base import Base, as_utc, new_id, utc_now
from .utils import create_all, create_engine, create_sessionmaker

__all__ = ["Base", "as_utc", "create_all", "create_engine", "create_sessionmaker", "new_id", "utc_now"]
