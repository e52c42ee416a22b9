"""
Database utility functions for engine and session management.

This module provides the core utility functions for creating database engines
and session factories. Built with async SQLAlchemy; the default deployment is an
embedded SQLite file driven through ``aiosqlite``.

Functions:
- create_engine: Creates async SQLAlchemy engine with URL normalization
- create_sessionmaker: Creates async session factory with safe defaults
- create_all: Creates all tables (plus the memory full-text index) from ORM metadata
"""

from __future__ import annotations

import re

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from . import entities  # noqa: F401  (registers every table on Base.metadata)
from .base import Base

MEMORY_FTS_DDL = (
    "CREATE VIRTUAL TABLE IF NOT EXISTS memory_entries_fts "
    "USING fts5(id UNINDEXED, agent_id UNINDEXED, content, category)"
)


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Plain ``sqlite://`` URLs are rewritten to ``sqlite+aiosqlite://`` so the async
    driver is used. In-memory SQLite databases are bound to a single shared
    connection, otherwise every session would see its own empty database.

    Args:
        db_url: Database connection URL

    Returns:
        Configured AsyncEngine instance
    """
    url = re.sub(r"^sqlite(?:\+[a-z0-9_]+)?://", "sqlite+aiosqlite://", db_url, count=1)
    if url.startswith("sqlite+aiosqlite://") and (url.endswith(":memory:") or url == "sqlite+aiosqlite://"):
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project.

    Args:
        engine: Async SQLAlchemy engine

    Returns:
        Configured async session factory
    """
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata.

    On SQLite the FTS5 virtual table backing memory keyword search is created too.

    Args:
        engine: Async SQLAlchemy engine
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        if conn.dialect.name == "sqlite":
            await conn.execute(text(MEMORY_FTS_DDL))
