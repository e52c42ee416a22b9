"""
LLM provider entity model.

Each row maps an alias (as stored on agents) to a provider type and model.
The API key is never stored here; ``secret_name`` names the secret that holds
it in the configured secrets backend.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import DateTime, Field

from ..base import Base, new_id, utc_now


class LLMProvider(Base, table=True):
    """Entity for configured language-model providers.

    Table: llm_providers
    """

    __tablename__ = "llm_providers"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    alias: str = Field(max_length=128, unique=True, index=True)
    type: str = Field(max_length=32)
    model: str = Field(default="", max_length=255)
    secret_name: str = Field(default="", max_length=255, index=True)
    base_url: str = Field(default="", max_length=512)
    max_tokens: int = Field(default=0)
    is_default: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"LLMProvider(alias={self.alias}, type={self.type}, model={self.model})"
