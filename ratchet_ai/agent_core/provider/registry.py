from __future__ import annotations

"""Provider registry.

Resolves provider aliases (as stored on agent rows) to provider instances.
Lookups go to the cache first, then to the ``llm_providers`` table: the row's
``secret_name`` is read through the secret guard's backend and the provider is
built by the factory registered for the row's ``type``.
"""

import asyncio
import logging
import threading
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratchet_ai.core.database.entities.providers import LLMProvider

from ..errors import ConfigurationError
from ..security import SecretGuard
from .base import Provider
from .scripted import ScriptedProvider, ScriptedSource, ScriptedStep

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str, LLMProvider], Provider]

MOCK_COMPLETION = "I have completed the task."


def mock_provider_factory(api_key: str, config: LLMProvider) -> Provider:
    """Provider that answers every call with a fixed completion."""
    return ScriptedProvider(
        ScriptedSource([ScriptedStep(content=MOCK_COMPLETION)], loop=True),
        name="mock",
        model=config.model or "mock",
    )


class ProviderRegistry:
    """
    Alias to provider resolution with a database fallback.

    Notes:
        - ``register`` places a ready-made provider in the cache; it wins over
          any database row with the same alias.
        - Without a session factory only registered providers resolve.
        - An empty alias or ``"default"`` selects the default: the registered
          default if any, otherwise the row with ``is_default`` set.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        guard: Optional[SecretGuard] = None,
    ) -> None:
        self.session_factory = session_factory
        self.guard = guard
        self._lock = threading.Lock()
        self._build_lock = asyncio.Lock()
        self._cache: Dict[str, Provider] = {}
        self._default: Optional[str] = None
        self._factories: Dict[str, ProviderFactory] = {"mock": mock_provider_factory}

    def register(self, alias: str, provider: Provider, *, default: bool = False) -> None:
        with self._lock:
            self._cache[alias] = provider
            if default or self._default is None:
                self._default = alias

    def register_factory(self, provider_type: str, factory: ProviderFactory) -> None:
        with self._lock:
            self._factories[provider_type] = factory

    def aliases(self) -> List[str]:
        """Aliases currently cached (registered or already built)."""
        with self._lock:
            return sorted(self._cache)

    def invalidate(self, alias: Optional[str] = None) -> None:
        """Drop one cached alias, or every cached provider built from the database."""
        with self._lock:
            if alias is not None:
                self._cache.pop(alias, None)
                if self._default == alias:
                    self._default = None
            else:
                self._cache.clear()
                self._default = None

    async def invalidate_secret(self, secret_name: str) -> None:
        """Drop every cached provider whose row uses ``secret_name`` (after a key rotation)."""
        if self.session_factory is None:
            return
        async with self.session_factory() as s:
            result = await s.execute(select(LLMProvider.alias).where(LLMProvider.secret_name == secret_name))
            aliases = list(result.scalars().all())
        for alias in aliases:
            self.invalidate(alias)

    async def resolve(self, alias: str = "") -> Provider:
        """
        Return the provider for ``alias``, building and caching it on first use.

        Raises:
            ConfigurationError: If the alias is unknown, its type has no
                factory, or its API key secret cannot be read.
        """
        wants_default = alias in ("", "default")
        with self._lock:
            key = self._default if wants_default else alias
            if key is not None and key in self._cache:
                return self._cache[key]

        async with self._build_lock:
            with self._lock:
                if key is not None and key in self._cache:
                    return self._cache[key]
            config = await self._load_config(None if wants_default else alias)
            provider = await self._build(config)
            with self._lock:
                self._cache[config.alias] = provider
                if wants_default or config.is_default:
                    self._default = self._default or config.alias
        logger.info("Provider %r built from database (type=%s, model=%s)", config.alias, config.type, config.model)
        return provider

    async def _load_config(self, alias: Optional[str]) -> LLMProvider:
        label = alias or "default"
        if self.session_factory is None:
            raise ConfigurationError(f'provider "{label}" not registered')
        async with self.session_factory() as s:
            if alias is None:
                stmt = select(LLMProvider).where(LLMProvider.is_default.is_(True)).limit(1)
            else:
                stmt = select(LLMProvider).where(LLMProvider.alias == alias)
            config = (await s.execute(stmt)).scalars().first()
        if config is None:
            raise ConfigurationError(f'provider "{label}" not registered')
        return config

    async def _build(self, config: LLMProvider) -> Provider:
        api_key = ""
        if config.secret_name:
            provider_backend = self.guard.provider if self.guard is not None else None
            if provider_backend is None:
                raise ConfigurationError(
                    f'provider "{config.alias}": no secrets backend to read "{config.secret_name}"'
                )
            try:
                api_key = await provider_backend.get(config.secret_name)
            except KeyError as e:
                raise ConfigurationError(
                    f'provider "{config.alias}": secret "{config.secret_name}" not found'
                ) from e
            self.guard.add_known_secret(config.secret_name, api_key)

        with self._lock:
            factory = self._factories.get(config.type)
        if factory is None:
            raise ConfigurationError(f'provider "{config.alias}": unknown provider type "{config.type}"')
        return factory(api_key, config)
