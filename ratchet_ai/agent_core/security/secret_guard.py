from __future__ import annotations

"""Content-based secret redaction.

The guard keeps a map of known secret values to their names and replaces every
literal occurrence of a value with ``[REDACTED:<name>]``. The map is published
copy-on-write: writers build a new dict and swap the reference under a short
lock, so readers always see a complete snapshot.

Replacement is plain substring matching, so a short secret that is also a
common substring over-redacts.
"""

import logging
import threading
from typing import Dict, Iterable, Optional

from ..schemas import Message
from .providers import SecretsProvider

logger = logging.getLogger(__name__)


class SecretGuard:
    def __init__(self, provider: Optional[SecretsProvider] = None, backend_name: str = "") -> None:
        self._lock = threading.Lock()
        self._provider = provider
        self._backend_name = backend_name
        self._known: Dict[str, str] = {}

    def _snapshot(self) -> Dict[str, str]:
        with self._lock:
            return self._known

    def redact(self, text: str) -> str:
        """Replace every known secret value in ``text`` with its redaction marker."""
        if not text:
            return text
        for value, name in self._snapshot().items():
            if value in text:
                text = text.replace(value, f"[REDACTED:{name}]")
        return text

    def check_and_redact(self, message: Message) -> bool:
        """Redact ``message.content`` in place; return True iff it changed."""
        redacted = self.redact(message.content)
        if redacted == message.content:
            return False
        message.content = redacted
        return True

    def add_known_secret(self, name: str, value: str) -> None:
        if not value:
            return
        with self._lock:
            updated = dict(self._known)
            updated[value] = name
            self._known = updated

    async def _fetch(self, provider: SecretsProvider, names: Iterable[str]) -> Dict[str, str]:
        fetched: Dict[str, str] = {}
        for name in names:
            try:
                value = await provider.get(name)
            except Exception as e:
                logger.debug("Skipping secret %s: %s", name, e)
                continue
            if value:
                fetched[value] = name
        return fetched

    async def load_secrets(self, names: Iterable[str]) -> None:
        """Fetch the given names from the provider and add them to the known set."""
        if self._provider is None:
            return
        fetched = await self._fetch(self._provider, names)
        with self._lock:
            updated = dict(self._known)
            updated.update(fetched)
            self._known = updated

    async def load_all_secrets(self) -> None:
        """Enumerate every name the provider serves and load its value."""
        if self._provider is None:
            return
        try:
            names = await self._provider.list()
        except Exception as e:
            logger.warning("Secret provider %s could not list secrets: %s", self._backend_name or "<unnamed>", e)
            return
        await self.load_secrets(names)

    async def set_provider(self, provider: SecretsProvider, backend_name: str) -> None:
        """Swap the backend and rebuild the known-values map from it.

        The new map is fully built before the swap, so concurrent ``redact``
        calls see either the old pair or the new pair, never a mix.
        """
        try:
            names = await provider.list()
        except Exception as e:
            logger.warning("Secret provider %s could not list secrets: %s", backend_name, e)
            names = []
        fresh = await self._fetch(provider, names)
        with self._lock:
            self._provider = provider
            self._backend_name = backend_name
            self._known = fresh
        logger.info("Secret backend switched to %s (%d known values)", backend_name, len(fresh))

    @property
    def backend_name(self) -> str:
        with self._lock:
            return self._backend_name

    @property
    def provider(self) -> Optional[SecretsProvider]:
        with self._lock:
            return self._provider

    def known_names(self) -> list[str]:
        return sorted(set(self._snapshot().values()))
