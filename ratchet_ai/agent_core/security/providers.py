from __future__ import annotations

"""Secrets provider interface and the two local backends.

Vault-style backends live outside this package; they only need to satisfy
``SecretsProvider``.
"""

import os
from typing import Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class SecretsProvider(Protocol):
    """Named secret storage used by the secret guard and the token auto-store."""

    async def get(self, name: str) -> str:
        """
        Return the value stored under ``name``.

        Raises:
            KeyError: If the secret does not exist.
        """
        ...

    async def list(self) -> List[str]:
        """Return every secret name the backend can serve."""
        ...

    async def set(self, name: str, value: str) -> None:
        """Store ``value`` under ``name``, replacing any previous value."""
        ...


class InMemorySecretsProvider:
    """Process-local secret storage, useful for tests and single-run setups."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    async def get(self, name: str) -> str:
        return self._values[name]

    async def list(self) -> List[str]:
        return sorted(self._values)

    async def set(self, name: str, value: str) -> None:
        self._values[name] = value


class EnvSecretsProvider:
    """Secrets read from environment variables sharing a common prefix.

    ``RATCHET_SECRET_GH_TOKEN`` is exposed as ``GH_TOKEN`` with the default
    prefix. ``set`` writes back into the process environment.
    """

    def __init__(self, prefix: str = "RATCHET_SECRET_") -> None:
        self.prefix = prefix

    async def get(self, name: str) -> str:
        key = self.prefix + name
        if key not in os.environ:
            raise KeyError(name)
        return os.environ[key]

    async def list(self) -> List[str]:
        return sorted(k[len(self.prefix) :] for k in os.environ if k.startswith(self.prefix) and len(k) > len(self.prefix))

    async def set(self, name: str, value: str) -> None:
        os.environ[self.prefix + name] = value
