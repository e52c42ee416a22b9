"""Secret redaction and the key/value secrets provider boundary."""

from .providers import EnvSecretsProvider, InMemorySecretsProvider, SecretsProvider
from .secret_guard import SecretGuard

__all__ = ["EnvSecretsProvider", "InMemorySecretsProvider", "SecretGuard", "SecretsProvider"]
