"""Language-model provider boundary.

Concrete vendor clients live outside this package; anything satisfying
``Provider`` can drive the agent loop. ``ScriptedProvider`` answers from a
response source: ``ScriptedSource`` replays canned steps for tests and demos,
``HTTPSource`` waits for a person to answer over the API.
``ProviderRegistry`` resolves agent provider aliases from ``llm_providers``.
"""

from .base import Embedder, Provider
from .http_source import INTERACTION_PENDING_EVENT, HTTPSource
from .registry import ProviderFactory, ProviderRegistry, mock_provider_factory
from .scripted import (
    Interaction,
    ResponseSource,
    ScriptedProvider,
    ScriptedSource,
    ScriptedStep,
    load_scenario,
)

__all__ = [
    "Embedder",
    "HTTPSource",
    "INTERACTION_PENDING_EVENT",
    "Interaction",
    "Provider",
    "ProviderFactory",
    "ProviderRegistry",
    "ResponseSource",
    "ScriptedProvider",
    "ScriptedSource",
    "ScriptedStep",
    "load_scenario",
    "mock_provider_factory",
]
