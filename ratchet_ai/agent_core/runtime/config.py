from __future__ import annotations

"""Per-step agent loop configuration.

``AgentLoopConfig`` is parsed from a plain mapping (a pipeline step's config
block). Timeouts accept seconds as numbers or duration strings such as
``"30m"``, ``"500ms"`` or ``"1h30m"``; they are stored as seconds.
"""

import re
from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator

from ..schemas import BaseSchema
from .context_manager import DEFAULT_COMPACTION_THRESHOLD
from .loop_detector import LoopDetectionConfig

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_APPROVAL_TIMEOUT = 30 * 60.0
DEFAULT_REQUEST_TIMEOUT = 60 * 60.0

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> float:
    """
    Convert a duration into seconds.

    Numbers are taken as seconds. Strings are either a bare number or a
    sequence of ``<number><unit>`` parts with units ns, us, ms, s, m and h.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration: {value!r}")
    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


class _LoopConfigSchema(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LoopDetectionSettings(_LoopConfigSchema):
    max_consecutive: int = 3
    max_errors: int = 2
    max_alternating: int = 3
    max_no_progress: int = 3

    def to_detector_config(self) -> LoopDetectionConfig:
        return LoopDetectionConfig(
            max_consecutive=self.max_consecutive,
            max_errors=self.max_errors,
            max_alternating=self.max_alternating,
            max_no_progress=self.max_no_progress,
        ).normalized()


class ContextSettings(_LoopConfigSchema):
    compaction_threshold: float = DEFAULT_COMPACTION_THRESHOLD
    context_limit: Optional[int] = None


class SubAgentSettings(_LoopConfigSchema):
    max_per_parent: int = 5
    max_depth: int = 1


class AgentLoopConfig(_LoopConfigSchema):
    """Limits and timeouts for one agent loop run.

    ``provider`` names the service-registry provider used when no
    alias-resolved provider is available.
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    loop_detection: LoopDetectionSettings = Field(default_factory=LoopDetectionSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    sub_agent: SubAgentSettings = Field(default_factory=SubAgentSettings)
    provider: str = ""

    @field_validator("max_iterations", mode="before")
    @classmethod
    def _min_iterations(cls, v: Any) -> Any:
        if v is None or (isinstance(v, (int, float)) and not isinstance(v, bool) and v < 1):
            return DEFAULT_MAX_ITERATIONS
        return v

    @field_validator("approval_timeout", mode="before")
    @classmethod
    def _approval_timeout(cls, v: Any) -> float:
        seconds = parse_duration(v) if v not in (None, "") else 0.0
        return seconds if seconds > 0 else DEFAULT_APPROVAL_TIMEOUT

    @field_validator("request_timeout", mode="before")
    @classmethod
    def _request_timeout(cls, v: Any) -> float:
        seconds = parse_duration(v) if v not in (None, "") else 0.0
        return seconds if seconds > 0 else DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_settings(cls, settings: Any) -> "AgentLoopConfig":
        """Build the defaults from application settings (``settings.agent`` and ``settings.sub_agent``)."""
        agent = settings.agent
        sub = settings.sub_agent
        return cls(
            max_iterations=agent.max_iterations,
            approval_timeout=agent.approval_timeout,
            request_timeout=agent.request_timeout,
            context=ContextSettings(compaction_threshold=agent.compaction_threshold),
            sub_agent=SubAgentSettings(max_per_parent=sub.max_per_parent, max_depth=sub.max_depth),
        )
