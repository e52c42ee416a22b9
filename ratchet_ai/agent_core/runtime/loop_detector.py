from __future__ import annotations

"""Tool-call loop detection.

The detector keeps the full tool-call history of one agent loop and classifies
it after every call. Strategies run in priority order and the first non-OK
verdict wins:

1. repeated error: the same call failing with the same error
2. no progress: the same call returning the same successful result
3. consecutive: the same call back-to-back (warns one call early)
4. alternating: an A/B/A/B pattern at the tail

Arguments and results are compared through short SHA-256 prefixes of a
canonical JSON encoding, so key order in the arguments does not matter.
"""

import hashlib
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple


class LoopStatus(str, Enum):
    ok = "ok"
    warning = "warning"
    break_ = "break"


@dataclass(frozen=True)
class LoopDetectionConfig:
    """Thresholds; zero or negative values fall back to the defaults."""

    max_consecutive: int = 3
    max_errors: int = 2
    max_alternating: int = 3
    max_no_progress: int = 3

    def normalized(self) -> "LoopDetectionConfig":
        defaults = LoopDetectionConfig()
        return LoopDetectionConfig(
            max_consecutive=self.max_consecutive if self.max_consecutive > 0 else defaults.max_consecutive,
            max_errors=self.max_errors if self.max_errors > 0 else defaults.max_errors,
            max_alternating=self.max_alternating if self.max_alternating > 0 else defaults.max_alternating,
            max_no_progress=self.max_no_progress if self.max_no_progress > 0 else defaults.max_no_progress,
        )


@dataclass(frozen=True)
class LoopEntry:
    tool_name: str
    args_hash: str
    result_hash: str
    is_error: bool
    error_msg: str = ""

    @property
    def signature(self) -> Tuple[str, str]:
        return self.tool_name, self.args_hash


def hash_string(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def hash_args(args: Optional[Mapping[str, Any]]) -> str:
    encoded = json.dumps(dict(args or {}), sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hash_string(encoded)


class LoopDetector:
    def __init__(self, config: Optional[LoopDetectionConfig] = None) -> None:
        cfg = (config or LoopDetectionConfig()).normalized()
        self.max_consecutive = cfg.max_consecutive
        self.max_errors = cfg.max_errors
        self.max_alternating = cfg.max_alternating
        self.max_no_progress = cfg.max_no_progress
        self._history: List[LoopEntry] = []

    @property
    def history(self) -> List[LoopEntry]:
        return list(self._history)

    def record(self, tool_name: str, args: Optional[Mapping[str, Any]], result: str, is_error: bool) -> None:
        self._history.append(
            LoopEntry(
                tool_name=tool_name,
                args_hash=hash_args(args),
                result_hash=hash_string(result),
                is_error=is_error,
                error_msg=result if is_error else "",
            )
        )

    def reset(self) -> None:
        self._history.clear()

    def check(self) -> Tuple[LoopStatus, str]:
        """Classify the current history; returns the verdict and a message (empty when OK)."""
        if not self._history:
            return LoopStatus.ok, ""
        for strategy in (
            self._check_repeated_errors,
            self._check_no_progress,
            self._check_consecutive,
            self._check_alternating,
        ):
            status, msg = strategy()
            if status != LoopStatus.ok:
                return status, msg
        return LoopStatus.ok, ""

    def _check_repeated_errors(self) -> Tuple[LoopStatus, str]:
        last = self._history[-1]
        if not last.is_error:
            return LoopStatus.ok, ""
        count = sum(
            1
            for e in self._history
            if e.is_error and e.signature == last.signature and e.error_msg == last.error_msg
        )
        if count >= self.max_errors:
            return LoopStatus.break_, f'loop detected: tool "{last.tool_name}" returned the same error {count} times'
        return LoopStatus.ok, ""

    def _check_no_progress(self) -> Tuple[LoopStatus, str]:
        last = self._history[-1]
        if last.is_error:
            return LoopStatus.ok, ""
        count = sum(
            1
            for e in self._history
            if not e.is_error and e.signature == last.signature and e.result_hash == last.result_hash
        )
        if count >= self.max_no_progress:
            return (
                LoopStatus.break_,
                f'loop detected: tool "{last.tool_name}" returned identical results {count} times (no progress)',
            )
        return LoopStatus.ok, ""

    def _check_consecutive(self) -> Tuple[LoopStatus, str]:
        if len(self._history) < 2:
            return LoopStatus.ok, ""
        last = self._history[-1]
        count = 1
        for e in reversed(self._history[:-1]):
            if e.signature != last.signature:
                break
            count += 1
        if count >= self.max_consecutive:
            return (
                LoopStatus.break_,
                f'loop detected: tool "{last.tool_name}" called with the same arguments {count} times consecutively',
            )
        if count >= self.max_consecutive - 1:
            return (
                LoopStatus.warning,
                f'potential loop: tool "{last.tool_name}" called with the same arguments {count} times consecutively',
            )
        return LoopStatus.ok, ""

    def _check_alternating(self) -> Tuple[LoopStatus, str]:
        n = len(self._history)
        if n < 4:
            return LoopStatus.ok, ""
        last = self._history[-1].signature
        prev = self._history[-2].signature
        if last == prev:
            return LoopStatus.ok, ""
        # Pairs are taken from the tail; a leftover single entry at the head is ignored.
        cycles = 0
        for i in range(n - 1, 0, -2):
            if self._history[i - 1].signature == prev and self._history[i].signature == last:
                cycles += 1
            else:
                break
        if cycles >= self.max_alternating:
            return (
                LoopStatus.break_,
                f'loop detected: alternating pattern "{prev[0]}"/"{last[0]}" repeated {cycles} times',
            )
        return LoopStatus.ok, ""
