from __future__ import annotations

"""Context-window accounting and conversation compaction.

Token counts are estimated, not measured: every message costs a fixed overhead
of 4 tokens plus one token per 4 characters of content. When the estimate
reaches the configured fraction of the model's context window, the middle of
the conversation is replaced by a model-written summary while the system
prompt and the most recent exchanges are kept verbatim.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..provider.base import Provider
from ..schemas import Message, Role

logger = logging.getLogger(__name__)

MODEL_CONTEXT_LIMITS = {
    "claude-opus-4": 200_000,
    "claude-sonnet-4": 200_000,
    "claude-haiku-4": 200_000,
    "claude-3-5": 200_000,
    "claude-3-opus": 200_000,
    "claude-3-sonnet": 200_000,
    "claude-3-haiku": 200_000,
    "claude-2": 100_000,
    "claude-instant": 100_000,
    "gpt-4o": 128_000,
    "gpt-4-turbo": 128_000,
    "gpt-4-1106": 128_000,
    "gpt-4-0125": 128_000,
    "gpt-4-32k": 32_768,
    "gpt-4": 8_192,
    "gpt-3.5-turbo-16k": 16_385,
    "gpt-3.5-turbo": 4_096,
    "o1-preview": 128_000,
    "o1-mini": 128_000,
    "default": 128_000,
}

DEFAULT_CONTEXT_LIMIT = 128_000
DEFAULT_COMPACTION_THRESHOLD = 0.80
KEEP_TAIL = 4
FALLBACK_EXCERPT_CHARS = 500

SUMMARISER_PROMPT = (
    "You are a precise summariser. Produce a concise factual summary of the "
    "following conversation transcript. Preserve key decisions, tool results, and "
    "facts discovered. Omit greetings and repetition. Use bullet points."
)


def context_limit(model_name: str) -> int:
    """Context window for ``model_name``; the longest matching key wins (case-insensitive)."""
    lower = (model_name or "").lower()
    best_len = 0
    best = DEFAULT_CONTEXT_LIMIT
    for key, limit in MODEL_CONTEXT_LIMITS.items():
        k = key.lower()
        if k in lower and len(k) > best_len:
            best_len = len(k)
            best = limit
    return best


def estimate_tokens(messages: Sequence[Message]) -> int:
    return sum(4 + len(m.content) // 4 for m in messages)


class ContextManager:
    def __init__(
        self,
        model_name: str,
        threshold: float = DEFAULT_COMPACTION_THRESHOLD,
        limit: Optional[int] = None,
    ) -> None:
        self.model_name = model_name
        self.context_limit = limit if limit and limit > 0 else context_limit(model_name)
        self.threshold = threshold if 0 < threshold <= 1 else DEFAULT_COMPACTION_THRESHOLD
        self._compactions = 0

    @property
    def compactions(self) -> int:
        return self._compactions

    def needs_compaction(self, messages: Sequence[Message]) -> bool:
        return estimate_tokens(messages) >= int(self.context_limit * self.threshold)

    def token_usage(self, messages: Sequence[Message]) -> Tuple[int, int]:
        """Return ``(estimated_tokens, context_limit)``."""
        return estimate_tokens(messages), self.context_limit

    async def compact(self, messages: List[Message], provider: Provider) -> List[Message]:
        """
        Replace the middle of ``messages`` with a summary note.

        The first message and the last ``KEEP_TAIL`` messages are preserved
        as-is. Lists shorter than five messages are returned unchanged.

        Args:
            messages: The current conversation, system prompt first.
            provider: Provider used to write the summary.

        Returns:
            A new list: system prompt, summary note, tail.
        """
        if len(messages) < 5:
            return messages

        keep_tail = min(KEEP_TAIL, len(messages) - 2)
        tail_start = len(messages) - keep_tail
        system = messages[0]
        middle = messages[1:tail_start]
        tail = messages[tail_start:]

        summary = await self._summarise(middle, provider)
        self._compactions += 1
        note = Message(
            role=Role.user,
            content=(
                f"[CONTEXT COMPACTED - compaction #{self._compactions}]\n\n"
                f"Summary of prior conversation:\n{summary}\n\n"
                "The conversation continues from this point."
            ),
        )
        logger.info(
            "Compacted %d messages into summary #%d for model %s",
            len(middle),
            self._compactions,
            self.model_name,
        )
        return [system, note, *tail]

    async def _summarise(self, messages: Sequence[Message], provider: Provider) -> str:
        if not messages:
            return "(no prior messages to summarise)"
        transcript = "".join(f"[{m.role.value}]: {m.content}\n\n" for m in messages)
        request = [
            Message(role=Role.system, content=SUMMARISER_PROMPT),
            Message(role=Role.user, content="Summarise this conversation:\n\n" + transcript),
        ]
        try:
            response = await provider.chat(request, None)
        except Exception as e:
            logger.warning("Summarisation failed, using excerpt instead: %s", e)
            excerpt = transcript
            if len(excerpt) > FALLBACK_EXCERPT_CHARS:
                excerpt = excerpt[:FALLBACK_EXCERPT_CHARS] + "... [truncated]"
            return f"(auto-summary unavailable; excerpt follows)\n{excerpt}"
        return response.content
