# chuk_ai_token_saver/savers/dedup.py
"""
Dedup - collapses repeated tool results across turns.

Agents re-read the same file and re-run the same command. The second copy
of an identical tool result is replaced with a one-line reference to the
first, and tool results that repeat an earlier tool_call_id are dropped.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

from chuk_ai_token_saver.models import (
    Message,
    MessageRole,
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
)

from .base import BaseSaver

logger = logging.getLogger(__name__)


class DedupConfig(BaseModel):
    """Configuration for DedupSaver."""

    min_chars: int = Field(default=50, ge=0, description="Shorter tool results are left alone")


class DedupSaver(BaseSaver):
    """Replaces duplicate tool outputs with references."""

    name = "dedup"
    stage = SaverStage.INTER_TURN
    priority = 10

    def __init__(self, config: DedupConfig | None = None) -> None:
        super().__init__()
        self.config = config or DedupConfig()

    @staticmethod
    def drop_repeated_call_ids(messages: Sequence[Message]) -> list[Message]:
        seen: set[str] = set()
        result: list[Message] = []
        for msg in messages:
            if msg.role == MessageRole.TOOL and msg.tool_call_id is not None:
                if msg.tool_call_id in seen:
                    continue
                seen.add(msg.tool_call_id)
            result.append(msg)
        return result

    def replace_duplicates(self, messages: Sequence[Message]) -> list[Message]:
        """Rewrite exact repeats of earlier tool results in place."""
        first_seen: dict[str, tuple[int, str]] = {}
        for i, msg in enumerate(messages):
            if msg.role != MessageRole.TOOL or len(msg.content) < self.config.min_chars:
                continue
            digest = hashlib.sha256(msg.content.encode("utf-8")).hexdigest()
            if digest not in first_seen:
                first_seen[digest] = (i, msg.tool_call_id or f"turn-{i}")
                continue
            first_index, first_id = first_seen[digest]
            reference = (
                f"[DEDUP: identical to tool result at message {first_index + 1} ({first_id}). "
                f"{msg.token_count} tokens saved]"
            )
            if len(reference) < len(msg.content):
                msg.content = reference
        return list(messages)

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput:
        before = inp.message_tokens
        messages = self.replace_duplicates(self.drop_repeated_call_ids(inp.messages))
        after = sum(m.token_count for m in messages)
        self._set_report(before, after, f"deduplicated tool results, saved {before - after} tokens")
        if before > after:
            logger.debug("dedup saved %d tokens", before - after)
        return SaverOutput(messages=messages, tools=inp.tools, media=inp.media)
