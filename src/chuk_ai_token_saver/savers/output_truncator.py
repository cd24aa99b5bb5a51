# chuk_ai_token_saver/savers/output_truncator.py
"""
Output Truncator - keeps the head and tail of oversized tool outputs.

Errors and summaries tend to sit at the start or the end of long command
output, so the middle is cut. Cuts snap to line boundaries when one is
available inside the kept region.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from chuk_ai_token_saver.models import (
    CHARS_PER_TOKEN,
    MessageRole,
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
    estimate_tokens,
)

from .base import BaseSaver

logger = logging.getLogger(__name__)


class TruncatorConfig(BaseModel):
    """Configuration for OutputTruncatorSaver."""

    max_tokens: int = Field(default=4000, gt=0, description="Tool outputs above this are truncated")
    head_ratio: float = Field(default=0.6, ge=0.0, le=1.0, description="Share of the budget kept from the start")
    marker: str = Field(default="[... {n} tokens truncated ...]")


class OutputTruncatorSaver(BaseSaver):
    """Head + tail truncation of tool-role messages."""

    name = "output-truncator"
    stage = SaverStage.POST_RESPONSE
    priority = 10

    def __init__(self, config: TruncatorConfig | None = None) -> None:
        super().__init__()
        self.config = config or TruncatorConfig()

    def truncate(self, content: str) -> tuple[str, int]:
        """Return the (possibly) truncated text and the tokens removed."""
        if estimate_tokens(content) <= self.config.max_tokens:
            return content, 0

        max_chars = self.config.max_tokens * CHARS_PER_TOKEN
        head_chars = int(max_chars * self.config.head_ratio)
        tail_chars = max_chars - head_chars

        head_end = content.rfind("\n", 0, head_chars)
        if head_end <= 0:
            head_end = head_chars
        tail_start = content.find("\n", len(content) - tail_chars)
        if tail_start == -1 or tail_start < head_end:
            tail_start = len(content) - tail_chars

        removed = estimate_tokens(content[head_end:tail_start])
        marker = self.config.marker.format(n=removed)
        return f"{content[:head_end]}\n{marker}\n{content[tail_start:]}", removed

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput:
        before = inp.message_tokens
        truncated = 0
        for msg in inp.messages:
            if msg.role != MessageRole.TOOL:
                continue
            new_content, removed = self.truncate(msg.content)
            if removed:
                msg.content = new_content
                truncated += 1
        after = inp.message_tokens
        self._set_report(before, after, f"truncated {truncated} tool outputs")
        if truncated:
            logger.debug("truncated %d tool outputs, saved %d tokens", truncated, before - after)
        return SaverOutput.passthrough(inp)
