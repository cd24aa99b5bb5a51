# chuk_ai_token_saver/savers/prefix_cache.py
"""
Prefix Cache - keeps the prompt's static prefix byte-for-byte stable.

Providers discount input tokens that repeat an earlier request's prefix,
but only when the prefix is identical down to the byte. This saver does
not store responses. Each turn it:

1. Sorts tool schemas by name
2. Sorts every object's keys inside each tool's parameter schema
   (array order is kept)
3. Moves system messages ahead of all others, keeping relative order

and then hashes the stable prefix (system messages + tool schemas). If the
hash equals the previous turn's, the provider will most likely serve the
prefix from its cache and the discounted tokens are reported as saved.

The previous hash is a single slot. Call process() exactly once per turn,
in turn order, on an instance owned by one session; otherwise the hit
prediction is meaningless.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from chuk_ai_token_saver.canonical import content_hash
from chuk_ai_token_saver.models import (
    CacheKey,
    KeyScope,
    Message,
    MessageRole,
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
    ToolSchema,
)

from .base import BaseSaver

logger = logging.getLogger(__name__)


class ModelDiscount(BaseModel):
    """Provider discount on cached input tokens for models matching a pattern."""

    pattern: str = Field(..., description="Regex searched in the lower-cased model name")
    discount: float = Field(..., ge=0.0, le=1.0, description="0.90 means 90% off cached tokens")

    def matches(self, model: str) -> bool:
        return re.search(self.pattern, model.lower()) is not None


def default_discount_table() -> list[ModelDiscount]:
    """Published cached-input discounts, early 2026. Update as pricing changes."""
    return [
        ModelDiscount(pattern=r"gpt-5", discount=0.90),
        ModelDiscount(pattern=r"gpt-?4\.1", discount=0.75),
        ModelDiscount(pattern=r"gpt-4o|^o[134]", discount=0.50),
        ModelDiscount(pattern=r"claude|anthropic", discount=0.90),
    ]


class PrefixCacheConfig(BaseModel):
    """Configuration for PrefixCacheSaver."""

    minimum_prefix_tokens: int = Field(
        default=1024, ge=0, description="Providers only cache prefixes at least this long"
    )
    discount_table: list[ModelDiscount] = Field(default_factory=default_discount_table)
    default_discount: float = Field(default=0.50, ge=0.0, le=1.0, description="Used when no pattern matches")


class PrefixCacheSaver(BaseSaver):
    """Stabilizes the prompt prefix and predicts provider-side cache hits."""

    name = "prefix-cache"
    stage = SaverStage.PROMPT_ASSEMBLY
    priority = 10

    def __init__(self, config: PrefixCacheConfig | None = None) -> None:
        super().__init__()
        self.config = config or PrefixCacheConfig()
        self._lock = threading.Lock()
        self._last_hash: CacheKey | None = None

    # ------------------------------------------------------------------
    # Canonical layout
    # ------------------------------------------------------------------

    @staticmethod
    def sort_tools(tools: Sequence[ToolSchema]) -> list[ToolSchema]:
        return sorted(tools, key=lambda t: t.name)

    @classmethod
    def canonicalize_schema(cls, schema: Any) -> Any:
        """Recursively sort object keys. Arrays keep their element order."""
        if isinstance(schema, dict):
            return {k: cls.canonicalize_schema(schema[k]) for k in sorted(schema)}
        if isinstance(schema, list):
            return [cls.canonicalize_schema(v) for v in schema]
        return schema

    @staticmethod
    def partition_system_first(messages: Sequence[Message]) -> list[Message]:
        """Stable partition: system messages first, everything else after."""
        system = [m for m in messages if m.role == MessageRole.SYSTEM]
        rest = [m for m in messages if m.role != MessageRole.SYSTEM]
        return system + rest

    @staticmethod
    def serialize_schema(parameters: dict[str, Any]) -> str:
        return json.dumps(parameters, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def compute_prefix_hash(cls, messages: Sequence[Message], tools: Sequence[ToolSchema]) -> CacheKey:
        """Hash system message contents, in order, then each tool's name and schema."""
        parts: list[str] = []
        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                parts.append("system")
                parts.append(msg.content)
        for tool in tools:
            parts.append("tool")
            parts.append(tool.name)
            parts.append(cls.serialize_schema(tool.parameters))
        return content_hash(KeyScope.PREFIX, parts)

    @staticmethod
    def count_prefix_tokens(messages: Sequence[Message], tools: Sequence[ToolSchema]) -> int:
        system_tokens = sum(m.token_count for m in messages if m.role == MessageRole.SYSTEM)
        return system_tokens + sum(t.token_count for t in tools)

    def discount_for(self, model: str) -> float:
        for entry in self.config.discount_table:
            if entry.matches(model):
                return entry.discount
        return self.config.default_discount

    def reset(self) -> None:
        """Forget the previous turn's prefix."""
        with self._lock:
            self._last_hash = None

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput:
        ctx = ctx or SaverContext()

        tools = self.sort_tools(inp.tools)
        for tool in tools:
            tool.parameters = self.canonicalize_schema(tool.parameters)
        messages = self.partition_system_first(inp.messages)

        current = self.compute_prefix_hash(messages, tools)
        with self._lock:
            cache_hit = self._last_hash == current
            self._last_hash = current

        prefix_tokens = self.count_prefix_tokens(messages, tools)
        qualifies = prefix_tokens >= self.config.minimum_prefix_tokens

        if cache_hit and qualifies:
            discount = self.discount_for(ctx.model)
            saved = int(prefix_tokens * discount)
            self._set_report(
                prefix_tokens,
                prefix_tokens,
                f"prefix cache hit [{ctx.model or 'unknown model'}]: "
                f"{prefix_tokens} tokens x {discount * 100:.0f}% discount = {saved} effective saved",
                tokens_saved=saved,
            )
            logger.debug("prefix cache hit %s (%d tokens)", current, prefix_tokens)
        elif not qualifies:
            self._set_report(
                prefix_tokens,
                prefix_tokens,
                f"prefix too short for caching ({prefix_tokens} < {self.config.minimum_prefix_tokens} tokens)",
                tokens_saved=0,
            )
        else:
            self._set_report(prefix_tokens, prefix_tokens, "prefix changed, cache miss this turn", tokens_saved=0)
            logger.debug("prefix cache miss %s", current)

        return SaverOutput(messages=messages, tools=tools, media=inp.media)
