# chuk_ai_token_saver/savers/semantic_cache.py
"""
Semantic Cache - skips the model call entirely when the user repeats a turn.

The key covers only the user messages, canonicalized, so a repeat that
differs in timestamps, request ids or home paths still hits. A hit saves
everything the original call cost: its input and output tokens.

Entries live in an LRU map with a per-entry time-to-live. Expiry is lazy:
an old entry is dropped when a lookup finds it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence

from pydantic import BaseModel, Field

from chuk_ai_token_saver.canonical import canonicalize, content_hash
from chuk_ai_token_saver.models import (
    CachedEntry,
    CacheKey,
    KeyScope,
    Message,
    MessageRole,
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
    SemanticCacheStats,
)

from .base import BaseSaver

logger = logging.getLogger(__name__)


class SemanticCacheConfig(BaseModel):
    """Configuration for SemanticCacheSaver."""

    capacity: int = Field(default=10_000, gt=0, description="Maximum entries before LRU eviction")
    ttl_seconds: float = Field(default=86_400.0, gt=0, description="Entry lifetime")


class _Slot(BaseModel):
    """Internal entry with its insertion time."""

    entry: CachedEntry
    stored_at: float


class SemanticCacheSaver(BaseSaver):
    """In-memory, TTL-bounded LRU cache of full responses keyed by user turns."""

    name = "semantic-cache"
    stage = SaverStage.CALL_ELIMINATION
    priority = 1

    def __init__(
        self,
        config: SemanticCacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.config = config or SemanticCacheConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[CacheKey, _Slot] = OrderedDict()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
            "total_tokens_saved": 0,
        }

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def build_key(messages: Sequence[Message]) -> CacheKey:
        """Hash the canonicalized user messages, in order."""
        parts = [canonicalize(m.content) for m in messages if m.role == MessageRole.USER]
        return content_hash(KeyScope.SEMANTIC, parts)

    # ------------------------------------------------------------------
    # Cache operations
    # ------------------------------------------------------------------

    def lookup(self, key: CacheKey) -> CachedEntry | None:
        """O(1) lookup. Counts a hit or a miss."""
        key.require(KeyScope.SEMANTIC)
        with self._lock:
            slot = self._entries.get(key)
            if slot is not None and self._clock() - slot.stored_at >= self.config.ttl_seconds:
                del self._entries[key]
                self._stats["expirations"] += 1
                slot = None
            if slot is None:
                self._stats["misses"] += 1
                return None
            self._entries.move_to_end(key)
            self._stats["hits"] += 1
            self._stats["total_tokens_saved"] += slot.entry.tokens_saved
            return slot.entry

    def store(self, key: CacheKey, response: str, input_tokens: int = 0, output_tokens: int = 0) -> None:
        """Insert or overwrite an entry, evicting the least recently used if full."""
        key.require(KeyScope.SEMANTIC)
        slot = _Slot(
            entry=CachedEntry(response=response, input_tokens=input_tokens, output_tokens=output_tokens),
            stored_at=self._clock(),
        )
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self.config.capacity:
                self._entries.popitem(last=False)
                self._stats["evictions"] += 1
            self._entries[key] = slot

    def store_messages(
        self,
        messages: Sequence[Message],
        response: str,
        input_tokens: int = 0,
        output_tokens: int = 0,
    ) -> CacheKey:
        key = self.build_key(messages)
        self.store(key, response, input_tokens, output_tokens)
        return key

    def invalidate(self, key: CacheKey) -> bool:
        key.require(KeyScope.SEMANTIC)
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def on_response(
        self,
        inp: SaverInput,
        response: str,
        input_tokens: int,
        output_tokens: int,
        ctx: SaverContext | None = None,
    ) -> None:
        self.store_messages(inp.messages, response, input_tokens, output_tokens)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def hit_rate(self) -> float:
        with self._lock:
            total = self._stats["hits"] + self._stats["misses"]
            return self._stats["hits"] / total if total else 0.0

    def stats(self) -> SemanticCacheStats:
        with self._lock:
            return SemanticCacheStats(
                size=len(self._entries),
                max_size=self.config.capacity,
                **self._stats,
            )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput:
        key = self.build_key(inp.messages)
        cached = self.lookup(key)
        if cached is None:
            self._set_report(0, 0, "cache miss")
            logger.debug("semantic cache miss %s", key)
            return SaverOutput.passthrough(inp)

        saved = cached.tokens_saved
        self._set_report(
            saved,
            0,
            f"cache hit (rate: {self.hit_rate * 100:.1f}%), saved {saved} tokens",
        )
        logger.debug("semantic cache hit %s, saved %d tokens", key, saved)
        return SaverOutput.short_circuit(inp, cached.response)
