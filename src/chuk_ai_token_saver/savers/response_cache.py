# chuk_ai_token_saver/savers/response_cache.py
"""
Response Cache - persistent, compressed, content-addressed responses.

Survives process restarts. The key covers every message's role and
canonicalized content, in order, plus the names of the offered tools.
Values are zlib-compressed UTF-8 response text stored in a single SQLite
file opened in WAL mode, so several processes can read the same file
while one writes.

Caching here is strictly an optimization: a store that cannot be opened,
a failed transaction or bytes that no longer decode all count as a miss
and are logged, never raised to the pipeline.

Usage::

    cache = ResponseCacheSaver(ResponseCacheConfig(store_path=tmp / "rc.db"))
    key = cache.build_key(messages, tools)
    cache.store(key, "the answer")
    assert cache.lookup(key) == "the answer"
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import zlib
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from chuk_ai_token_saver.canonical import canonicalize, content_hash
from chuk_ai_token_saver.config import DEFAULT_CACHE_DIR
from chuk_ai_token_saver.errors import CacheUnavailable, DecodeFailure
from chuk_ai_token_saver.models import (
    CacheKey,
    KeyScope,
    Message,
    ResponseCacheStats,
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
    ToolSchema,
)

from .base import BaseSaver

logger = logging.getLogger(__name__)

DEFAULT_STORE_NAME = "response_cache.db"


def default_store_path() -> Path:
    return DEFAULT_CACHE_DIR / DEFAULT_STORE_NAME


class ResponseCacheConfig(BaseModel):
    """Configuration for ResponseCacheSaver."""

    store_path: Path = Field(default_factory=default_store_path, description="SQLite file, created if absent")
    compression_level: int = Field(default=3, ge=0, le=9, description="zlib level")
    busy_timeout_seconds: float = Field(default=5.0, gt=0, description="Wait for another writer's lock")


class ResponseCacheSaver(BaseSaver):
    """Disk-backed response cache. Owns its connection and every transaction."""

    name = "response-cache"
    stage = SaverStage.CALL_ELIMINATION
    priority = 2

    _SCHEMA_SQL = """
        CREATE TABLE IF NOT EXISTS responses (
            key BLOB PRIMARY KEY,
            value BLOB NOT NULL,
            created_at TEXT NOT NULL
        );
    """

    def __init__(self, config: ResponseCacheConfig | None = None, enabled: bool = True) -> None:
        super().__init__()
        self.config = config or ResponseCacheConfig()
        self.enabled = enabled
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._stats = ResponseCacheStats()

    @classmethod
    def disabled(cls) -> ResponseCacheSaver:
        """A cache that always misses and never touches the disk."""
        return cls(enabled=False)

    @property
    def store_path(self) -> Path:
        return self.config.store_path

    # ------------------------------------------------------------------
    # Keys and encoding
    # ------------------------------------------------------------------

    @staticmethod
    def build_key(messages: Sequence[Message], tools: Sequence[ToolSchema] = ()) -> CacheKey:
        parts: list[str] = []
        for msg in messages:
            parts.append(msg.role.value)
            parts.append(canonicalize(msg.content))
        for tool in tools:
            parts.append(f"tool:{tool.name}")
        return content_hash(KeyScope.RESPONSE, parts)

    def _compress(self, response: str) -> bytes:
        return zlib.compress(response.encode("utf-8"), self.config.compression_level)

    @staticmethod
    def _decompress(blob: bytes) -> str:
        try:
            return zlib.decompress(blob).decode("utf-8")
        except (zlib.error, UnicodeDecodeError, TypeError) as e:
            raise DecodeFailure(f"stored response is unreadable: {e}") from e

    # ------------------------------------------------------------------
    # Connection lifetime (callers hold self._lock)
    # ------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.store_path),
                timeout=self.config.busy_timeout_seconds,
                isolation_level=None,  # transactions are explicit
                check_same_thread=False,  # used from worker threads via asyncio.to_thread
            )
        except (OSError, sqlite3.Error) as e:
            raise CacheUnavailable(f"cannot open response cache at {self.store_path}: {e}") from e
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(self._SCHEMA_SQL)
        except sqlite3.Error as e:
            conn.close()
            raise CacheUnavailable(f"cannot initialize response cache at {self.store_path}: {e}") from e
        self._conn = conn
        return conn

    @contextmanager
    def _write_transaction(self, conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on exception."""
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> ResponseCacheSaver:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Cache operations
    # ------------------------------------------------------------------

    def store(self, key: CacheKey, response: str) -> None:
        """Upsert a response. Best effort: failures are logged and dropped."""
        key.require(KeyScope.RESPONSE)
        if not self.enabled:
            return
        blob = self._compress(response)
        created_at = datetime.now(timezone.utc).isoformat()
        with self._lock:
            try:
                conn = self._open()
                with self._write_transaction(conn):
                    conn.execute(
                        "INSERT INTO responses (key, value, created_at) VALUES (?, ?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET value = excluded.value, created_at = excluded.created_at",
                        (key.raw, blob, created_at),
                    )
                self._stats.stores += 1
            except (CacheUnavailable, sqlite3.Error) as e:
                self._stats.failures += 1
                logger.warning("response cache store failed for %s: %s", key, e)

    def lookup(self, key: CacheKey) -> str | None:
        """Fetch and decode a response. Any failure is a miss."""
        key.require(KeyScope.RESPONSE)
        if not self.enabled:
            return None
        with self._lock:
            try:
                conn = self._open()
                row = conn.execute("SELECT value FROM responses WHERE key = ?", (key.raw,)).fetchone()
                if row is None:
                    self._stats.misses += 1
                    return None
                response = self._decompress(row[0])
            except (CacheUnavailable, DecodeFailure, sqlite3.Error) as e:
                self._stats.failures += 1
                self._stats.misses += 1
                logger.warning("response cache lookup failed for %s: %s", key, e)
                return None
            self._stats.hits += 1
            return response

    def store_for(self, inp: SaverInput, response: str) -> CacheKey:
        key = self.build_key(inp.messages, inp.tools)
        self.store(key, response)
        return key

    def on_response(
        self,
        inp: SaverInput,
        response: str,
        input_tokens: int,
        output_tokens: int,
        ctx: SaverContext | None = None,
    ) -> None:
        self.store_for(inp, response)

    def stats(self) -> ResponseCacheStats:
        with self._lock:
            return self._stats.model_copy()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput:
        if not self.enabled:
            self._set_report(0, 0, "disabled")
            return SaverOutput.passthrough(inp)

        key = self.build_key(inp.messages, inp.tools)
        cached = await asyncio.to_thread(self.lookup, key)
        if cached is None:
            self._set_report(0, 0, "cache miss")
            return SaverOutput.passthrough(inp)

        total = inp.message_tokens
        self._set_report(total, 0, f"cache hit, saved {total} tokens")
        logger.debug("response cache hit %s, saved %d tokens", key, total)
        return SaverOutput.short_circuit(inp, cached)
