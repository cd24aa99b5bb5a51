# chuk_ai_token_saver/models/stats.py
"""Savings reports, cache keys and component statistics."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import KeyScope

_HEX_256 = re.compile(r"^[0-9a-f]{64}$")


class DictCompatModel(BaseModel):
    """Model that also supports ``obj["key"]`` and ``"key" in obj``."""

    def __getitem__(self, key: str) -> Any:
        return getattr(self, key)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            return key in type(self).model_fields
        return False


class TokenSavingsReport(DictCompatModel):
    """Savings from a saver's most recent invocation. Overwritten, never appended."""

    technique: str = ""
    tokens_before: int = 0
    tokens_after: int = 0
    tokens_saved: int = 0
    description: str = ""


class CacheKey(BaseModel):
    """A 256-bit content hash bound to the hashing domain that produced it."""

    model_config = ConfigDict(frozen=True)

    scope: KeyScope
    digest: str

    @field_validator("digest")
    @classmethod
    def _check_digest(cls, v: str) -> str:
        if not _HEX_256.match(v):
            raise ValueError("digest must be 64 lowercase hex characters")
        return v

    def require(self, scope: KeyScope) -> CacheKey:
        """Return self, or raise if this key belongs to another cache."""
        if self.scope != scope:
            raise ValueError(f"{self.scope.value} key cannot be used with the {scope.value} cache")
        return self

    @property
    def raw(self) -> bytes:
        return bytes.fromhex(self.digest)

    def __str__(self) -> str:
        return f"{self.scope.value}:{self.digest[:12]}"


class CachedEntry(BaseModel):
    """A remembered response plus the token counts it cost originally."""

    response: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def tokens_saved(self) -> int:
        return self.input_tokens + self.output_tokens


class SemanticCacheStats(BaseModel):
    """Statistics for the in-memory semantic cache."""

    hits: int = Field(default=0, description="Lookups that found a live entry")
    misses: int = Field(default=0, description="Lookups that found nothing")
    evictions: int = Field(default=0, description="Entries dropped for capacity")
    expirations: int = Field(default=0, description="Entries dropped for age")
    size: int = Field(default=0, description="Current number of entries")
    max_size: int = Field(default=0, description="Capacity")
    total_tokens_saved: int = Field(default=0)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ResponseCacheStats(BaseModel):
    """Statistics for the persistent response cache."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    failures: int = Field(default=0, description="I/O or decode errors absorbed as misses")


class GovernorState(BaseModel):
    """Per-session tool-call accounting."""

    total_calls: int = 0
    calls_this_turn: int = 0
    per_tool_calls: dict[str, int] = Field(default_factory=dict)
    blocked_calls: int = 0
    tokens_saved: int = 0
