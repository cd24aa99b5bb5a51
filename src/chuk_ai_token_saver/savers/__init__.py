# chuk_ai_token_saver/savers/__init__.py
"""
Pipeline savers.

Components:
- SemanticCacheSaver: skip the call on a repeated user turn (in memory)
- ResponseCacheSaver: skip the call on a repeated exchange (on disk)
- GovernorSaver: per-session tool-call circuit breaker
- PrefixCacheSaver: stable prompt prefix for provider-side caching
- DedupSaver: collapse repeated tool results
- OutputTruncatorSaver: head + tail truncation of oversized tool output
"""

from .base import BaseSaver, ResponseRecorder, TokenSaver
from .dedup import DedupConfig, DedupSaver
from .governor import GovernorConfig, GovernorDecision, GovernorSaver
from .output_truncator import OutputTruncatorSaver, TruncatorConfig
from .prefix_cache import (
    ModelDiscount,
    PrefixCacheConfig,
    PrefixCacheSaver,
    default_discount_table,
)
from .response_cache import ResponseCacheConfig, ResponseCacheSaver
from .semantic_cache import SemanticCacheConfig, SemanticCacheSaver

__all__ = [
    # Protocol
    "BaseSaver",
    "ResponseRecorder",
    "TokenSaver",
    # Call elimination
    "SemanticCacheConfig",
    "SemanticCacheSaver",
    "ResponseCacheConfig",
    "ResponseCacheSaver",
    # Circuit breaker
    "GovernorConfig",
    "GovernorDecision",
    "GovernorSaver",
    # Prompt assembly
    "ModelDiscount",
    "PrefixCacheConfig",
    "PrefixCacheSaver",
    "default_discount_table",
    # Text transforms
    "DedupConfig",
    "DedupSaver",
    "OutputTruncatorSaver",
    "TruncatorConfig",
]
