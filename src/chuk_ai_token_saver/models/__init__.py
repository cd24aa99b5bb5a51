# chuk_ai_token_saver/models/__init__.py
"""
Data model for the token saver pipeline.

- Content: Message, ToolSchema, MediaItem, SaverInput/SaverOutput, SaverContext
- Reports: TokenSavingsReport, CachedEntry, CacheKey and component stats
- Enums: MessageRole, Modality, SaverStage, KeyScope, Verdict
"""

from .content import (
    CHARS_PER_TOKEN,
    MediaItem,
    Message,
    SaverContext,
    SaverInput,
    SaverOutput,
    ToolSchema,
    estimate_tokens,
)
from .enums import KeyScope, MessageRole, Modality, SaverStage, Verdict
from .stats import (
    CachedEntry,
    CacheKey,
    DictCompatModel,
    GovernorState,
    ResponseCacheStats,
    SemanticCacheStats,
    TokenSavingsReport,
)

__all__ = [
    # Enums
    "KeyScope",
    "MessageRole",
    "Modality",
    "SaverStage",
    "Verdict",
    # Content
    "CHARS_PER_TOKEN",
    "MediaItem",
    "Message",
    "SaverContext",
    "SaverInput",
    "SaverOutput",
    "ToolSchema",
    "estimate_tokens",
    # Reports and stats
    "CachedEntry",
    "CacheKey",
    "DictCompatModel",
    "GovernorState",
    "ResponseCacheStats",
    "SemanticCacheStats",
    "TokenSavingsReport",
]
