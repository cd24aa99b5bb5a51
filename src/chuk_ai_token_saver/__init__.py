# chuk_ai_token_saver/__init__.py
"""
chuk-ai-token-saver: token-reducing middleware between an agent and its LLM.

A PipelineScheduler runs pluggable savers around every model call:
- call elimination through an in-memory semantic cache and a persistent
  response cache
- a tool-call governor for runaway loops
- prefix stabilization so provider-side prompt caching hits
- text transforms that shrink history and tool output
"""

from chuk_ai_token_saver.canonical import canonicalize, content_hash, hash_text
from chuk_ai_token_saver.errors import (
    CacheUnavailable,
    DecodeFailure,
    ExternalToolFailure,
    PluginFailure,
    SaverError,
)
from chuk_ai_token_saver.external_tool import ExternalToolResult, run_external_tool, tool_available
from chuk_ai_token_saver.models import (
    CachedEntry,
    CacheKey,
    GovernorState,
    KeyScope,
    MediaItem,
    Message,
    MessageRole,
    Modality,
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
    TokenSavingsReport,
    ToolSchema,
    Verdict,
)
from chuk_ai_token_saver.pipeline import PipelineResult, PipelineScheduler
from chuk_ai_token_saver.savers import (
    BaseSaver,
    DedupSaver,
    GovernorConfig,
    GovernorDecision,
    GovernorSaver,
    OutputTruncatorSaver,
    PrefixCacheConfig,
    PrefixCacheSaver,
    ResponseCacheConfig,
    ResponseCacheSaver,
    SemanticCacheConfig,
    SemanticCacheSaver,
    TokenSaver,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Pipeline
    "PipelineResult",
    "PipelineScheduler",
    # Savers
    "BaseSaver",
    "DedupSaver",
    "GovernorConfig",
    "GovernorDecision",
    "GovernorSaver",
    "OutputTruncatorSaver",
    "PrefixCacheConfig",
    "PrefixCacheSaver",
    "ResponseCacheConfig",
    "ResponseCacheSaver",
    "SemanticCacheConfig",
    "SemanticCacheSaver",
    "TokenSaver",
    # Models
    "CachedEntry",
    "CacheKey",
    "GovernorState",
    "KeyScope",
    "MediaItem",
    "Message",
    "MessageRole",
    "Modality",
    "SaverContext",
    "SaverInput",
    "SaverOutput",
    "SaverStage",
    "TokenSavingsReport",
    "ToolSchema",
    "Verdict",
    # Canonicalization
    "canonicalize",
    "content_hash",
    "hash_text",
    # External tools
    "ExternalToolResult",
    "run_external_tool",
    "tool_available",
    # Errors
    "CacheUnavailable",
    "DecodeFailure",
    "ExternalToolFailure",
    "PluginFailure",
    "SaverError",
]
