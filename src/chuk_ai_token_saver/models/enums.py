# chuk_ai_token_saver/models/enums.py
"""Enums shared across the token saver pipeline."""

from enum import Enum, IntEnum


class MessageRole(str, Enum):
    """Message roles in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Modality(str, Enum):
    """Kinds of media that can ride along with a request."""

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    MESH = "mesh"


class SaverStage(IntEnum):
    """
    Pipeline stages, in execution order.

    The integer value is the sort key used by the scheduler.
    """

    CALL_ELIMINATION = 0  # skip the model call entirely (caches)
    PRE_CALL = 1  # routing and circuit breaking
    PROMPT_ASSEMBLY = 2  # stable prefix layout
    PRE_PROMPT = 3  # content compression before sending
    INTER_TURN = 4  # history maintenance between turns
    POST_RESPONSE = 5  # cleanup of tool outputs and responses


class KeyScope(str, Enum):
    """Hashing domains. Keys from one scope are never valid in another."""

    SEMANTIC = "semantic"  # user turns only
    RESPONSE = "response"  # full exchange: roles, contents, tool names
    PREFIX = "prefix"  # system messages + tool schemas


class Verdict(str, Enum):
    """Governor decision outcomes."""

    ALLOW = "allow"
    ALLOW_WITH_WARNING = "allow_with_warning"
    BLOCK = "block"
