# chuk_ai_token_saver/models/content.py
"""
Request containers threaded through the pipeline.

Token counts on Message and ToolSchema are computed from the current
content, so a transform that rewrites content can never leave a stale count.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, computed_field

from chuk_ai_token_saver.config import DEFAULT_MODEL

from .enums import MessageRole, Modality

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four characters."""
    return len(text) // CHARS_PER_TOKEN


class MediaItem(BaseModel):
    """A non-text attachment. Producers supply their own token estimate."""

    modality: Modality
    uri: str | None = None
    text: str | None = Field(default=None, description="Inline text, caption or transcript")
    token_count: int = Field(default=0, ge=0)


class Message(BaseModel):
    """A single conversation message."""

    role: MessageRole
    content: str = ""
    media: list[MediaItem] = Field(default_factory=list)
    tool_call_id: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def token_count(self) -> int:
        return estimate_tokens(self.content) + sum(m.token_count for m in self.media)


class ToolSchema(BaseModel):
    """A tool definition offered to the model."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)

    def parameters_json(self) -> str:
        """Serialize parameters exactly as they are currently ordered."""
        return json.dumps(self.parameters, separators=(",", ":"), ensure_ascii=False)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def token_count(self) -> int:
        return (len(self.name) + len(self.description) + len(self.parameters_json())) // CHARS_PER_TOKEN


class SaverContext(BaseModel):
    """Per-turn information available to every saver."""

    model: str = DEFAULT_MODEL
    session_id: str = ""
    turn: int = 0


class SaverInput(BaseModel):
    """What a saver receives: messages, tools and loose media."""

    messages: list[Message] = Field(default_factory=list)
    tools: list[ToolSchema] = Field(default_factory=list)
    media: list[MediaItem] = Field(default_factory=list)

    @property
    def message_tokens(self) -> int:
        return sum(m.token_count for m in self.messages)

    @property
    def total_tokens(self) -> int:
        return (
            self.message_tokens
            + sum(t.token_count for t in self.tools)
            + sum(m.token_count for m in self.media)
        )


class SaverOutput(SaverInput):
    """What a saver returns. skipped=True short-circuits the pipeline."""

    skipped: bool = False
    cached_response: str | None = None

    @classmethod
    def passthrough(cls, inp: SaverInput) -> SaverOutput:
        return cls(messages=inp.messages, tools=inp.tools, media=inp.media)

    @classmethod
    def short_circuit(cls, inp: SaverInput, response: str) -> SaverOutput:
        return cls(
            messages=inp.messages,
            tools=inp.tools,
            media=inp.media,
            skipped=True,
            cached_response=response,
        )

    def to_input(self) -> SaverInput:
        """Strip the short-circuit fields so the output can feed the next saver."""
        return SaverInput(messages=self.messages, tools=self.tools, media=self.media)
