# chuk_ai_token_saver/savers/base.py
"""
Saver protocol and shared base class.

A saver is one step of the pipeline. The scheduler only needs the
plain data (name, stage, priority) to order savers and process() to run
them; everything else a saver does is private to it.

Usage::

    class MySaver(BaseSaver):
        name = "my-saver"
        stage = SaverStage.PRE_PROMPT
        priority = 50

        async def process(self, inp, ctx=None):
            ...
            self._set_report(before, after, "did a thing")
            return SaverOutput.passthrough(inp)
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from chuk_ai_token_saver.models import (
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
    TokenSavingsReport,
)


@runtime_checkable
class TokenSaver(Protocol):
    """
    Protocol implemented by every pipeline step.

    process() may raise; the scheduler turns any exception into a
    PluginFailure and aborts the turn.
    """

    name: str
    stage: SaverStage
    priority: int

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput: ...

    def last_savings(self) -> TokenSavingsReport: ...


@runtime_checkable
class ResponseRecorder(Protocol):
    """Optional hook for savers that learn from real model responses."""

    def on_response(
        self,
        inp: SaverInput,
        response: str,
        input_tokens: int,
        output_tokens: int,
        ctx: SaverContext | None = None,
    ) -> None: ...


class BaseSaver:
    """Holds the per-instance savings report behind a lock."""

    name: str = "saver"
    stage: SaverStage = SaverStage.PRE_PROMPT
    priority: int = 100

    def __init__(self) -> None:
        self._report_lock = threading.Lock()
        self._report = TokenSavingsReport(technique=self.name)

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput:
        raise NotImplementedError

    def last_savings(self) -> TokenSavingsReport:
        with self._report_lock:
            return self._report.model_copy()

    def _set_report(self, tokens_before: int, tokens_after: int, description: str, tokens_saved: int | None = None) -> None:
        saved = tokens_before - tokens_after if tokens_saved is None else tokens_saved
        report = TokenSavingsReport(
            technique=self.name,
            tokens_before=tokens_before,
            tokens_after=tokens_after,
            tokens_saved=max(saved, 0),
            description=description,
        )
        with self._report_lock:
            self._report = report

    def __repr__(self) -> str:
        return f"{type(self).__name__}(stage={self.stage.name}, priority={self.priority})"
