# chuk_ai_token_saver/pipeline.py
"""
PipelineScheduler - runs registered savers in stage, then priority, order.

One turn is one sequential walk: each saver's output is the next saver's
input. A saver that returns skipped=True ends the walk immediately and its
cached_response becomes the turn's answer; no later saver runs and the
model is not called. A saver that raises aborts the walk with a
PluginFailure naming the saver and its stage; the caller may retry with
that saver disabled.

Usage::

    pipeline = PipelineScheduler.default(governor=GovernorSaver())
    result = await pipeline.run(SaverInput(messages=msgs, tools=tools), ctx)
    if result.skipped:
        return result.response
    reply = await call_model(result.output)
    await pipeline.record_response(original_input, reply, usage.prompt, usage.completion)
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Collection, Iterable

from pydantic import BaseModel, Field

from chuk_ai_token_saver.errors import PluginFailure
from chuk_ai_token_saver.models import (
    SaverContext,
    SaverInput,
    SaverOutput,
    TokenSavingsReport,
)
from chuk_ai_token_saver.savers.base import ResponseRecorder, TokenSaver
from chuk_ai_token_saver.savers.dedup import DedupSaver
from chuk_ai_token_saver.savers.governor import GovernorSaver
from chuk_ai_token_saver.savers.output_truncator import OutputTruncatorSaver
from chuk_ai_token_saver.savers.prefix_cache import PrefixCacheSaver
from chuk_ai_token_saver.savers.response_cache import ResponseCacheSaver
from chuk_ai_token_saver.savers.semantic_cache import SemanticCacheSaver

logger = logging.getLogger(__name__)


class PipelineResult(BaseModel):
    """Outcome of one pipeline run."""

    output: SaverOutput
    short_circuited_by: str | None = None
    executed: list[str] = Field(default_factory=list, description="Saver names, in run order")
    reports: list[TokenSavingsReport] = Field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.output.skipped

    @property
    def response(self) -> str | None:
        return self.output.cached_response

    @property
    def tokens_saved(self) -> int:
        return sum(r.tokens_saved for r in self.reports)


class PipelineScheduler:
    """
    Ordered registry of savers.

    Savers are owned instances injected at construction or via register();
    two schedulers never share state unless they are handed the same saver.
    """

    def __init__(self, savers: Iterable[TokenSaver] | None = None) -> None:
        self._lock = threading.Lock()
        self._savers: list[TokenSaver] = []
        for saver in savers or ():
            self.register(saver)

    @classmethod
    def default(
        cls,
        response_cache: ResponseCacheSaver | None = None,
        governor: GovernorSaver | None = None,
    ) -> PipelineScheduler:
        """Caches, prefix stabilization and the text transforms."""
        savers: list[TokenSaver] = [
            SemanticCacheSaver(),
            response_cache or ResponseCacheSaver(),
            PrefixCacheSaver(),
            DedupSaver(),
            OutputTruncatorSaver(),
        ]
        if governor is not None:
            savers.append(governor)
        return cls(savers)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, saver: TokenSaver) -> None:
        if not isinstance(saver, TokenSaver):
            raise TypeError(f"{saver!r} does not implement the TokenSaver protocol")
        with self._lock:
            if any(s.name == saver.name for s in self._savers):
                raise ValueError(f"a saver named '{saver.name}' is already registered")
            self._savers.append(saver)

    def unregister(self, name: str) -> bool:
        with self._lock:
            for i, saver in enumerate(self._savers):
                if saver.name == name:
                    del self._savers[i]
                    return True
        return False

    def get(self, name: str) -> TokenSaver | None:
        with self._lock:
            return next((s for s in self._savers if s.name == name), None)

    @property
    def savers(self) -> list[TokenSaver]:
        """Savers in execution order. Ties keep registration order."""
        with self._lock:
            return sorted(self._savers, key=lambda s: (s.stage, s.priority))

    def __len__(self) -> int:
        with self._lock:
            return len(self._savers)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        inp: SaverInput,
        ctx: SaverContext | None = None,
        disabled: Collection[str] = (),
    ) -> PipelineResult:
        """Thread the input through every enabled saver."""
        ctx = ctx or SaverContext()
        ordered = [s for s in self.savers if s.name not in disabled]

        # Savers rewrite messages in place; the caller's input stays untouched
        current = inp.model_copy(deep=True)
        output = SaverOutput.passthrough(current)
        executed: list[str] = []
        for saver in ordered:
            try:
                output = await saver.process(current, ctx)
            except Exception as e:
                logger.error("saver '%s' failed in stage %s: %s", saver.name, saver.stage.name, e)
                raise PluginFailure(saver.name, saver.stage, str(e)) from e
            executed.append(saver.name)

            if output.skipped:
                logger.debug("pipeline short-circuited by '%s'", saver.name)
                return PipelineResult(
                    output=output,
                    short_circuited_by=saver.name,
                    executed=executed,
                    reports=[s.last_savings() for s in ordered if s.name in executed],
                )
            current = output.to_input()

        return PipelineResult(
            output=output,
            executed=executed,
            reports=[s.last_savings() for s in ordered],
        )

    async def record_response(
        self,
        inp: SaverInput,
        response: str,
        input_tokens: int = 0,
        output_tokens: int = 0,
        ctx: SaverContext | None = None,
    ) -> None:
        """
        Let caching savers learn a fresh model response.

        Pass the input as the caller built it, before the pipeline ran, so
        the keys match the next lookup. Failures are logged and ignored.
        """
        for saver in self.savers:
            if not isinstance(saver, ResponseRecorder):
                continue
            try:
                await asyncio.to_thread(saver.on_response, inp, response, input_tokens, output_tokens, ctx)
            except Exception as e:
                logger.warning("saver '%s' could not record response: %s", saver.name, e)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def savings_reports(self) -> list[TokenSavingsReport]:
        return [s.last_savings() for s in self.savers]

    def total_tokens_saved(self) -> int:
        return sum(r.tokens_saved for r in self.savings_reports())
