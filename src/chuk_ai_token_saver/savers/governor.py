# chuk_ai_token_saver/savers/governor.py
"""
Governor - per-session circuit breaker for tool calls.

Stops runaway loops where the model keeps calling the same tool or burns
through its call budget without progress. check_call() is evaluated in a
fixed order:

1. session total >= max_total_calls       -> BLOCK
2. calls this turn >= max_calls_per_turn  -> BLOCK
3. this tool's calls >= max_same_tool_calls -> BLOCK
4. this tool's calls == max_same_tool_calls - 1 -> ALLOW_WITH_WARNING
5. otherwise                              -> ALLOW

An allowed call is counted in the same locked step as the decision. A
blocked call is not counted as a call; it increments the blocked counter
and credits avg_tokens_per_call to the savings estimate. The savings
report covers only the blocks since the previous process() call; the
session totals live in state().

The governor never raises. In the pipeline it is a pass-through; the
orchestrator calls check_call() before dispatching each tool and
reset_turn() at the start of every model response.
"""

from __future__ import annotations

import logging
import threading

from pydantic import BaseModel, Field

from chuk_ai_token_saver.models import (
    GovernorState,
    SaverContext,
    SaverInput,
    SaverOutput,
    SaverStage,
    Verdict,
)

from .base import BaseSaver

logger = logging.getLogger(__name__)


class GovernorConfig(BaseModel):
    """Limits for GovernorSaver."""

    max_total_calls: int = Field(default=50, ge=1, description="Tool calls allowed per session")
    max_calls_per_turn: int = Field(default=10, ge=1, description="Tool calls allowed per model response")
    max_same_tool_calls: int = Field(default=3, ge=1, description="Calls allowed to any one tool per session")
    avg_tokens_per_call: int = Field(default=500, ge=0, description="Tokens credited per blocked call")


class GovernorDecision(BaseModel):
    """Outcome of check_call()."""

    verdict: Verdict
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.verdict != Verdict.BLOCK

    @classmethod
    def allow(cls) -> GovernorDecision:
        return cls(verdict=Verdict.ALLOW)

    @classmethod
    def warn(cls, reason: str) -> GovernorDecision:
        return cls(verdict=Verdict.ALLOW_WITH_WARNING, reason=reason)

    @classmethod
    def block(cls, reason: str) -> GovernorDecision:
        return cls(verdict=Verdict.BLOCK, reason=reason)


class GovernorSaver(BaseSaver):
    """Tool-call circuit breaker. One instance per session."""

    name = "governor"
    stage = SaverStage.PRE_CALL
    priority = 5

    def __init__(self, config: GovernorConfig | None = None) -> None:
        super().__init__()
        self.config = config or GovernorConfig()
        self._lock = threading.Lock()
        self._state = GovernorState()
        # Blocks not yet published by process()
        self._pending_blocked = 0
        self._pending_saved = 0

    def check_call(self, tool_name: str) -> GovernorDecision:
        """Decide on a tool call and, unless blocked, count it."""
        cfg = self.config
        with self._lock:
            state = self._state
            tool_calls = state.per_tool_calls.get(tool_name, 0)

            if state.total_calls >= cfg.max_total_calls:
                decision = GovernorDecision.block(
                    f"session tool budget exhausted ({state.total_calls}/{cfg.max_total_calls})"
                )
            elif state.calls_this_turn >= cfg.max_calls_per_turn:
                decision = GovernorDecision.block(
                    f"turn tool budget exhausted ({state.calls_this_turn}/{cfg.max_calls_per_turn})"
                )
            elif tool_calls >= cfg.max_same_tool_calls:
                decision = GovernorDecision.block(
                    f"too many '{tool_name}' calls ({tool_calls}/{cfg.max_same_tool_calls})"
                )
            elif tool_calls == cfg.max_same_tool_calls - 1:
                decision = GovernorDecision.warn(
                    f"last allowed '{tool_name}' call ({tool_calls + 1}/{cfg.max_same_tool_calls})"
                )
            else:
                decision = GovernorDecision.allow()

            if decision.allowed:
                state.total_calls += 1
                state.calls_this_turn += 1
                state.per_tool_calls[tool_name] = tool_calls + 1
                return decision

            state.blocked_calls += 1
            state.tokens_saved += cfg.avg_tokens_per_call
            self._pending_blocked += 1
            self._pending_saved += cfg.avg_tokens_per_call
            self._report_blocks(self._pending_blocked, self._pending_saved)

        logger.info("governor blocked '%s': %s", tool_name, decision.reason)
        return decision

    def reset_turn(self) -> None:
        """Start a new model response. Session and per-tool counts persist."""
        with self._lock:
            self._state.calls_this_turn = 0

    def reset_session(self) -> None:
        """Forget everything, for reuse with a new session."""
        with self._lock:
            self._state = GovernorState()
            self._pending_blocked = 0
            self._pending_saved = 0
        self._set_report(0, 0, "")

    def state(self) -> GovernorState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def blocked_count(self) -> int:
        with self._lock:
            return self._state.blocked_calls

    def tokens_saved(self) -> int:
        with self._lock:
            return self._state.tokens_saved

    def _report_blocks(self, blocked: int, saved: int) -> None:
        self._set_report(saved, 0, f"blocked {blocked} redundant tool calls, saved ~{saved} tokens")

    async def process(self, inp: SaverInput, ctx: SaverContext | None = None) -> SaverOutput:
        """Publish the blocks since the last turn, then start a fresh tally."""
        with self._lock:
            self._report_blocks(self._pending_blocked, self._pending_saved)
            self._pending_blocked = 0
            self._pending_saved = 0
        return SaverOutput.passthrough(inp)
