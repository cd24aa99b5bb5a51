# tests/test_governor.py
"""
Tests for GovernorSaver.

Covers:
- Decision order (session budget, turn budget, per-tool limit, warning zone)
- Check-and-increment semantics: blocks are not counted as calls
- reset_turn() vs reset_session()
- Savings report after blocks, reset by each pipeline turn
- Pipeline passthrough
"""

import pytest

from chuk_ai_token_saver.models import SaverInput, Verdict
from chuk_ai_token_saver.savers.governor import GovernorConfig, GovernorDecision, GovernorSaver


def _governor(**overrides) -> GovernorSaver:
    return GovernorSaver(GovernorConfig(**overrides))


class TestDecisions:
    def test_first_call_allowed(self):
        decision = GovernorSaver().check_call("read")
        assert decision.verdict == Verdict.ALLOW
        assert decision.allowed

    def test_same_tool_limit(self):
        gov = _governor(max_same_tool_calls=3)
        verdicts = [gov.check_call("x").verdict for _ in range(3)]
        assert verdicts == [Verdict.ALLOW, Verdict.ALLOW, Verdict.ALLOW_WITH_WARNING]
        fourth = gov.check_call("x")
        assert fourth.verdict == Verdict.BLOCK
        assert "too many 'x' calls" in fourth.reason
        assert gov.blocked_count() == 1

    def test_other_tools_unaffected(self):
        gov = _governor(max_same_tool_calls=1)
        assert gov.check_call("a").verdict == Verdict.ALLOW_WITH_WARNING
        assert gov.check_call("a").verdict == Verdict.BLOCK
        assert gov.check_call("b").allowed

    def test_turn_budget(self):
        gov = _governor(max_calls_per_turn=2, max_same_tool_calls=10)
        assert gov.check_call("a").allowed
        assert gov.check_call("b").allowed
        blocked = gov.check_call("c")
        assert blocked.verdict == Verdict.BLOCK
        assert "turn" in blocked.reason

    def test_session_budget_checked_first(self):
        gov = _governor(max_total_calls=2, max_calls_per_turn=2, max_same_tool_calls=10)
        gov.check_call("a")
        gov.check_call("b")
        blocked = gov.check_call("c")
        assert blocked.verdict == Verdict.BLOCK
        assert "session" in blocked.reason

    def test_blocks_do_not_count_as_calls(self):
        gov = _governor(max_same_tool_calls=1, max_calls_per_turn=5)
        gov.check_call("x")
        for _ in range(3):
            gov.check_call("x")
        state = gov.state()
        assert state.total_calls == 1
        assert state.calls_this_turn == 1
        assert state.per_tool_calls == {"x": 1}
        assert state.blocked_calls == 3


class TestResets:
    def test_reset_turn_clears_only_turn_counter(self):
        gov = _governor(max_calls_per_turn=2, max_same_tool_calls=2, max_total_calls=10)
        gov.check_call("x")
        gov.check_call("x")
        assert gov.check_call("y").verdict == Verdict.BLOCK  # turn budget

        gov.reset_turn()
        assert gov.check_call("x").verdict == Verdict.BLOCK  # per-tool limit persists
        assert gov.check_call("y").allowed

        state = gov.state()
        assert state.calls_this_turn == 1
        assert state.total_calls == 3

    def test_session_total_persists_across_turns(self):
        gov = _governor(max_total_calls=2, max_calls_per_turn=1, max_same_tool_calls=10)
        gov.check_call("a")
        gov.reset_turn()
        gov.check_call("b")
        gov.reset_turn()
        assert gov.check_call("c").verdict == Verdict.BLOCK

    def test_reset_session(self):
        gov = _governor(max_same_tool_calls=1)
        gov.check_call("x")
        gov.check_call("x")
        gov.reset_session()
        assert gov.blocked_count() == 0
        assert gov.check_call("x").allowed


class TestSavings:
    def test_tokens_saved_per_block(self):
        gov = _governor(max_same_tool_calls=1, avg_tokens_per_call=250)
        gov.check_call("x")
        gov.check_call("x")
        gov.check_call("x")
        assert gov.tokens_saved() == 500
        report = gov.last_savings()
        assert report.technique == "governor"
        assert report.tokens_saved == 500
        assert "blocked 2" in report.description

    @pytest.mark.asyncio
    async def test_report_covers_only_blocks_since_last_turn(self):
        gov = _governor(max_same_tool_calls=1, avg_tokens_per_call=500)
        gov.check_call("x")
        gov.check_call("x")

        per_turn = []
        for _ in range(3):
            await gov.process(SaverInput())
            per_turn.append(gov.last_savings().tokens_saved)
            gov.reset_turn()

        assert per_turn == [500, 0, 0]
        assert gov.tokens_saved() == 500
        assert gov.blocked_count() == 1

    @pytest.mark.asyncio
    async def test_blocks_after_a_turn_start_a_new_tally(self):
        gov = _governor(max_same_tool_calls=1, avg_tokens_per_call=100)
        gov.check_call("x")
        gov.check_call("x")
        await gov.process(SaverInput())
        gov.check_call("x")
        gov.check_call("x")
        report = gov.last_savings()
        assert report.tokens_saved == 200
        assert "blocked 2" in report.description
        assert gov.tokens_saved() == 300

    def test_state_is_a_snapshot(self):
        gov = GovernorSaver()
        gov.check_call("x")
        snapshot = gov.state()
        snapshot.per_tool_calls["x"] = 99
        assert gov.state().per_tool_calls["x"] == 1


def test_decision_helpers():
    assert GovernorDecision.allow().allowed
    assert GovernorDecision.warn("careful").allowed
    assert not GovernorDecision.block("no").allowed


@pytest.mark.asyncio
async def test_process_is_passthrough():
    inp = SaverInput()
    out = await GovernorSaver().process(inp)
    assert not out.skipped
