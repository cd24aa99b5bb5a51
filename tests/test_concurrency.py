# tests/test_concurrency.py
"""
Tests for shared-state safety under concurrent callers.

Covers:
- Governor: check-and-increment is atomic, the per-tool limit is exact
- SemanticCache: concurrent store/lookup never exceeds capacity
- PrefixCache: concurrent turns keep a consistent last-hash slot
- ResponseCache: threads sharing a handle, and two handles on one file
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from chuk_ai_token_saver.canonical import content_hash
from chuk_ai_token_saver.models import KeyScope, Message, SaverContext, SaverInput, Verdict
from chuk_ai_token_saver.savers.governor import GovernorConfig, GovernorSaver
from chuk_ai_token_saver.savers.prefix_cache import PrefixCacheSaver
from chuk_ai_token_saver.savers.response_cache import ResponseCacheConfig, ResponseCacheSaver
from chuk_ai_token_saver.savers.semantic_cache import SemanticCacheConfig, SemanticCacheSaver

THREADS = 8


def _run_together(fn, count: int = THREADS) -> list:
    """Start count workers at the same moment and collect their results."""
    barrier = threading.Barrier(count)

    def worker(i):
        barrier.wait()
        return fn(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(worker, range(count)))


class TestGovernor:
    def test_same_tool_limit_is_exact(self):
        gov = GovernorSaver(GovernorConfig(max_same_tool_calls=3, max_calls_per_turn=100, max_total_calls=100))
        verdicts = _run_together(lambda _: gov.check_call("x").verdict, count=20)

        allowed = [v for v in verdicts if v != Verdict.BLOCK]
        assert len(allowed) == 3
        assert verdicts.count(Verdict.ALLOW_WITH_WARNING) == 1
        assert gov.blocked_count() == 17

        state = gov.state()
        assert state.total_calls == 3
        assert state.per_tool_calls == {"x": 3}

    def test_turn_budget_is_exact(self):
        gov = GovernorSaver(GovernorConfig(max_calls_per_turn=5, max_same_tool_calls=100, max_total_calls=100))
        decisions = _run_together(lambda i: gov.check_call(f"tool-{i}"), count=16)
        assert sum(d.allowed for d in decisions) == 5
        assert gov.state().calls_this_turn == 5


class TestSemanticCache:
    def test_capacity_holds_under_contention(self):
        cache = SemanticCacheSaver(SemanticCacheConfig(capacity=16))

        def worker(i):
            for n in range(200):
                key = content_hash(KeyScope.SEMANTIC, [f"worker-{i}", str(n)])
                cache.store(key, f"answer {i}/{n}", input_tokens=10, output_tokens=5)
                cache.lookup(key)
                assert cache.size <= 16

        _run_together(worker)

        stats = cache.stats()
        assert stats.size <= 16
        assert stats.hits + stats.misses == THREADS * 200
        assert stats.evictions == THREADS * 200 - stats.size


class TestPrefixCache:
    def test_concurrent_turns_then_hit(self):
        saver = PrefixCacheSaver()
        ctx = SaverContext(model="gpt-4o")

        def turn() -> SaverInput:
            return SaverInput(
                messages=[
                    Message(role="user", content="hello"),
                    Message(role="system", content="s" * 4096),
                ]
            )

        _run_together(lambda _: asyncio.run(saver.process(turn(), ctx)))

        asyncio.run(saver.process(turn(), ctx))
        assert saver.last_savings().description.startswith("prefix cache hit")


class TestResponseCache:
    def test_threads_share_one_handle(self, response_cache):
        def worker(i):
            for n in range(25):
                key = ResponseCacheSaver.build_key([Message(role="user", content=f"q {i} {n}")])
                response_cache.store(key, f"a {i} {n}")
                assert response_cache.lookup(key) == f"a {i} {n}"

        _run_together(worker)

        stats = response_cache.stats()
        assert stats.failures == 0
        assert stats.stores == THREADS * 25

    def test_two_handles_write_same_file(self, tmp_path):
        config = ResponseCacheConfig(store_path=tmp_path / "shared.db")
        warmup_key = ResponseCacheSaver.build_key([])
        with ResponseCacheSaver(config) as first, ResponseCacheSaver(config) as second:
            # open both connections up front so only the writes race
            first.lookup(warmup_key)
            second.lookup(warmup_key)
            handles = [first, second]

            def worker(i):
                handle = handles[i % 2]
                for n in range(25):
                    key = ResponseCacheSaver.build_key([Message(role="user", content=f"q {i} {n}")])
                    handle.store(key, f"a {i} {n}")

            _run_together(worker)

            assert first.stats().failures == 0
            assert second.stats().failures == 0
            for i in range(THREADS):
                key = ResponseCacheSaver.build_key([Message(role="user", content=f"q {i} 24")])
                assert handles[(i + 1) % 2].lookup(key) == f"a {i} 24"

    @pytest.mark.asyncio
    async def test_gathered_pipeline_lookups(self, response_cache):
        inputs = [SaverInput(messages=[Message(role="user", content=f"question {i}")]) for i in range(10)]
        for inp in inputs[:5]:
            response_cache.store_for(inp, "cached")

        outputs = await asyncio.gather(*(response_cache.process(inp) for inp in inputs))

        assert [o.skipped for o in outputs] == [True] * 5 + [False] * 5
        assert response_cache.stats().failures == 0
