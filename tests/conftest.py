# tests/conftest.py
"""
Shared pytest fixtures and configuration for chuk_ai_token_saver tests.
"""

import logging

import pytest

from chuk_ai_token_saver.models import Message, MessageRole, SaverInput, ToolSchema
from chuk_ai_token_saver.savers.response_cache import ResponseCacheConfig, ResponseCacheSaver

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("chuk_ai_token_saver").setLevel(logging.DEBUG)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_message():
    def _make(role: str = "user", content: str = "hello", tool_call_id: str | None = None) -> Message:
        return Message(role=MessageRole(role), content=content, tool_call_id=tool_call_id)

    return _make


@pytest.fixture
def conversation(make_message):
    """A small system + user exchange with two tools."""
    return SaverInput(
        messages=[
            make_message("system", "You are a careful coding assistant."),
            make_message("user", "Why does the build fail at 2026-03-01T10:00:00Z?"),
        ],
        tools=[
            ToolSchema(
                name="read_file",
                description="Read a file",
                parameters={"type": "object", "properties": {"path": {"type": "string"}}},
            ),
            ToolSchema(
                name="bash",
                description="Run a command",
                parameters={"properties": {"command": {"type": "string"}}, "type": "object"},
            ),
        ],
    )


@pytest.fixture
def response_cache(tmp_path):
    cache = ResponseCacheSaver(ResponseCacheConfig(store_path=tmp_path / "cache" / "responses.db"))
    yield cache
    cache.close()


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
