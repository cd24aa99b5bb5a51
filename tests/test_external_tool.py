# tests/test_external_tool.py
"""
Tests for run_external_tool().

Covers:
- Successful run with stdout captured and stdin forwarded
- Non-zero exit, missing executable and timeout reported as unavailable
- Empty argv rejected
"""

import sys

import pytest

from chuk_ai_token_saver.external_tool import run_external_tool, tool_available


@pytest.mark.asyncio
async def test_captures_stdout():
    result = await run_external_tool([sys.executable, "-c", "print('hello')"])
    assert result.available
    assert result.exit_code == 0
    assert result.text.strip() == "hello"


@pytest.mark.asyncio
async def test_forwards_stdin():
    script = "import sys; sys.stdout.write(sys.stdin.read().upper())"
    result = await run_external_tool([sys.executable, "-c", script], input_bytes=b"scan me")
    assert result.available
    assert result.stdout == b"SCAN ME"


@pytest.mark.asyncio
async def test_nonzero_exit_is_unavailable():
    script = "import sys; sys.stderr.write('bad input'); sys.exit(3)"
    result = await run_external_tool([sys.executable, "-c", script])
    assert not result.available
    assert "exited with 3" in result.error
    assert "bad input" in result.error


@pytest.mark.asyncio
async def test_missing_executable_is_unavailable():
    result = await run_external_tool(["definitely-not-a-real-ocr-binary"])
    assert not result.available
    assert "not available" in result.error


@pytest.mark.asyncio
async def test_timeout_kills_process():
    result = await run_external_tool([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)
    assert not result.available
    assert "timed out" in result.error


@pytest.mark.asyncio
async def test_empty_argv_rejected():
    with pytest.raises(ValueError):
        await run_external_tool([])


def test_tool_available():
    assert not tool_available("definitely-not-a-real-ocr-binary")
