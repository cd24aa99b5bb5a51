# chuk_ai_token_saver/external_tool.py
"""
Bounded execution of external helper programs (OCR, transcription, ...).

Savers that shell out must never hang a turn and must never fail it
because a helper is missing. run_external_tool() always returns; a missing
executable, a non-zero exit or a timeout come back as available=False and
the saver passes its input through unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Sequence

from pydantic import BaseModel

from chuk_ai_token_saver.errors import ExternalToolFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class ExternalToolResult(BaseModel):
    """Outcome of an external helper invocation."""

    available: bool
    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int | None = None
    error: str = ""

    @property
    def text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")


def tool_available(executable: str) -> bool:
    """True if the executable is on PATH."""
    return shutil.which(executable) is not None


async def _execute(argv: Sequence[str], input_bytes: bytes | None, timeout: float) -> ExternalToolResult:
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if input_bytes is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise ExternalToolFailure(f"{argv[0]} is not available: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(input_bytes), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ExternalToolFailure(f"{argv[0]} timed out after {timeout}s") from None

    if process.returncode != 0:
        raise ExternalToolFailure(
            f"{argv[0]} exited with {process.returncode}: {stderr.decode('utf-8', errors='replace').strip()[:200]}"
        )
    return ExternalToolResult(available=True, stdout=stdout, stderr=stderr, exit_code=process.returncode)


async def run_external_tool(
    argv: Sequence[str],
    input_bytes: bytes | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> ExternalToolResult:
    """
    Run argv with a hard timeout.

    Args:
        argv: Program and arguments. No shell is involved.
        input_bytes: Optional data written to the program's stdin.
        timeout: Seconds before the process is killed.

    Returns:
        ExternalToolResult; available=False on any failure.
    """
    if not argv:
        raise ValueError("argv must name a program")
    try:
        return await _execute(argv, input_bytes, timeout)
    except ExternalToolFailure as e:
        logger.warning("external tool unavailable: %s", e)
        return ExternalToolResult(available=False, error=str(e))
