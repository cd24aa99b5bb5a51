# chuk_ai_token_saver/errors.py
"""
Error types for the token saver pipeline.

Only PluginFailure ever reaches the caller of PipelineScheduler.run().
The cache and external-tool errors are raised inside their components and
converted to a miss (or "unavailable") at the component boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from chuk_ai_token_saver.models.enums import SaverStage


class SaverError(Exception):
    """Base class for all token saver errors."""


class PluginFailure(SaverError):
    """A saver's own logic failed; the turn's pipeline was aborted."""

    def __init__(self, saver_name: str, stage: SaverStage, message: str = "") -> None:
        self.saver_name = saver_name
        self.stage = stage
        detail = f": {message}" if message else ""
        super().__init__(f"saver '{saver_name}' failed in stage {stage.name}{detail}")


class CacheUnavailable(SaverError):
    """The persistent store could not be opened or created."""


class DecodeFailure(SaverError):
    """Stored bytes could not be decompressed or decoded."""


class ExternalToolFailure(SaverError):
    """An external helper process is missing, timed out or exited non-zero."""
