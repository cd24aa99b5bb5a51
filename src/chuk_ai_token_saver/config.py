# chuk_ai_token_saver/config.py
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Model name used when a turn does not supply one (drives prefix-cache discounts)
DEFAULT_MODEL = os.getenv("CHUK_TOKEN_SAVER_MODEL", "gpt-4o-mini")

# Per-user directory for the persistent response cache
DEFAULT_CACHE_DIR = Path(
    os.getenv(
        "CHUK_TOKEN_SAVER_CACHE_DIR",
        str(Path.home() / ".cache" / "chuk_ai_token_saver"),
    )
)
