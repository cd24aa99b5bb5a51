# chuk_ai_token_saver/canonical.py
"""
Canonicalization and content hashing for cache keys.

canonicalize() strips volatile substrings (timestamps, ids, home paths,
commit hashes) so that two prompts that differ only in those substrings
produce the same cache key. Every cache computes its keys through
content_hash(), which adds a per-scope domain prefix and a boundary marker
per part so keys from different caches, or from differently split inputs,
can never collide.

Usage::

    from chuk_ai_token_saver.canonical import canonicalize, content_hash
    from chuk_ai_token_saver.models import KeyScope

    key = content_hash(KeyScope.SEMANTIC, [canonicalize(m.content) for m in msgs])
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

from chuk_ai_token_saver.models import CacheKey, KeyScope

# Applied in order. Each replacement token is immune to every pattern,
# which keeps canonicalize() idempotent.
_SUBSTITUTIONS: list[tuple[re.Pattern[str], str]] = [
    # ISO-8601 timestamps (date, T or whitespace, time, optional fraction/zone)
    (re.compile(r"\d{4}-\d{2}-\d{2}(?:T|\s+)\d{2}:\d{2}:\d{2}\S*"), "[T]"),
    # Unix epoch seconds, 2020s era
    (re.compile(r"\b1[6-7]\d{8}\b"), "[TS]"),
    # Home directories, POSIX and Windows forms
    (re.compile(r"(?:(?<!~)/home/\w+/|(?<!~)/Users/\w+/|(?<![\w~])[Cc]:\\Users\\\w+\\)"), "~/"),
    # RFC 4122 UUIDs
    (
        re.compile(r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b"),
        "[ID]",
    ),
    # SHA-1 sized hex hashes (git commits)
    (re.compile(r"\b[0-9a-f]{40}\b"), "[SHA]"),
]

_WHITESPACE = re.compile(r"\s+")

# Separates parts inside a hash so ["ab", "c"] and ["a", "bc"] differ
_PART_BOUNDARY = b"\x00\x1e"


def canonicalize(text: str) -> str:
    """Normalize volatile substrings and whitespace in text."""
    for pattern, replacement in _SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return _WHITESPACE.sub(" ", text).strip()


def content_hash(scope: KeyScope, parts: Iterable[str]) -> CacheKey:
    """
    SHA-256 over the given parts under the scope's hashing domain.

    Parts are hashed as given; callers canonicalize first where the
    scope requires it.
    """
    hasher = hashlib.sha256()
    hasher.update(f"chuk-token-saver:{scope.value}".encode())
    for part in parts:
        encoded = part.encode("utf-8")
        hasher.update(_PART_BOUNDARY)
        hasher.update(len(encoded).to_bytes(8, "big"))
        hasher.update(encoded)
    return CacheKey(scope=scope, digest=hasher.hexdigest())


def hash_text(text: str, scope: KeyScope = KeyScope.SEMANTIC) -> CacheKey:
    """Canonicalize a single string and hash it."""
    return content_hash(scope, [canonicalize(text)])
