"""
Wildcard matching used by exclusion patterns and extension rules.

Patterns understand two metacharacters: ``*`` matches any run of
characters (including ``/``) and ``?`` matches exactly one character.
Matching is case-insensitive, anchored at both ends, and performed on
forward-slash paths.  Leading ``./`` and ``/`` are stripped from the
pattern so that configuration entries written as ``./bin`` or ``/bin``
both address the root-relative ``bin``.
"""

from __future__ import annotations

import re
from functools import lru_cache


def has_wildcard(pattern: str) -> bool:
    """Return True if ``pattern`` contains ``*`` or ``?``."""
    return "*" in pattern or "?" in pattern


def normalize_pattern(pattern: str) -> str:
    """Convert separators to ``/`` and drop leading ``./`` and ``/``."""
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./") or pattern.startswith("/"):
        pattern = pattern[1:]
    return pattern


@lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern[str]":
    regex = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{regex}$", re.IGNORECASE | re.DOTALL)


def wildcard_match(text: str, pattern: str) -> bool:
    """Return True if ``text`` matches ``pattern`` in full.

    An empty pattern never matches.
    """
    if not pattern:
        return False
    text = text.replace("\\", "/")
    pattern = normalize_pattern(pattern)
    return _compile(pattern).match(text) is not None
