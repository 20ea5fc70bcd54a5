"""Banned-command matching over literal and `/regex/flags` patterns."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

_LOGGER = logging.getLogger("auto_accept.surface.matcher")

_JS_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}
# Valid in JS but meaningless for a single boolean test.
_IGNORED_FLAGS = set("guy")


def compile_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a `/body/flags` pattern; None for literals and malformed regexes."""
    if not pattern.startswith("/"):
        return None
    last = pattern.rfind("/")
    if last <= 0:
        return None
    body = pattern[1:last]
    flags_raw = pattern[last + 1 :]
    flags = 0
    if not flags_raw:
        flags = re.IGNORECASE
    for ch in flags_raw:
        if ch in _JS_FLAGS:
            flags |= _JS_FLAGS[ch]
        elif ch not in _IGNORED_FLAGS:
            return None
    try:
        return re.compile(body, flags)
    except re.error:
        return None


def match_banned(text: str, patterns: Iterable[str] | None) -> str | None:
    """Return the first pattern that bans `text`, or None."""
    if not text or not patterns:
        return None
    lower = text.lower()
    for raw in patterns:
        pattern = (raw or "").strip()
        if not pattern:
            continue
        regex = compile_pattern(pattern)
        if regex is not None:
            if regex.search(text):
                return pattern
            continue
        # Literal, or a regex that failed to compile.
        if pattern.lower() in lower:
            return pattern
    return None


def is_banned(text: str, patterns: Iterable[str] | None) -> bool:
    return match_banned(text, patterns) is not None


__all__ = ["compile_pattern", "is_banned", "match_banned"]
