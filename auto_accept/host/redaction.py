"""Redaction for session-log lines and summary payloads.

Only obvious secrets are removed: provider API keys, bearer tokens and email
addresses. Everything else passes through unchanged.
"""

from __future__ import annotations

import re

_API_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9_-]{16,}\b")
_BEARER_RE = re.compile(r"(authorization\s*[:=]\s*bearer\s+)[^\s]+", re.IGNORECASE)
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


def redact_text(text: str | None) -> str:
    if not isinstance(text, str) or not text:
        return ""
    out = _API_KEY_RE.sub("[REDACTED_KEY]", text)
    out = _BEARER_RE.sub(r"\1[REDACTED_TOKEN]", out)
    return _EMAIL_RE.sub("[REDACTED_EMAIL]", out)


def redact_and_cap(text: str | None, max_chars: int) -> str:
    return redact_text(text)[: max(0, int(max_chars))]


__all__ = ["redact_and_cap", "redact_text"]
