"""Automation session bookkeeping and the bounded, redacted session log."""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .redaction import redact_text

SESSION_LOG_LIMIT = 300
LOG_LINE_MAX_CHARS = 500

_counter = itertools.count(1)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Session:
    session_id: str
    started_at: str
    ide: str
    background_mode: bool = False
    ended_at: str | None = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def to_meta(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "ide": self.ide,
            "backgroundMode": self.background_mode,
        }


class SessionLog(logging.Handler):
    """Bounded ring of log lines for the current session.

    Lines are redacted and capped when appended, so nothing sensitive is ever held.
    Attached to the `auto_accept` logger while a session is open.
    """

    def __init__(self, limit: int = SESSION_LOG_LIMIT, max_chars: int = LOG_LINE_MAX_CHARS):
        super().__init__(level=logging.INFO)
        self.max_chars = max_chars
        self._lines: deque[str] = deque(maxlen=limit)
        self._guard = threading.Lock()
        self.session: Session | None = None
        self.setFormatter(logging.Formatter("[%(asctime)s] %(message)s", datefmt="%H:%M:%S"))

    def append(self, line: str) -> None:
        if not line:
            return
        text = redact_text(str(line))[: self.max_chars]
        with self._guard:
            self._lines.append(text)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.append(self.format(record))
        except Exception:  # noqa: BLE001
            self.handleError(record)

    def lines(self) -> list[str]:
        with self._guard:
            return list(self._lines)

    def clear(self) -> None:
        with self._guard:
            self._lines.clear()

    def ensure_session_started(self, ide: str, *, background_mode: bool = False) -> Session:
        """Open a session unless one is already open; idempotent."""
        if self.session is not None and self.session.is_open:
            return self.session
        session_id = f"session-{int(time.time() * 1000)}-{next(_counter)}"
        self.session = Session(
            session_id=session_id,
            started_at=_iso_now(),
            ide=(ide or "unknown").lower(),
            background_mode=bool(background_mode),
        )
        self.clear()
        self.append(f"[SESSION] Started {session_id}")
        return self.session

    def end_session(self) -> Session | None:
        session = self.session
        if session is None or not session.is_open:
            return None
        session.ended_at = _iso_now()
        self.append(f"[SESSION] Ended {session.session_id}")
        return session

    def session_meta(self, ide: str, background_mode: bool) -> dict[str, Any]:
        if self.session is not None:
            meta = self.session.to_meta()
        else:
            meta = {
                "sessionId": f"session-{int(time.time() * 1000)}-ad-hoc",
                "startedAt": None,
                "endedAt": None,
                "ide": (ide or "unknown").lower(),
                "backgroundMode": bool(background_mode),
            }
        meta["generatedAt"] = _iso_now()
        return meta


__all__ = ["LOG_LINE_MAX_CHARS", "SESSION_LOG_LIMIT", "Session", "SessionLog"]
