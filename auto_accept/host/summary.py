"""Session recap: poll surfaces for widget clicks, call the summary API, push results back.

The surface latches a click into `pending_summary_request`; the host consumes it
on its sync tick, runs one request at a time, and answers through
`setSummaryResult` with a tagged payload (`loading` / `success` / `error`).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..config import AutoAcceptConfig
from ..http_client import HttpClientError, http_post_json
from ..surface.controller import VISIBLE_TEXT_MAX_CHARS
from .bridge import Bridge, BridgeError
from .redaction import redact_and_cap
from .session_log import LOG_LINE_MAX_CHARS, SessionLog
from .store import KEY_USER_ID, StateStore
from .ui import HostUi

_LOGGER = logging.getLogger("auto_accept.host.summary")

FAILED_MESSAGE = "Failed to generate summary. Please try again."
NOT_ENOUGH_DATA_MESSAGE = "Not enough session data to summarize yet."
STAT_KEYS = ("clicks", "blocked", "fileEdits", "terminalCommands")

Poster = Callable[[str, dict[str, Any], AutoAcceptConfig, float], dict[str, Any]]


def _default_poster(url: str, payload: dict[str, Any], config: AutoAcceptConfig, timeout: float) -> dict[str, Any]:
    return http_post_json(url, payload, config, timeout=timeout)


class SummaryError(Exception):
    """Summary generation failed; `str()` is the user-facing reason."""


@dataclass
class SummaryOutcome:
    summary: str = ""
    generated_at: str = ""
    session_id: str = ""
    in_progress: bool = False


def normalize_stats(raw: Any) -> dict[str, int]:
    base = raw if isinstance(raw, dict) else {}
    out: dict[str, int] = {}
    for key in STAT_KEYS:
        try:
            out[key] = int(base.get(key) or 0)
        except (TypeError, ValueError):
            out[key] = 0
    return out


def has_meaningful_input(stats: dict[str, int], logs: list[str], text: str) -> bool:
    return sum(stats.values()) > 0 or bool(logs) or bool(text.strip())


class SummaryPipeline:
    def __init__(
        self,
        bridge: Bridge,
        session_log: SessionLog,
        store: StateStore,
        config: AutoAcceptConfig,
        ui: HostUi,
        *,
        poster: Poster = _default_poster,
    ):
        self.bridge = bridge
        self.session_log = session_log
        self.store = store
        self.config = config
        self.ui = ui
        self.poster = poster
        self.background = False
        self.last: SummaryOutcome | None = None
        self._in_flight = False
        self._guard = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _push(self, target_id: str | None, payload: dict[str, Any]) -> None:
        if not target_id:
            return
        try:
            self.bridge.evaluate(target_id, "setSummaryResult", payload)
        except BridgeError as exc:
            _LOGGER.warning("Could not push summary state to %s: %s", target_id, exc)

    def _collect_stats(self) -> dict[str, int]:
        totals = dict.fromkeys(STAT_KEYS, 0)
        for target_id in self.bridge.targets():
            try:
                stats = normalize_stats(self.bridge.evaluate(target_id, "getStats"))
            except BridgeError as exc:
                _LOGGER.debug("getStats failed on %s: %s", target_id, exc)
                continue
            for key in STAT_KEYS:
                totals[key] += stats[key]
        return totals

    def _visible_text(self, target_id: str | None) -> str:
        candidates = [target_id] if target_id else self.bridge.targets()
        for tid in candidates:
            try:
                text = self.bridge.evaluate(tid, "getVisibleConversationText", VISIBLE_TEXT_MAX_CHARS)
            except BridgeError as exc:
                _LOGGER.debug("getVisibleConversationText failed on %s: %s", tid, exc)
                continue
            if isinstance(text, str) and text.strip():
                return text
        return ""

    def build_payload(self, stats: dict[str, int], visible_text: str) -> dict[str, Any]:
        logs = [redact_and_cap(line, LOG_LINE_MAX_CHARS) for line in self.session_log.lines()]
        return {
            "userId": self.store.get(KEY_USER_ID) or None,
            "sessionMeta": self.session_log.session_meta(self.config.ide, self.background),
            "stats": normalize_stats(stats),
            "logs": logs,
            "visibleConversationText": redact_and_cap(visible_text, VISIBLE_TEXT_MAX_CHARS),
        }

    def generate(self, target_id: str | None = None, *, silent: bool = False, raise_errors: bool = False) -> SummaryOutcome:
        with self._guard:
            if self._in_flight:
                busy = True
            else:
                busy = False
                self._in_flight = True
        if busy:
            if not silent:
                self.ui.notify("Auto Accept: Summary generation is already in progress.")
            last = self.last or SummaryOutcome()
            return SummaryOutcome(
                summary=last.summary, generated_at=last.generated_at, session_id=last.session_id, in_progress=True
            )

        try:
            self._push(target_id, {"status": "loading"})
            payload = self.build_payload(self._collect_stats(), self._visible_text(target_id))
            if not has_meaningful_input(payload["stats"], payload["logs"], payload["visibleConversationText"]):
                raise SummaryError(NOT_ENOUGH_DATA_MESSAGE)
            try:
                response = self.poster(
                    f"{self.config.api_base}/session-summary", payload, self.config, self.config.summary_timeout
                )
            except HttpClientError as exc:
                raise SummaryError(f"Summary API failed: {exc}") from exc
            text = str(response.get("summary") or "").strip()
            if not text:
                raise SummaryError("Summary API returned empty summary text.")

            outcome = SummaryOutcome(
                summary=text,
                generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
                session_id=payload["sessionMeta"]["sessionId"],
            )
            self.last = outcome
            _LOGGER.info("Summary generated for %s", outcome.session_id)
            self._push(target_id, {"status": "success", "summary": text, "generatedAt": outcome.generated_at})
            if not silent:
                self.ui.notify("Auto Accept: Session summary ready.", detail=text)
            return outcome
        except SummaryError as exc:
            _LOGGER.warning("Summary failed: %s", exc)
            self._push(target_id, {"status": "error", "error": FAILED_MESSAGE})
            if not silent:
                self.ui.notify(f"Auto Accept: {exc}", level="error", actions=["Retry"])
            if raise_errors:
                raise
            return SummaryOutcome()
        finally:
            with self._guard:
                self._in_flight = False

    def poll(self) -> int:
        """Serve pending widget clicks on every target; returns how many were answered."""
        if self._in_flight:
            return 0
        requesting: list[str] = []
        for target_id in self.bridge.targets():
            try:
                request = self.bridge.evaluate(target_id, "consumeSummaryRequest")
            except BridgeError as exc:
                _LOGGER.debug("consumeSummaryRequest failed on %s: %s", target_id, exc)
                continue
            if isinstance(request, dict) and request.get("requested"):
                requesting.append(target_id)
        if not requesting:
            return 0

        outcome = self.generate(requesting[0], silent=True)
        for target_id in requesting[1:]:
            if outcome.summary:
                self._push(
                    target_id, {"status": "success", "summary": outcome.summary, "generatedAt": outcome.generated_at}
                )
            else:
                self._push(target_id, {"status": "error", "error": FAILED_MESSAGE})
        return len(requesting)


__all__ = [
    "FAILED_MESSAGE",
    "NOT_ENOUGH_DATA_MESSAGE",
    "SummaryError",
    "SummaryOutcome",
    "SummaryPipeline",
    "has_meaningful_input",
    "normalize_stats",
]
