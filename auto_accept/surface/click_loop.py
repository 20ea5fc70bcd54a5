"""DOM automation loop: find affirmative controls and activate them."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .classifier import classify, is_command_label
from .dom import SurfaceDriver
from .state import AutomationState, CancelToken

_LOGGER = logging.getLogger("auto_accept.surface.click_loop")

USER_PAUSE_S = 1.5
_FILE_EDIT_TERMS = ("accept", "apply")


@dataclass
class StepResult:
    paused: bool = False
    candidates: int = 0
    activated: int = 0
    blocked: int = 0
    errors: int = 0


class ClickLoop:
    def __init__(
        self,
        state: AutomationState,
        driver: SurfaceDriver,
        token: CancelToken,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.state = state
        self.driver = driver
        self.token = token
        self.clock = clock

    def _latch_summary_click(self, click_at_ms: float) -> None:
        if click_at_ms <= 0 or click_at_ms <= self.state.summary_click_seen_at:
            return
        self.state.summary_click_seen_at = click_at_ms
        self.state.pending_summary_request = True
        self.state.summary_requested_at = click_at_ms / 1000.0

    def _count_success(self, label: str) -> None:
        counters = self.state.counters
        counters.accepted += 1
        text = label.strip().lower()
        if is_command_label(text):
            counters.terminal_commands += 1
        elif any(term in text for term in _FILE_EDIT_TERMS):
            counters.file_edits += 1
        if not self.state.focused:
            self.state.away_actions += 1

    def step(self) -> StepResult | None:
        """Run one tick. Returns None when the token is dead (no DOM access happens)."""
        if not self.token.is_active():
            return None

        snap = self.driver.snapshot(self.state.ide)
        if not self.token.is_active():
            return None

        self._latch_summary_click(snap.summary_click_at_ms)

        now = self.clock()
        if snap.user_input_at_ms > 0:
            self.state.pause_until = max(self.state.pause_until or 0.0, snap.user_input_at_ms / 1000.0 + USER_PAUSE_S)
        if self.state.is_paused(now):
            return StepResult(paused=True, candidates=len(snap.candidates))

        result = StepResult(candidates=len(snap.candidates))
        for element in snap.candidates:
            if not self.token.is_active():
                break
            try:
                verdict = classify(element, self.state.banned_patterns)
                if verdict.blocked:
                    self.state.counters.blocked += 1
                    result.blocked += 1
                    _LOGGER.info("Blocked %r (banned pattern %r)", element.label, verdict.banned_pattern)
                    continue
                if not verdict.actionable:
                    continue
                if self.driver.activate(element.handle):
                    self._count_success(element.label)
                    result.activated += 1
                    _LOGGER.info("Clicked %r", element.label)
            except Exception as exc:  # noqa: BLE001
                result.errors += 1
                _LOGGER.warning("Skipping element %r: %s", element.handle, exc)
        return result

    def run(self) -> None:
        _LOGGER.info("Click loop started (epoch=%s, interval=%sms)", self.token.epoch, self.state.poll_interval_ms)
        interval = self.state.poll_interval_ms / 1000.0
        while self.token.is_active():
            try:
                self.step()
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Click loop tick failed: %s", exc)
            if not self.token.sleep(interval):
                break
        _LOGGER.info("Click loop stopped (epoch=%s)", self.token.epoch)


__all__ = ["USER_PAUSE_S", "ClickLoop", "StepResult"]
