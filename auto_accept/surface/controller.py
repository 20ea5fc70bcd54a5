"""Surface entry points: the only API the host calls through the bridge."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from .click_loop import ClickLoop
from .dom import SurfaceDriver
from .overlay import OverlayRenderer
from .state import AutomationState, CancelToken, Counters, Mode, StartConfig
from .tab_loop import TabCycler

_LOGGER = logging.getLogger("auto_accept.surface.controller")

VISIBLE_TEXT_MAX_CHARS = 12_000

# Bridge entry-point names -> method names.
ENTRY_POINTS = {
    "start": "start",
    "stop": "stop",
    "getStats": "get_stats",
    "resetStats": "reset_stats",
    "consumeSummaryRequest": "consume_summary_request",
    "setSummaryResult": "set_summary_result",
    "getVisibleConversationText": "get_visible_conversation_text",
    "setFocusState": "set_focus_state",
    "getAwayActions": "get_away_actions",
    "updateBannedCommands": "update_banned_commands",
}


class SurfaceController:
    """Owns the Automation State for one surface.

    Every (re)start that changes ide, mode or interval bumps `session_epoch`,
    cancels the previous generation's tokens and builds a fresh state. Only the
    undrained `Counters` survive the swap.
    """

    def __init__(
        self,
        driver: SurfaceDriver,
        *,
        clock: Callable[[], float] = time.time,
        spawn_threads: bool = True,
    ):
        self.driver = driver
        self.clock = clock
        self.spawn_threads = spawn_threads
        self.renderer = OverlayRenderer(driver)
        self.state: AutomationState | None = None
        self.click_loop: ClickLoop | None = None
        self.tab_cycler: TabCycler | None = None
        self._epoch = 0
        self._tokens: list[CancelToken] = []
        self._threads: list[threading.Thread] = []
        self._loop_key: tuple[str, bool, int] | None = None
        self._lock = threading.RLock()

    @property
    def epoch(self) -> int:
        return self._epoch

    def _current_epoch(self) -> int:
        return self._epoch

    def _cancel_generation(self) -> None:
        for token in self._tokens:
            token.cancel()
        self._tokens = []
        self._threads = []

    def _spawn(self, name: str, target: Callable[[], None]) -> None:
        if not self.spawn_threads:
            return
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def start(self, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        config = StartConfig.from_payload(payload)
        with self._lock:
            state = self.state
            if state is not None and state.running and self._loop_key == config.loop_key():
                state.banned_patterns = list(config.banned_patterns)
                # Same target id survives a webview reload; put the UI back if it went away.
                if config.mode is Mode.BACKGROUND:
                    remounted = self.renderer.mount_progress_overlay(force=True)
                else:
                    remounted = self.renderer.mount_summary_widget(force=True)
                if remounted:
                    _LOGGER.info("Surface UI was missing; remounted (epoch=%s)", self._epoch)
                return {"started": False, "epoch": self._epoch}

            counters = state.counters if state is not None else Counters()
            self._cancel_generation()
            self._epoch += 1
            epoch = self._epoch
            self.state = AutomationState.for_start(epoch, config, counters=counters)
            if state is not None:
                self.state.focused = state.focused
                self.state.away_actions = state.away_actions
            self._loop_key = config.loop_key()

            click_token = CancelToken(epoch, self._current_epoch)
            self._tokens.append(click_token)
            self.click_loop = ClickLoop(self.state, self.driver, click_token, clock=self.clock)
            self.tab_cycler = None

            if config.mode is Mode.BACKGROUND:
                self.renderer.dismount_summary_widget()
                self.renderer.mount_progress_overlay()
                tab_token = CancelToken(epoch, self._current_epoch)
                self._tokens.append(tab_token)
                self.tab_cycler = TabCycler(self.state, self.driver, self.renderer, tab_token)
            else:
                self.renderer.dismount_overlay()
                self.renderer.mount_summary_widget()

            _LOGGER.info(
                "Started (epoch=%s, ide=%s, mode=%s, interval=%sms)",
                epoch,
                config.ide,
                config.mode.value,
                config.poll_interval_ms,
            )
            self._spawn(f"auto-accept-click-{epoch}", self.click_loop.run)
            if self.tab_cycler is not None:
                self._spawn(f"auto-accept-tabs-{epoch}", self.tab_cycler.run)
            return {"started": True, "epoch": epoch}

    def abandon(self) -> None:
        """Kill running loops without touching the DOM (the target is gone)."""
        with self._lock:
            self._cancel_generation()
            self._epoch += 1
            self._loop_key = None
            if self.state is not None:
                self.state.running = False

    def stop(self) -> dict[str, Any]:
        with self._lock:
            self._cancel_generation()
            self._epoch += 1
            self._loop_key = None
            if self.state is not None:
                self.state.running = False
            self.renderer.dismount_all()
            self.driver.remove_input_listener()
            _LOGGER.info("Stopped (epoch=%s)", self._epoch)
            return {"stopped": True}

    def get_stats(self) -> dict[str, int]:
        return self.state.counters.to_dict() if self.state is not None else Counters().to_dict()

    def reset_stats(self) -> dict[str, int]:
        """Read and zero the counters."""
        with self._lock:
            return self.state.counters.drain() if self.state is not None else Counters().to_dict()

    def consume_summary_request(self) -> dict[str, Any]:
        """One-shot read of the widget's pending request: `{requested, requestedAt}`."""
        with self._lock:
            state = self.state
            if state is None or not state.pending_summary_request:
                return {"requested": False}
            state.pending_summary_request = False
            return {"requested": True, "requestedAt": state.summary_requested_at}

    def set_summary_result(self, payload: dict[str, Any] | None) -> bool:
        data = dict(payload or {})
        if self.state is not None and data.get("status") == "success":
            self.state.last_summary = str(data.get("summary") or "")
        self.renderer.set_summary_state(data)
        return True

    def get_visible_conversation_text(self, max_chars: int = VISIBLE_TEXT_MAX_CHARS) -> str:
        return self.driver.visible_text(max(1, min(int(max_chars), VISIBLE_TEXT_MAX_CHARS)))

    def set_focus_state(self, focused: bool) -> bool:
        if self.state is not None:
            self.state.focused = bool(focused)
        return True

    def get_away_actions(self) -> int:
        """Return and zero the actions taken while the window was unfocused."""
        with self._lock:
            if self.state is None:
                return 0
            count = self.state.away_actions
            self.state.away_actions = 0
            return count

    def update_banned_commands(self, patterns: list[str] | None) -> bool:
        if self.state is not None:
            self.state.banned_patterns = [str(p) for p in (patterns or [])]
        return True

    def dispatch(self, entry: str, *args: Any) -> Any:
        name = ENTRY_POINTS.get(entry)
        if name is None:
            raise ValueError(f"Unknown entry point: {entry}")
        return getattr(self, name)(*args)


__all__ = ["ENTRY_POINTS", "VISIBLE_TEXT_MAX_CHARS", "SurfaceController"]
