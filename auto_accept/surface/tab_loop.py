"""Background-mode tab cycling across concurrent chat sessions."""

from __future__ import annotations

import logging
import re

from .dom import SurfaceDriver, TabRef
from .overlay import MIN_OVERLAY_TABS, OverlayRenderer
from .state import AutomationState, CancelToken, CompletionStatus

_LOGGER = logging.getLogger("auto_accept.surface.tab_loop")

START_DELAY_S = 1.0
CURSOR_CYCLE_S = 3.0
PANEL_WAIT_S = 1.5
TAB_LOAD_WAIT_S = 1.5
ANTIGRAVITY_CYCLE_S = 3.0
MAX_NAME_LINE = 100
FALLBACK_NAME_CHARS = 50

_TIME_SUFFIX = re.compile(r"\s*\d+[smh]$")


def strip_time_suffix(text: str | None) -> str:
    """Drop a trailing relative timestamp ("Fix login 5m" -> "Fix login")."""
    return _TIME_SUFFIX.sub("", (text or "").strip()).strip()


def derive_tab_name(text: str | None) -> str:
    full = (text or "").strip()
    lines = [line.strip() for line in full.split("\n") if line.strip()]
    if lines:
        last = lines[-1]
        if len(last) < MAX_NAME_LINE:
            return strip_time_suffix(last)
        for line in reversed(lines):
            if len(line) >= MAX_NAME_LINE:
                continue
            if line.startswith("//") or line.startswith("/*") or "{" in line:
                continue
            return strip_time_suffix(line)
    return strip_time_suffix(full[:FALLBACK_NAME_CHARS])


def deduplicate_names(names: list[str]) -> list[str]:
    """Suffix repeats with their occurrence number: ["a", "a"] -> ["a", "a (2)"]."""
    counts: dict[str, int] = {}
    out: list[str] = []
    for name in names:
        if name not in counts:
            counts[name] = 1
            out.append(name)
        else:
            counts[name] += 1
            out.append(f"{name} ({counts[name]})")
    return out


class TabCycler:
    def __init__(self, state: AutomationState, driver: SurfaceDriver, renderer: OverlayRenderer, token: CancelToken):
        self.state = state
        self.driver = driver
        self.renderer = renderer
        self.token = token
        self.index = 0
        self.cycle = 0

    def _record_tab_count(self, count: int) -> None:
        if count:
            self.state.no_tab_cycles = 0
            return
        self.state.no_tab_cycles += 1
        streak = self.state.no_tab_cycles
        if streak == 3 or (streak > 3 and streak % 10 == 0):
            _LOGGER.info("No tabs found for %s consecutive cycles (ide=%s)", streak, self.state.ide)

    def update_tab_names(self, tabs: list[TabRef]) -> None:
        names = deduplicate_names([derive_tab_name(t.text) for t in tabs])
        if not names and self.state.tab_names:
            return
        changed = names != self.state.tab_names
        if changed:
            _LOGGER.info("Detected %s tabs: %s", len(names), ", ".join(names))
            self.state.tab_names = names
        if len(names) < MIN_OVERLAY_TABS:
            return
        rows = self.renderer.overlay_row_count()
        if rows < 0:
            self.renderer.mount_progress_overlay(force=True)
        if changed or rows <= 0:
            self.renderer.render_tabs(names, self.state.completion)

    def _rotate(self, tabs: list[TabRef]) -> TabRef | None:
        if not tabs:
            return None
        target = tabs[self.index % len(tabs)]
        _LOGGER.debug("Cycle %s: switching to tab %r", self.cycle, (target.aria_label or target.text)[:40])
        self.driver.activate(target.handle)
        self.index += 1
        return target

    def cursor_step(self) -> bool:
        if not self.token.is_active():
            return False
        self.cycle += 1
        tabs = self.driver.list_tabs("cursor")
        self._record_tab_count(len(tabs))
        self.update_tab_names(tabs)
        self._rotate(tabs)
        return self.token.sleep(CURSOR_CYCLE_S)

    def antigravity_step(self) -> bool:
        if not self.token.is_active():
            return False
        self.cycle += 1
        self.driver.open_conversation_panel()
        if not self.token.sleep(PANEL_WAIT_S):
            return False

        tabs = self.driver.list_tabs("antigravity")
        self._record_tab_count(len(tabs))
        self.update_tab_names(tabs)
        clicked = self._rotate(tabs)
        if not self.token.sleep(TAB_LOAD_WAIT_S):
            return False

        if clicked is not None:
            signal = self.driver.completion_signal()
            if signal.feedback_markers > 0:
                status = CompletionStatus.DONE_WITH_ERRORS if signal.diagnostics else CompletionStatus.DONE
                names = self.state.tab_names
                name = names[(self.index - 1) % len(names)] if names else strip_time_suffix(clicked.text)
                if self.state.completion.get(name) != status:
                    _LOGGER.info("Tab %r: %s", name, status.value)
                    self.state.completion[name] = status
                self.renderer.mark_completed(name, status)
        return self.token.sleep(ANTIGRAVITY_CYCLE_S)

    def run(self) -> None:
        if not self.token.sleep(START_DELAY_S):
            return
        step = self.antigravity_step if self.state.ide == "antigravity" else self.cursor_step
        _LOGGER.info("Tab cycling started (ide=%s, epoch=%s)", self.state.ide, self.token.epoch)
        while self.token.is_active():
            try:
                if not step():
                    break
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Tab cycle failed: %s", exc)
                if not self.token.sleep(CURSOR_CYCLE_S):
                    break
        _LOGGER.info("Tab cycling stopped (epoch=%s)", self.token.epoch)


__all__ = ["TabCycler", "deduplicate_names", "derive_tab_name", "strip_time_suffix"]
