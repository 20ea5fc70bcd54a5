"""Host-side session coordinator.

Owns the enable flag and settings, runs the 5 s sync tick (leader election,
config injection, summary polling) and the 30 s stats tick (counter drain,
weekly ROI, away-actions) on one daemon thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from ..config import DEFAULT_BANNED_COMMANDS, AutoAcceptConfig
from ..session_cdp import is_cdp_available
from .bridge import Bridge, BridgeError
from .leader import LeaderElection
from .license import verify_license
from .roi_stats import SECONDS_PER_CLICK, RoiTracker
from .session_log import SessionLog
from .store import (
    KEY_BACKGROUND_MODE,
    KEY_BANNED_COMMANDS,
    KEY_ENABLED,
    KEY_FIRST_INSTALL,
    KEY_FREQUENCY,
    KEY_IS_PRO,
    StateStore,
)
from .summary import STAT_KEYS, SummaryOutcome, SummaryPipeline, normalize_stats
from .ui import HostUi, StatusView

_LOGGER = logging.getLogger("auto_accept.host.coordinator")

DEFAULT_FREQUENCY_MS = 1000
SETUP_FAILURE_THRESHOLD = 3
LICENSE_MESSAGE = "Auto Accept requires an active license."
SETUP_MESSAGE = "Auto Accept: setup required. Restart the editor with remote debugging enabled (port {port})."
QUICK_GUIDE = (
    "Auto Accept quick guide: start the editor with --remote-debugging-port={port}, "
    "then run `auto-accept run`. Dangerous commands on the banned list are never clicked."
)


class LicenseRequiredError(Exception):
    pass


def session_summary_text(stats: dict[str, int]) -> tuple[str, str]:
    """End-of-session message and detail."""
    clicks = stats["clicks"]
    minutes = round(clicks * SECONDS_PER_CLICK / 60)
    message = f"Auto Accept: {clicks} actions handled this session"
    lines = [
        f"{clicks} actions auto-accepted",
        f"{stats['terminalCommands']} terminal commands",
        f"{stats['fileEdits']} file edits",
        f"{stats['blocked']} interruptions blocked",
    ]
    if minutes:
        lines.append(f"Estimated time saved: ~{minutes} minutes")
    return message, "\n".join(lines)


def away_actions_text(count: int) -> str:
    return f"Auto Accept handled {count} action{'s' if count > 1 else ''} while you were away."


class Coordinator:
    def __init__(
        self,
        config: AutoAcceptConfig,
        store: StateStore,
        bridge: Bridge,
        ui: HostUi,
        *,
        summary: SummaryPipeline | None = None,
        leader: LeaderElection | None = None,
        cdp_check: Callable[[], bool] | None = None,
        license_check: Callable[[], bool | None] | None = None,
        clock: Callable[[], float] = time.time,
        summary_in_thread: bool = True,
    ):
        self.config = config
        self.store = store
        self.bridge = bridge
        self.ui = ui
        self.clock = clock
        self.session_log = SessionLog()
        self.summary = summary or SummaryPipeline(bridge, self.session_log, store, config, ui)
        self.leader = leader or LeaderElection(store, config.ide, clock=clock)
        self.roi = RoiTracker(store, notify=lambda msg: ui.notify(msg, actions=["View Details"]), clock=clock)
        self.cdp_check = cdp_check or (lambda: is_cdp_available(config))
        self.license_check = license_check or (lambda: verify_license(store, config))
        self.summary_in_thread = summary_in_thread

        self.enabled = bool(store.get(KEY_ENABLED, False))
        self.is_pro = bool(store.get(KEY_IS_PRO, False))
        self.background = bool(store.get(KEY_BACKGROUND_MODE, False))
        self.frequency_ms = self._load_frequency()
        banned = store.get(KEY_BANNED_COMMANDS)
        self.banned_commands: list[str] = list(banned) if isinstance(banned, list) else list(DEFAULT_BANNED_COMMANDS)
        self.summary.background = self.background
        self.is_leader = False

        self.bridge_failures = 0
        self.setup_prompted = False
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._summary_thread: threading.Thread | None = None
        self._last_stats_at = 0.0
        self._log_attached = False

    def _load_frequency(self) -> int:
        try:
            value = int(self.store.get(KEY_FREQUENCY, DEFAULT_FREQUENCY_MS))
        except (TypeError, ValueError):
            value = DEFAULT_FREQUENCY_MS
        return max(100, min(value, 10_000))

    # --- status / config ---

    def status_view(self) -> StatusView:
        return StatusView(enabled=self.enabled, is_leader=self.is_leader, background=self.background, is_pro=self.is_pro)

    def _update_status(self) -> None:
        self.ui.set_status(self.status_view())

    def surface_config(self) -> dict[str, Any]:
        return {
            "ide": self.config.ide,
            "isPro": self.is_pro,
            "isBackgroundMode": self.background,
            "pollInterval": self.frequency_ms,
            "bannedCommands": list(self.banned_commands),
        }

    def _require_license(self, strict: bool) -> bool:
        if self.is_pro:
            return True
        if strict:
            raise LicenseRequiredError(LICENSE_MESSAGE)
        self.ui.notify(LICENSE_MESSAGE, actions=["Purchase License"])
        return False

    def _prompt_setup(self) -> None:
        if self.setup_prompted:
            return
        self.setup_prompted = True
        self.ui.notify(SETUP_MESSAGE.format(port=self.config.cdp_port), level="error", actions=["Setup"])

    def _ensure_cdp(self) -> bool:
        try:
            available = bool(self.cdp_check())
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("CDP availability check failed: %s", exc)
            available = False
        _LOGGER.info("Environment check: CDP available = %s", available)
        if not available:
            self._prompt_setup()
        return available

    def _attach_session_log(self) -> None:
        if self._log_attached:
            return
        logging.getLogger("auto_accept").addHandler(self.session_log)
        self._log_attached = True

    def _detach_session_log(self) -> None:
        if not self._log_attached:
            return
        logging.getLogger("auto_accept").removeHandler(self.session_log)
        self._log_attached = False

    # --- lifecycle ---

    def startup(self) -> None:
        """Run once at process start: first-install guide, license refresh, resume if enabled."""
        if not self.store.get(KEY_FIRST_INSTALL, False):
            _LOGGER.info(QUICK_GUIDE.format(port=self.config.cdp_port))
            self.store.set(KEY_FIRST_INSTALL, True)

        verified = self.license_check()
        if verified is not None:
            self.is_pro = bool(verified)
            self.store.set(KEY_IS_PRO, self.is_pro)

        if self.enabled and not self.is_pro:
            _LOGGER.info("Auto Accept enabled but license not verified; disabling until licensed")
            self.enabled = False
            self.store.set(KEY_ENABLED, False)
        if self.enabled:
            self._begin()
        self._update_status()

    def _begin(self) -> None:
        self._attach_session_log()
        self.session_log.ensure_session_started(self.config.ide, background_mode=self.background)
        _LOGGER.info("Auto Accept: monitoring session")
        self.roi.load()
        if not self._ensure_cdp():
            # Stays enabled; the sync tick picks targets up once CDP appears.
            _LOGGER.info("CDP not available; waiting for setup")
        self._start_thread()
        self.sync_tick()

    def enable(self, *, strict: bool = False) -> bool:
        with self._lock:
            if self.enabled:
                return True
            if not self._require_license(strict):
                return False
            self.enabled = True
            self.store.set(KEY_ENABLED, True)
            _LOGGER.info("Auto Accept: enabled")
            self.roi.add(sessions=1)
            self._update_status()
        self._begin()
        return True

    def disable(self) -> dict[str, int]:
        with self._lock:
            if not self.enabled:
                return dict.fromkeys(STAT_KEYS, 0)
            self.enabled = False
            self.store.set(KEY_ENABLED, False)
            _LOGGER.info("Auto Accept: disabled")
            self._update_status()
        self._stop_thread()
        self._wind_down_surfaces()
        totals = self.drain_counters()
        if totals["clicks"] > 0:
            message, detail = session_summary_text(totals)
            self.ui.notify(message, detail=detail, actions=["View Stats"])
        self.session_log.end_session()
        self._detach_session_log()
        return totals

    def _wind_down_surfaces(self) -> None:
        """Stop local loops; only the leader may also clear the page UI."""
        if self.is_leader:
            self.bridge.stop_all()
        else:
            self.bridge.release_all()

    def toggle(self, *, strict: bool = False) -> bool:
        if self.enabled:
            self.disable()
        else:
            self.enable(strict=strict)
        return self.enabled

    def shutdown(self) -> None:
        self._stop_thread()
        if self.enabled:
            self._wind_down_surfaces()
            self.drain_counters()
        self.session_log.end_session()
        self._detach_session_log()
        close = getattr(self.bridge, "close", None)
        if callable(close):
            close()

    # --- settings ---

    def toggle_background(self) -> bool:
        with self._lock:
            if not self._require_license(strict=False):
                return self.background
            if not self.background and self.enabled and not self._ensure_cdp():
                return self.background
            self.background = not self.background
            self.store.set(KEY_BACKGROUND_MODE, self.background)
            self.summary.background = self.background
            _LOGGER.info("Background mode: %s", "on" if self.background else "off")
            self._update_status()
        if self.enabled and self.is_leader:
            if not self.background:
                self.bridge.stop_all()
            self.sync_tick()
        return self.background

    def set_frequency(self, frequency_ms: int) -> int:
        with self._lock:
            self.frequency_ms = max(100, min(int(frequency_ms), 10_000))
            self.store.set(KEY_FREQUENCY, self.frequency_ms)
            _LOGGER.info("Poll frequency updated to %sms", self.frequency_ms)
        if self.enabled:
            self.sync_tick()
        return self.frequency_ms

    def set_banned_commands(self, commands: list[str] | None) -> bool:
        with self._lock:
            if not self.is_pro:
                _LOGGER.info("Banned commands customization requires an active license")
                return False
            self.banned_commands = [str(c) for c in (commands or []) if str(c).strip()]
            self.store.set(KEY_BANNED_COMMANDS, self.banned_commands)
            _LOGGER.info("Banned commands updated: %s patterns", len(self.banned_commands))
        if self.enabled:
            for target_id in self.bridge.targets():
                try:
                    self.bridge.evaluate(target_id, "updateBannedCommands", list(self.banned_commands))
                except BridgeError as exc:
                    _LOGGER.warning("updateBannedCommands failed on %s: %s", target_id, exc)
        return True

    def mark_pro(self) -> None:
        with self._lock:
            self.is_pro = True
            self.store.set(KEY_IS_PRO, True)
            self._update_status()
        self.ui.notify("Pro activated! All Pro features are now unlocked.")
        if self.enabled:
            self.sync_tick()

    def set_window_focus(self, focused: bool) -> None:
        for target_id in self.bridge.targets():
            try:
                self.bridge.evaluate(target_id, "setFocusState", bool(focused))
            except BridgeError as exc:
                _LOGGER.debug("setFocusState failed on %s: %s", target_id, exc)
        if focused and self.enabled and self.is_leader:
            self.check_away_actions()

    # --- ticks ---

    def _record_bridge_result(self, ok: bool) -> None:
        if ok:
            self.bridge_failures = 0
            self.setup_prompted = False
            return
        self.bridge_failures += 1
        if self.bridge_failures >= SETUP_FAILURE_THRESHOLD:
            self._prompt_setup()

    def sync_tick(self) -> bool:
        """Leader check, config injection and summary polling. Returns True if this process leads."""
        if not self.enabled:
            return False
        decision = self.leader.tick()
        self.is_leader = decision.is_leader
        if decision.changed:
            if decision.is_leader:
                _LOGGER.info("CDP control: lock acquired, resuming control")
            else:
                _LOGGER.info("CDP control: locked by another instance (%s), standby", decision.owner_id)
                self.bridge.release_all()
            self._update_status()
        if not decision.is_leader:
            return False

        try:
            targets = self.bridge.refresh()
        except BridgeError as exc:
            _LOGGER.warning("Target discovery failed: %s", exc)
            self._record_bridge_result(False)
            return True

        self.reload_settings()
        payload = self.surface_config()
        injected = 0
        for target_id in targets:
            try:
                self.bridge.inject(target_id, payload)
                injected += 1
            except BridgeError as exc:
                _LOGGER.warning("Sync failed on %s: %s", target_id, exc)
        self._record_bridge_result(injected > 0)

        if not self.background:
            self._poll_summaries()
        return True

    def reload_settings(self) -> None:
        """Pick up settings changed by another process (e.g. `auto-accept config`)."""
        with self._lock:
            self.frequency_ms = self._load_frequency()
            banned = self.store.get(KEY_BANNED_COMMANDS)
            if isinstance(banned, list):
                self.banned_commands = [str(c) for c in banned]
            background = bool(self.store.get(KEY_BACKGROUND_MODE, False))
            if background != self.background:
                _LOGGER.info("Background mode changed externally: %s", "on" if background else "off")
                self.background = background
                self.summary.background = background
                self._update_status()

    def _poll_summaries(self) -> None:
        if self.summary.in_flight:
            return
        if not self.summary_in_thread:
            self.summary.poll()
            return
        if self._summary_thread is not None and self._summary_thread.is_alive():
            return
        self._summary_thread = threading.Thread(target=self._summary_worker, name="auto-accept-summary", daemon=True)
        self._summary_thread.start()

    def _summary_worker(self) -> None:
        try:
            self.summary.poll()
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Summary request processing error: %s", exc)

    def generate_summary(self) -> SummaryOutcome:
        """Command-sourced summary; raises SummaryError on failure."""
        targets = self.bridge.targets()
        return self.summary.generate(targets[0] if targets else None, raise_errors=True)

    def drain_counters(self) -> dict[str, int]:
        """resetStats on every target, sum, and fold into the weekly record."""
        totals = dict.fromkeys(STAT_KEYS, 0)
        for target_id in self.bridge.targets():
            try:
                stats = normalize_stats(self.bridge.evaluate(target_id, "resetStats"))
            except BridgeError as exc:
                _LOGGER.warning("resetStats failed on %s: %s", target_id, exc)
                continue
            for key in STAT_KEYS:
                totals[key] += stats[key]
        if totals["clicks"] or totals["blocked"]:
            self.roi.add(clicks=totals["clicks"], blocked=totals["blocked"])
        return totals

    def check_away_actions(self) -> int:
        total = 0
        for target_id in self.bridge.targets():
            try:
                total += int(self.bridge.evaluate(target_id, "getAwayActions") or 0)
            except (BridgeError, TypeError, ValueError) as exc:
                _LOGGER.debug("getAwayActions failed on %s: %s", target_id, exc)
        if total > 0:
            self.ui.notify(away_actions_text(total), detail="Agents stayed autonomous while you focused elsewhere.")
        return total

    def stats_tick(self) -> None:
        if not self.enabled or not self.is_leader:
            return
        self.drain_counters()
        self.check_away_actions()

    # --- scheduler thread ---

    def _start_thread(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._last_stats_at = self.clock()
        t = threading.Thread(target=self._run, name="auto-accept-coordinator", daemon=True)
        self._thread = t
        t.start()

    def _stop_thread(self) -> None:
        self._stop.set()
        t = self._thread
        self._thread = None
        if t is not None and t is not threading.current_thread():
            t.join(timeout=self.config.bridge_timeout + 1.0)

    def _run(self) -> None:
        while not self._stop.wait(self.config.sync_interval):
            try:
                self.sync_tick()
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Sync tick failed: %s", exc)
            if self.clock() - self._last_stats_at >= self.config.stats_interval:
                self._last_stats_at = self.clock()
                try:
                    self.stats_tick()
                except Exception as exc:  # noqa: BLE001
                    _LOGGER.warning("Stats tick failed: %s", exc)

    def wait(self) -> None:
        """Block until the scheduler thread exits (CLI `run`)."""
        t = self._thread
        while t is not None and t.is_alive():
            t.join(timeout=1.0)


__all__ = ["Coordinator", "LicenseRequiredError", "away_actions_text", "session_summary_text"]
