"""Automation State owned by one injection, plus the epoch-bound cancellation token."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Mode(str, Enum):
    SIMPLE = "simple"
    BACKGROUND = "background"


class CompletionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    DONE = "done"
    DONE_WITH_ERRORS = "done_with_errors"

    @property
    def is_done(self) -> bool:
        return self is not CompletionStatus.IN_PROGRESS


@dataclass
class Counters:
    accepted: int = 0
    blocked: int = 0
    file_edits: int = 0
    terminal_commands: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "clicks": self.accepted,
            "blocked": self.blocked,
            "fileEdits": self.file_edits,
            "terminalCommands": self.terminal_commands,
        }

    def drain(self) -> dict[str, int]:
        """Return current values and zero them."""
        out = self.to_dict()
        self.accepted = self.blocked = self.file_edits = self.terminal_commands = 0
        return out


@dataclass
class StartConfig:
    ide: str = "cursor"
    background: bool = False
    poll_interval_ms: int = 1000
    banned_patterns: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> StartConfig:
        p = payload or {}
        try:
            interval = int(p.get("pollInterval") or p.get("pollIntervalMs") or 1000)
        except (TypeError, ValueError):
            interval = 1000
        banned = p.get("bannedCommands", p.get("bannedPatterns"))
        return cls(
            ide=str(p.get("ide") or "cursor").strip().lower() or "cursor",
            background=bool(p.get("isBackgroundMode")),
            poll_interval_ms=max(100, min(interval, 10_000)),
            banned_patterns=[str(x) for x in banned] if isinstance(banned, list) else [],
        )

    @property
    def mode(self) -> Mode:
        return Mode.BACKGROUND if self.background else Mode.SIMPLE

    def loop_key(self) -> tuple[str, bool, int]:
        """Fields whose change requires a new generation of loops."""
        return (self.ide, self.background, self.poll_interval_ms)


@dataclass
class AutomationState:
    session_epoch: int
    mode: Mode = Mode.SIMPLE
    ide: str = "cursor"
    poll_interval_ms: int = 1000
    banned_patterns: list[str] = field(default_factory=list)
    counters: Counters = field(default_factory=Counters)
    running: bool = False
    tab_names: list[str] = field(default_factory=list)
    completion: dict[str, CompletionStatus] = field(default_factory=dict)
    no_tab_cycles: int = 0
    pending_summary_request: bool = False
    summary_requested_at: float = 0.0
    summary_click_seen_at: float = 0.0
    last_summary: str = ""
    pause_until: float | None = None
    focused: bool = True
    away_actions: int = 0

    @classmethod
    def for_start(cls, epoch: int, config: StartConfig, *, counters: Counters | None = None) -> AutomationState:
        return cls(
            session_epoch=epoch,
            mode=config.mode,
            ide=config.ide,
            poll_interval_ms=config.poll_interval_ms,
            banned_patterns=list(config.banned_patterns),
            counters=counters if counters is not None else Counters(),
            running=True,
        )

    def is_paused(self, now: float) -> bool:
        return self.pause_until is not None and now < self.pause_until


class CancelToken:
    """Cooperative cancellation bound to one session epoch.

    A token is live while it has not been cancelled and its epoch is still the
    controller's current one. `sleep()` is the only suspension point loops use.
    """

    def __init__(self, epoch: int, current_epoch: Callable[[], int]) -> None:
        self.epoch = epoch
        self._current_epoch = current_epoch
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def is_active(self) -> bool:
        if self._cancelled.is_set():
            return False
        try:
            return self._current_epoch() == self.epoch
        except Exception:
            return False

    def sleep(self, seconds: float) -> bool:
        """Wait up to `seconds`; return False if the token died meanwhile."""
        if not self.is_active():
            return False
        if seconds > 0:
            self._cancelled.wait(seconds)
        return self.is_active()


def now_ms(clock: Callable[[], float] = time.time) -> int:
    return int(clock() * 1000)


__all__ = [
    "AutomationState",
    "CancelToken",
    "CompletionStatus",
    "Counters",
    "Mode",
    "StartConfig",
    "now_ms",
]
