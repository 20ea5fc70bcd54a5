"""Host UI seam: notifications and the status indicator."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol

_LOGGER = logging.getLogger("auto_accept.host.ui")


@dataclass(frozen=True)
class StatusView:
    enabled: bool
    is_leader: bool = True
    background: bool = False
    is_pro: bool = False

    def text(self) -> str:
        if not self.enabled:
            return "Auto Accept: OFF"
        if not self.is_leader:
            return "Auto Accept: Standby (another window is in control)"
        mode = "Background" if self.background else "Simple"
        return f"Auto Accept: ON ({mode})"


@dataclass(frozen=True)
class Notification:
    message: str
    level: str = "info"
    detail: str | None = None
    actions: tuple[str, ...] = field(default_factory=tuple)


class HostUi(Protocol):
    def notify(
        self,
        message: str,
        *,
        level: str = "info",
        detail: str | None = None,
        actions: list[str] | None = None,
    ) -> None: ...

    def set_status(self, view: StatusView) -> None: ...


class LoggingHostUi:
    """HostUi that writes to the log and keeps what it showed (for the CLI and tests)."""

    _LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}

    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self.status: StatusView | None = None
        self._lock = threading.Lock()

    def notify(
        self,
        message: str,
        *,
        level: str = "info",
        detail: str | None = None,
        actions: list[str] | None = None,
    ) -> None:
        note = Notification(message=message, level=level, detail=detail, actions=tuple(actions or ()))
        with self._lock:
            self.notifications.append(note)
        suffix = f" ({detail})" if detail else ""
        _LOGGER.log(self._LEVELS.get(level, logging.INFO), "%s%s", message, suffix)

    def set_status(self, view: StatusView) -> None:
        with self._lock:
            changed = view != self.status
            self.status = view
        if changed:
            _LOGGER.info("Status: %s", view.text())


__all__ = ["HostUi", "LoggingHostUi", "Notification", "StatusView"]
