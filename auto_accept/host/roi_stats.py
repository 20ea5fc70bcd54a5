"""Weekly ROI record (clicks, blocked commands, sessions) with Sunday rollover."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any

from .store import KEY_ROI_ARCHIVE, KEY_ROI_STATS, StateStore

_LOGGER = logging.getLogger("auto_accept.host.roi_stats")

SECONDS_PER_CLICK = 5
ARCHIVE_WEEKS = 12


def week_start(now: float | None = None) -> int:
    """Epoch ms of the most recent Sunday 00:00, local time."""
    dt = datetime.fromtimestamp(time.time() if now is None else now)
    days_since_sunday = (dt.weekday() + 1) % 7
    start = (dt - timedelta(days=days_since_sunday)).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(start.timestamp() * 1000)


@dataclass
class RoiStats:
    week_start: int
    clicks: int = 0
    blocked: int = 0
    sessions_started: int = 0

    @classmethod
    def from_dict(cls, raw: Any, *, default_week: int) -> RoiStats:
        if not isinstance(raw, dict):
            return cls(week_start=default_week)

        def _int(key: str) -> int:
            try:
                return int(raw.get(key) or 0)
            except (TypeError, ValueError):
                return 0

        return cls(
            week_start=_int("week_start") or default_week,
            clicks=_int("clicks"),
            blocked=_int("blocked"),
            sessions_started=_int("sessions_started"),
        )

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def format_time_saved(clicks: int) -> tuple[int, str]:
    minutes = round(clicks * SECONDS_PER_CLICK / 60)
    if minutes >= 60:
        return minutes, f"{minutes / 60:.1f} hours"
    return minutes, f"{minutes} minutes"


def roi_report(stats: RoiStats) -> dict[str, Any]:
    minutes, formatted = format_time_saved(stats.clicks)
    report: dict[str, Any] = stats.to_dict()
    report["time_saved_minutes"] = minutes
    report["time_saved_formatted"] = formatted
    return report


def weekly_summary_message(stats: RoiStats) -> str:
    _, formatted = format_time_saved(stats.clicks)
    message = f"Last week, Auto Accept saved you {formatted} by auto-clicking {stats.clicks} buttons!"
    if stats.blocked > 0:
        message += f" Blocked {stats.blocked} dangerous commands."
    return message


class RoiTracker:
    def __init__(
        self,
        store: StateStore,
        *,
        notify: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.notify = notify
        self.clock = clock

    def _load_locked(self, data: dict[str, Any]) -> tuple[RoiStats, RoiStats | None]:
        current_week = week_start(self.clock())
        stats = RoiStats.from_dict(data.get(KEY_ROI_STATS), default_week=current_week)
        rolled: RoiStats | None = None
        if stats.week_start != current_week:
            rolled = stats
            archive = data.get(KEY_ROI_ARCHIVE)
            archive = list(archive) if isinstance(archive, list) else []
            archive.append(stats.to_dict())
            data[KEY_ROI_ARCHIVE] = archive[-ARCHIVE_WEEKS:]
            stats = RoiStats(week_start=current_week)
            data[KEY_ROI_STATS] = stats.to_dict()
        elif KEY_ROI_STATS not in data:
            data[KEY_ROI_STATS] = stats.to_dict()
        return stats, rolled

    def _announce(self, rolled: RoiStats | None) -> None:
        if rolled is None:
            return
        _LOGGER.info("ROI stats: new week detected, archived week starting %s", rolled.week_start)
        if rolled.clicks > 0 and self.notify is not None:
            self.notify(weekly_summary_message(rolled))

    def load(self) -> RoiStats:
        """Current week's record; a stale record is archived and announced once."""
        with self.store.transaction() as data:
            stats, rolled = self._load_locked(data)
        self._announce(rolled)
        return stats

    def add(self, *, clicks: int = 0, blocked: int = 0, sessions: int = 0) -> RoiStats:
        with self.store.transaction() as data:
            stats, rolled = self._load_locked(data)
            stats.clicks += max(0, int(clicks))
            stats.blocked += max(0, int(blocked))
            stats.sessions_started += max(0, int(sessions))
            data[KEY_ROI_STATS] = stats.to_dict()
        self._announce(rolled)
        return stats

    def archive(self) -> list[dict[str, Any]]:
        raw = self.store.get(KEY_ROI_ARCHIVE)
        return list(raw) if isinstance(raw, list) else []


__all__ = [
    "SECONDS_PER_CLICK",
    "RoiStats",
    "RoiTracker",
    "format_time_saved",
    "roi_report",
    "week_start",
    "weekly_summary_message",
]
