"""Progress overlay (background mode) and summary widget (simple mode)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..http_client import HttpClientError
from . import js_snippets
from .dom import SurfaceDriver
from .state import CompletionStatus

_LOGGER = logging.getLogger("auto_accept.surface.overlay")

# Fewer tabs than this are not worth a progress view.
MIN_OVERLAY_TABS = 3

_ROW_STATE = {
    CompletionStatus.IN_PROGRESS: "in-progress",
    CompletionStatus.DONE: "completed",
    CompletionStatus.DONE_WITH_ERRORS: "errors",
}


class OverlayRenderer:
    def __init__(self, driver: SurfaceDriver):
        self.driver = driver
        self.overlay_mounted = False
        self.widget_mounted = False

    def _run(self, script: str) -> Any:
        try:
            return self.driver.run_script(script)
        except HttpClientError as exc:
            _LOGGER.warning("overlay script failed: %s", exc)
            return None

    def mount_progress_overlay(self, *, force: bool = False) -> bool:
        """Mount the overlay; returns True when a new container was created.

        `force` re-runs the (idempotent) mount script, which rebuilds the overlay
        after the document was reloaded underneath us.
        """
        if self.overlay_mounted and not force:
            return False
        created = self._run(js_snippets.MOUNT_OVERLAY_JS) is True
        self.overlay_mounted = True
        return created

    def render_tabs(self, names: list[str], completion: Mapping[str, CompletionStatus]) -> None:
        if not self.overlay_mounted:
            return
        if len(names) < MIN_OVERLAY_TABS:
            rows: list[dict[str, object]] = []
        else:
            rows = [
                {"name": name, "state": _ROW_STATE[completion.get(name, CompletionStatus.IN_PROGRESS)]}
                for name in names
            ]
        self._run(js_snippets.render_tabs_js(rows))

    def mark_completed(self, name: str, status: CompletionStatus = CompletionStatus.DONE) -> None:
        if not self.overlay_mounted or not status.is_done:
            return
        self._run(js_snippets.mark_completed_js(name, _ROW_STATE[status]))

    def overlay_row_count(self) -> int:
        """Rendered rows, or -1 when the overlay container is missing."""
        value = self._run(js_snippets.OVERLAY_ROW_COUNT_JS)
        return int(value) if isinstance(value, (int, float)) else -1

    def mount_summary_widget(self, *, force: bool = False) -> bool:
        if self.widget_mounted and not force:
            return False
        created = self._run(js_snippets.MOUNT_SUMMARY_WIDGET_JS) is True
        self.widget_mounted = True
        return created

    def set_summary_state(self, payload: Mapping[str, Any] | None) -> None:
        """Render a tagged summary result (`{"status": "loading" | "success" | "error" | "idle", ...}`)."""
        if not self.widget_mounted:
            return
        data = dict(payload or {})
        status = str(data.get("status") or "idle")
        if status not in ("loading", "success", "error"):
            status = "idle"
        self._run(
            js_snippets.summary_state_js(
                status,
                text=str(data.get("summary") or ""),
                message=str(data.get("error") or ""),
                generated_at=str(data.get("generatedAt") or ""),
            )
        )

    def dismount_overlay(self) -> None:
        self._run(js_snippets.DISMOUNT_OVERLAY_JS)
        self.overlay_mounted = False

    def dismount_summary_widget(self) -> None:
        self._run(js_snippets.DISMOUNT_SUMMARY_WIDGET_JS)
        self.widget_mounted = False

    def dismount_all(self) -> None:
        self.dismount_overlay()
        self.dismount_summary_widget()


__all__ = ["MIN_OVERLAY_TABS", "OverlayRenderer"]
