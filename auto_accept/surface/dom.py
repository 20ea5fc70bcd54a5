"""DOM access for the surface controller.

`SurfaceDriver` is the seam the loops and the renderer talk to; `CdpSurfaceDriver`
implements it by evaluating `js_snippets` over one CDP connection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..http_client import HttpClientError
from . import js_snippets
from .classifier import ElementSnapshot

_LOGGER = logging.getLogger("auto_accept.surface.dom")


@dataclass
class Snapshot:
    """One click-loop tick worth of DOM state."""

    candidates: list[ElementSnapshot] = field(default_factory=list)
    user_input_at_ms: float = 0.0
    summary_click_at_ms: float = 0.0

    @classmethod
    def from_dict(cls, raw: Any) -> Snapshot:
        if not isinstance(raw, dict):
            return cls()
        items = raw.get("candidates")
        candidates = [ElementSnapshot.from_dict(c) for c in items if isinstance(c, dict)] if isinstance(items, list) else []
        return cls(
            candidates=candidates,
            user_input_at_ms=float(raw.get("userInputAt") or 0),
            summary_click_at_ms=float(raw.get("summaryClickAt") or 0),
        )


@dataclass(frozen=True)
class TabRef:
    handle: str
    text: str
    aria_label: str = ""


@dataclass(frozen=True)
class CompletionSignal:
    feedback_markers: int = 0
    diagnostics: bool = False


class SurfaceDriver(Protocol):
    def snapshot(self, ide: str) -> Snapshot: ...

    def activate(self, handle: str) -> bool: ...

    def remove_input_listener(self) -> None: ...

    def list_tabs(self, ide: str) -> list[TabRef]: ...

    def open_conversation_panel(self) -> bool: ...

    def completion_signal(self) -> CompletionSignal: ...

    def visible_text(self, max_chars: int) -> str: ...

    def run_script(self, script: str) -> Any: ...


class CdpSurfaceDriver:
    """SurfaceDriver over a `CdpConnection`-like object (anything with `evaluate()`)."""

    def __init__(self, conn: Any, *, timeout: float = 5.0):
        self.conn = conn
        self.timeout = timeout

    def run_script(self, script: str) -> Any:
        return self.conn.evaluate(script, timeout=self.timeout)

    def snapshot(self, ide: str) -> Snapshot:
        return Snapshot.from_dict(self.run_script(js_snippets.collect_snapshot_js(ide)))

    def activate(self, handle: str) -> bool:
        return bool(self.run_script(js_snippets.activate_js(handle)))

    def remove_input_listener(self) -> None:
        try:
            self.run_script(js_snippets.REMOVE_INPUT_LISTENER_JS)
        except HttpClientError as exc:
            _LOGGER.debug("input listener removal failed: %s", exc)

    def list_tabs(self, ide: str) -> list[TabRef]:
        raw = self.run_script(js_snippets.list_tabs_js(ide))
        if not isinstance(raw, list):
            return []
        out: list[TabRef] = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("handle"):
                continue
            out.append(
                TabRef(
                    handle=str(item["handle"]),
                    text=str(item.get("text") or ""),
                    aria_label=str(item.get("ariaLabel") or ""),
                )
            )
        return out

    def open_conversation_panel(self) -> bool:
        return bool(self.run_script(js_snippets.OPEN_CONVERSATION_PANEL_JS))

    def completion_signal(self) -> CompletionSignal:
        raw = self.run_script(js_snippets.COMPLETION_SIGNAL_JS)
        if not isinstance(raw, dict):
            return CompletionSignal()
        return CompletionSignal(feedback_markers=int(raw.get("feedback") or 0), diagnostics=bool(raw.get("diagnostics")))

    def visible_text(self, max_chars: int) -> str:
        raw = self.run_script(js_snippets.visible_text_js(max_chars))
        return raw[:max_chars] if isinstance(raw, str) else ""


__all__ = ["CdpSurfaceDriver", "CompletionSignal", "Snapshot", "SurfaceDriver", "TabRef"]
