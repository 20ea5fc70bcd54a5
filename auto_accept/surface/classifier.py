"""Decides whether a snapshotted element is an actionable "accept" control.

Everything here is pure: the DOM collector (`js_snippets.COLLECT_SNAPSHOT_JS`) ships a
bounded description of each candidate, and these functions judge it.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .matcher import match_banned

ACCEPT_TERMS = ("accept", "run", "retry", "apply", "execute", "confirm", "always allow", "allow once", "allow")
REJECT_TERMS = ("skip", "reject", "cancel", "close", "refine")
COMMAND_TERMS = ("run", "execute")

MAX_LABEL_CHARS = 50
MAX_ANCESTOR_LEVELS = 10
MAX_PRECEDING_SIBLINGS = 5
MAX_BUTTON_SIBLINGS = 3
MAX_BLOCK_CHARS = 5000
# Stop climbing once this much command text has been found.
ENOUGH_CONTEXT_CHARS = 10


@dataclass(frozen=True)
class CodeBlock:
    """Text of a <pre>/<code> block found near a candidate."""

    text: str
    depth: int = 0
    sibling: int = 0


@dataclass
class ElementSnapshot:
    handle: str
    label: str
    aria_label: str = ""
    title: str = ""
    context_blocks: list[CodeBlock] = field(default_factory=list)
    sibling_blocks: list[CodeBlock] = field(default_factory=list)
    width: float = 0.0
    height: float = 0.0
    disabled: bool = False
    pointer_events: str = "auto"
    display: str = "block"
    visibility: str = "visible"
    hidden: bool = False

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ElementSnapshot:
        def _blocks(key: str) -> list[CodeBlock]:
            items = raw.get(key)
            out: list[CodeBlock] = []
            if not isinstance(items, list):
                return out
            for item in items:
                if not isinstance(item, dict):
                    continue
                text = item.get("text")
                if not isinstance(text, str):
                    continue
                out.append(CodeBlock(text=text, depth=int(item.get("depth") or 0), sibling=int(item.get("sibling") or 0)))
            return out

        def _num(key: str) -> float:
            try:
                return float(raw.get(key) or 0)
            except (TypeError, ValueError):
                return 0.0

        return cls(
            handle=str(raw.get("handle") or ""),
            label=str(raw.get("label") or ""),
            aria_label=str(raw.get("ariaLabel") or ""),
            title=str(raw.get("title") or ""),
            context_blocks=_blocks("context"),
            sibling_blocks=_blocks("siblings"),
            width=_num("width"),
            height=_num("height"),
            disabled=bool(raw.get("disabled")),
            pointer_events=str(raw.get("pointerEvents") or "auto"),
            display=str(raw.get("display") or "block"),
            visibility=str(raw.get("visibility") or "visible"),
            hidden=bool(raw.get("hidden")),
        )

    @property
    def normalized_label(self) -> str:
        return self.label.strip().lower()


@dataclass(frozen=True)
class Verdict:
    actionable: bool
    reason: str
    banned_pattern: str | None = None

    @property
    def blocked(self) -> bool:
        return self.banned_pattern is not None


def is_command_label(label: str) -> bool:
    text = label.strip().lower()
    return any(term in text for term in COMMAND_TERMS)


def recover_command_text(element: ElementSnapshot) -> str:
    """Collect code-like text associated with a run/execute control.

    Climbs up to MAX_ANCESTOR_LEVELS, reading up to MAX_PRECEDING_SIBLINGS code blocks
    per level, and stops once enough text was found. Falls back to the control's own
    preceding siblings, then appends its accessible-name attributes.
    """
    parts: list[str] = []
    gathered = 0
    by_depth: dict[int, list[CodeBlock]] = {}
    for block in element.context_blocks:
        if block.depth < MAX_ANCESTOR_LEVELS and block.sibling < MAX_PRECEDING_SIBLINGS:
            by_depth.setdefault(block.depth, []).append(block)
    for depth in sorted(by_depth):
        for block in by_depth[depth]:
            text = block.text.strip()
            if text and len(text) < MAX_BLOCK_CHARS:
                parts.append(text)
                gathered += len(text) + 1
        if gathered > ENOUGH_CONTEXT_CHARS:
            break

    if not parts:
        for block in element.sibling_blocks:
            if block.sibling >= MAX_BUTTON_SIBLINGS:
                continue
            text = block.text.strip()
            if text:
                parts.append(text)

    if element.aria_label:
        parts.append(element.aria_label)
    if element.title:
        parts.append(element.title)
    return " ".join(parts).strip().lower()


def is_interactive(element: ElementSnapshot) -> bool:
    if element.width <= 0 or element.height <= 0:
        return False
    if element.disabled or element.hidden:
        return False
    if element.pointer_events == "none":
        return False
    return element.display != "none" and element.visibility != "hidden"


def classify(element: ElementSnapshot, banned_patterns: Iterable[str] | None = None) -> Verdict:
    text = element.normalized_label
    if not text or len(text) > MAX_LABEL_CHARS:
        return Verdict(False, "label_length")
    if any(term in text for term in REJECT_TERMS):
        return Verdict(False, "reject_term")
    if not any(term in text for term in ACCEPT_TERMS):
        return Verdict(False, "no_accept_term")

    if is_command_label(text):
        command_text = recover_command_text(element)
        # The label itself can carry the command ("Run: rm -rf /").
        haystack = f"{text} {command_text}".strip()
        pattern = match_banned(haystack, list(banned_patterns or []))
        if pattern is not None:
            return Verdict(False, "banned", banned_pattern=pattern)

    if not is_interactive(element):
        return Verdict(False, "not_interactive")
    return Verdict(True, "accept")


def is_actionable(element: ElementSnapshot, banned_patterns: Iterable[str] | None = None) -> bool:
    return classify(element, banned_patterns).actionable


__all__ = [
    "ACCEPT_TERMS",
    "REJECT_TERMS",
    "CodeBlock",
    "ElementSnapshot",
    "Verdict",
    "classify",
    "is_actionable",
    "is_command_label",
    "is_interactive",
    "recover_command_text",
]
