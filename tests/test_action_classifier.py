from __future__ import annotations

from typing import Any


def _element(label: str, **kw: Any):
    from auto_accept.surface.classifier import ElementSnapshot

    defaults: dict[str, Any] = {"handle": "aa1", "label": label, "width": 80.0, "height": 24.0}
    defaults.update(kw)
    return ElementSnapshot(**defaults)


def test_cancel_is_never_actionable_even_with_accept() -> None:
    from auto_accept.surface.classifier import classify

    verdict = classify(_element("Cancel"), [])
    assert verdict.actionable is False
    assert classify(_element("Accept or Cancel"), []).reason == "reject_term"


def test_accept_terms_are_actionable() -> None:
    from auto_accept.surface.classifier import is_actionable

    for label in ("Accept", "Accept all", "Apply", "Retry", "Always Allow", "Confirm"):
        assert is_actionable(_element(label), []) is True, label


def test_label_without_accept_term_or_too_long() -> None:
    from auto_accept.surface.classifier import classify

    assert classify(_element("Open file"), []).reason == "no_accept_term"
    assert classify(_element("Accept " + "x" * 60), []).reason == "label_length"
    assert classify(_element("   "), []).reason == "label_length"


def test_banned_command_in_label_blocks_run() -> None:
    from auto_accept.surface.classifier import classify

    verdict = classify(_element("Run: rm -rf /"), ["rm -rf /"])
    assert verdict.actionable is False
    assert verdict.blocked is True
    assert verdict.banned_pattern == "rm -rf /"

    assert classify(_element("Run: rm -rf /"), []).actionable is True


def test_banned_command_recovered_from_nearby_code_block() -> None:
    from auto_accept.surface.classifier import CodeBlock, classify

    el = _element("Run", context_blocks=[CodeBlock("sudo mkfs.ext4 /dev/sdb1", depth=1, sibling=0)])
    verdict = classify(el, ["mkfs."])
    assert verdict.blocked is True

    # Non-command labels never consult the banned list.
    assert classify(_element("Accept", context_blocks=[CodeBlock("mkfs.ext4")]), ["mkfs."]).actionable is True


def test_recover_command_text_stops_after_enough_context() -> None:
    from auto_accept.surface.classifier import CodeBlock, ElementSnapshot, recover_command_text

    el = ElementSnapshot(
        handle="h",
        label="Run",
        context_blocks=[
            CodeBlock("npm install left-pad", depth=0),
            CodeBlock("rm -rf ~", depth=3),
        ],
    )
    assert recover_command_text(el) == "npm install left-pad"


def test_recover_command_text_falls_back_to_siblings_and_attributes() -> None:
    from auto_accept.surface.classifier import CodeBlock, ElementSnapshot, recover_command_text

    el = ElementSnapshot(
        handle="h",
        label="Run",
        aria_label="Run command",
        title="Execute in terminal",
        sibling_blocks=[CodeBlock("ls -la", sibling=0), CodeBlock("ignored", sibling=3)],
    )
    assert recover_command_text(el) == "ls -la run command execute in terminal"


def test_non_interactive_elements_are_skipped() -> None:
    from auto_accept.surface.classifier import classify

    assert classify(_element("Accept", width=0.0), []).reason == "not_interactive"
    assert classify(_element("Accept", disabled=True), []).reason == "not_interactive"
    assert classify(_element("Accept", pointer_events="none"), []).reason == "not_interactive"
    assert classify(_element("Accept", display="none"), []).reason == "not_interactive"
    assert classify(_element("Accept", visibility="hidden"), []).reason == "not_interactive"


def test_snapshot_from_dict_tolerates_junk() -> None:
    from auto_accept.surface.classifier import ElementSnapshot

    el = ElementSnapshot.from_dict(
        {
            "handle": "aa7",
            "label": "Accept",
            "context": [{"text": "echo hi", "depth": 2}, "junk", {"text": 5}],
            "width": "12.5",
            "height": None,
            "pointerEvents": "auto",
        }
    )
    assert el.handle == "aa7"
    assert [b.text for b in el.context_blocks] == ["echo hi"]
    assert el.width == 12.5
    assert el.height == 0.0
