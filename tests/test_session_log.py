from __future__ import annotations

import logging


def test_redaction_masks_keys_tokens_and_emails() -> None:
    from auto_accept.host.redaction import redact_text

    text = "key sk-abcdefghijklmnopqrstu Authorization: Bearer abc.def mail dev@example.com ok"
    out = redact_text(text)
    assert "[REDACTED_KEY]" in out
    assert "Authorization: Bearer [REDACTED_TOKEN]" in out
    assert "[REDACTED_EMAIL]" in out
    assert out.endswith(" ok")
    assert redact_text("sk-short") == "sk-short"


def test_lines_are_redacted_capped_and_bounded() -> None:
    from auto_accept.host.session_log import SessionLog

    log = SessionLog(limit=3, max_chars=20)
    log.append("contact me at a@b.io please")
    log.append("x" * 100)
    log.append("")
    log.append("third")
    log.append("fourth")

    lines = log.lines()
    assert len(lines) == 3
    assert lines[0] == "x" * 20
    assert lines[1:] == ["third", "fourth"]


def test_email_line_is_redacted_before_capping() -> None:
    from auto_accept.host.session_log import SessionLog

    log = SessionLog()
    log.append("contact me at a@b.io please")
    assert log.lines() == ["contact me at [REDACTED_EMAIL] please"]


def test_session_start_is_idempotent_and_end_marks_it() -> None:
    from auto_accept.host.session_log import SessionLog

    log = SessionLog()
    first = log.ensure_session_started("Cursor", background_mode=True)
    second = log.ensure_session_started("cursor")
    assert first is second
    assert first.ide == "cursor"
    assert first.background_mode is True

    ended = log.end_session()
    assert ended is first and ended.ended_at is not None
    assert log.end_session() is None

    third = log.ensure_session_started("cursor")
    assert third.session_id != first.session_id
    assert log.lines()[0].startswith("[SESSION] Started")


def test_handler_captures_package_log_records() -> None:
    from auto_accept.host.session_log import SessionLog

    log = SessionLog()
    logger = logging.getLogger("auto_accept.test")
    root = logging.getLogger("auto_accept")
    previous = root.level
    root.setLevel(logging.INFO)
    root.addHandler(log)
    try:
        logger.info("Clicked %r for ops@corp.dev", "Accept")
    finally:
        root.removeHandler(log)
        root.setLevel(previous)
    assert len(log.lines()) == 1
    assert "Clicked 'Accept'" in log.lines()[0]
    assert "[REDACTED_EMAIL]" in log.lines()[0]
