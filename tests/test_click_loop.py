from __future__ import annotations

from typing import Any


class _FakeDriver:
    def __init__(self, candidates: list[dict[str, Any]], *, user_input_at_ms: float = 0, summary_click_at_ms: float = 0):
        self.candidates = candidates
        self.user_input_at_ms = user_input_at_ms
        self.summary_click_at_ms = summary_click_at_ms
        self.activated: list[str] = []
        self.snapshots = 0
        self.fail_handles: set[str] = set()

    def snapshot(self, ide: str):  # noqa: ARG002
        from auto_accept.surface.dom import Snapshot

        self.snapshots += 1
        return Snapshot.from_dict(
            {
                "candidates": self.candidates,
                "userInputAt": self.user_input_at_ms,
                "summaryClickAt": self.summary_click_at_ms,
            }
        )

    def activate(self, handle: str) -> bool:
        if handle in self.fail_handles:
            raise RuntimeError("node detached")
        self.activated.append(handle)
        return True


def _button(handle: str, label: str, **kw: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {"handle": handle, "label": label, "width": 60, "height": 20}
    raw.update(kw)
    return raw


def _loop(driver: _FakeDriver, *, banned: list[str] | None = None, now: float = 1_000.0):
    from auto_accept.surface.click_loop import ClickLoop
    from auto_accept.surface.state import AutomationState, CancelToken, StartConfig

    state = AutomationState.for_start(1, StartConfig(banned_patterns=list(banned or [])))
    token = CancelToken(1, lambda: 1)
    return ClickLoop(state, driver, token, clock=lambda: now), state, token


def test_banned_run_is_blocked_once_and_never_activated() -> None:
    driver = _FakeDriver([_button("aa1", "Run: rm -rf /")])
    loop, state, _ = _loop(driver, banned=["rm -rf /"])

    result = loop.step()

    assert result is not None
    assert driver.activated == []
    assert state.counters.blocked == 1
    assert state.counters.accepted == 0


def test_accept_and_run_update_counters() -> None:
    driver = _FakeDriver(
        [
            _button("aa1", "Accept all"),
            _button("aa2", "Run command"),
            _button("aa3", "Always allow"),
            _button("aa4", "Cancel"),
        ]
    )
    loop, state, _ = _loop(driver)

    result = loop.step()

    assert result is not None and result.activated == 3
    assert driver.activated == ["aa1", "aa2", "aa3"]
    assert state.counters.to_dict() == {"clicks": 3, "blocked": 0, "fileEdits": 1, "terminalCommands": 1}


def test_recent_user_input_pauses_the_tick() -> None:
    now = 1_000.0
    driver = _FakeDriver([_button("aa1", "Accept")], user_input_at_ms=(now - 0.5) * 1000)
    loop, state, _ = _loop(driver, now=now)

    result = loop.step()

    assert result is not None and result.paused is True
    assert driver.activated == []
    assert state.pause_until == now - 0.5 + 1.5


def test_old_user_input_does_not_pause() -> None:
    now = 1_000.0
    driver = _FakeDriver([_button("aa1", "Accept")], user_input_at_ms=(now - 5) * 1000)
    loop, _, _ = _loop(driver, now=now)

    result = loop.step()
    assert result is not None and result.paused is False
    assert driver.activated == ["aa1"]


def test_one_failing_element_does_not_stop_the_others() -> None:
    driver = _FakeDriver([_button("aa1", "Accept"), _button("aa2", "Apply")])
    driver.fail_handles.add("aa1")
    loop, state, _ = _loop(driver)

    result = loop.step()

    assert result is not None and result.errors == 1
    assert driver.activated == ["aa2"]
    assert state.counters.accepted == 1


def test_summary_click_is_latched_once() -> None:
    driver = _FakeDriver([], summary_click_at_ms=900_000)
    loop, state, _ = _loop(driver)

    loop.step()
    assert state.pending_summary_request is True
    assert state.summary_requested_at == 900.0

    state.pending_summary_request = False
    loop.step()
    assert state.pending_summary_request is False


def test_dead_token_makes_step_a_noop() -> None:
    driver = _FakeDriver([_button("aa1", "Accept")])
    loop, state, token = _loop(driver)
    token.cancel()

    assert loop.step() is None
    assert driver.snapshots == 0
    assert driver.activated == []
    assert state.counters.accepted == 0


def test_unfocused_clicks_count_as_away_actions() -> None:
    driver = _FakeDriver([_button("aa1", "Accept")])
    loop, state, _ = _loop(driver)
    state.focused = False

    loop.step()
    assert state.away_actions == 1
