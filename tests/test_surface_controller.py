from __future__ import annotations

from typing import Any


class _FakeDriver:
    def __init__(self) -> None:
        self.scripts: list[str] = []
        self.candidates: list[dict[str, Any]] = []
        self.activated: list[str] = []
        self.snapshots = 0
        self.listener_removed = 0
        self.text = "assistant said something useful about the refactor"

    def snapshot(self, ide: str):  # noqa: ARG002
        from auto_accept.surface.dom import Snapshot

        self.snapshots += 1
        return Snapshot.from_dict({"candidates": self.candidates})

    def activate(self, handle: str) -> bool:
        self.activated.append(handle)
        return True

    def remove_input_listener(self) -> None:
        self.listener_removed += 1

    def visible_text(self, max_chars: int) -> str:
        return self.text[:max_chars]

    def run_script(self, script: str) -> Any:
        self.scripts.append(script)
        return True


def _controller():
    from auto_accept.surface.controller import SurfaceController

    driver = _FakeDriver()
    return SurfaceController(driver, spawn_threads=False), driver


def test_start_twice_leaves_one_generation() -> None:
    controller, driver = _controller()

    controller.start({"ide": "cursor", "pollInterval": 500})
    first_loop = controller.click_loop
    controller.start({"ide": "cursor", "pollInterval": 800})
    second_loop = controller.click_loop

    assert first_loop is not None and second_loop is not None
    assert controller.epoch == 2
    assert first_loop.token.is_active() is False
    assert second_loop.token.is_active() is True

    driver.candidates = [{"handle": "aa1", "label": "Accept", "width": 10, "height": 10}]
    assert first_loop.step() is None
    assert driver.activated == []
    assert second_loop.step() is not None
    assert driver.activated == ["aa1"]


def test_same_loop_key_refreshes_banned_list_in_place() -> None:
    controller, _ = _controller()

    first = controller.start({"ide": "cursor", "bannedCommands": ["rm -rf /"]})
    again = controller.start({"ide": "cursor", "bannedCommands": ["mkfs."]})

    assert first["started"] is True
    assert again["started"] is False
    assert controller.epoch == 1
    assert controller.state is not None
    assert controller.state.banned_patterns == ["mkfs."]


def test_restart_hands_undrained_counters_over() -> None:
    controller, _ = _controller()

    controller.start({"ide": "cursor"})
    assert controller.state is not None
    controller.state.counters.accepted = 4
    controller.start({"ide": "cursor", "isBackgroundMode": True})

    assert controller.reset_stats()["clicks"] == 4
    assert controller.get_stats()["clicks"] == 0


def test_background_start_mounts_overlay_and_tab_cycler() -> None:
    from auto_accept.surface import js_snippets

    controller, driver = _controller()
    controller.start({"ide": "antigravity", "isBackgroundMode": True})

    assert controller.tab_cycler is not None
    assert js_snippets.MOUNT_OVERLAY_JS in driver.scripts
    assert js_snippets.MOUNT_SUMMARY_WIDGET_JS not in driver.scripts


def test_stop_cancels_loops_and_cleans_up() -> None:
    from auto_accept.surface import js_snippets

    controller, driver = _controller()
    controller.start({"ide": "cursor"})
    loop = controller.click_loop
    controller.stop()

    assert loop is not None and loop.step() is None
    assert driver.snapshots == 0
    assert driver.listener_removed == 1
    assert js_snippets.DISMOUNT_OVERLAY_JS in driver.scripts
    assert js_snippets.DISMOUNT_SUMMARY_WIDGET_JS in driver.scripts


def test_consume_summary_request_is_one_shot() -> None:
    controller, _ = _controller()
    controller.start({"ide": "cursor"})
    assert controller.state is not None
    controller.state.pending_summary_request = True
    controller.state.summary_requested_at = 12.5

    assert controller.dispatch("consumeSummaryRequest") == {"requested": True, "requestedAt": 12.5}
    assert controller.dispatch("consumeSummaryRequest") == {"requested": False}


def test_set_summary_result_caches_success() -> None:
    controller, driver = _controller()
    controller.start({"ide": "cursor"})

    controller.dispatch("setSummaryResult", {"status": "success", "summary": "Did things", "generatedAt": "now"})

    assert controller.state is not None
    assert controller.state.last_summary == "Did things"
    assert any('"Did things"' in s for s in driver.scripts)


def test_away_actions_are_read_and_zeroed() -> None:
    controller, _ = _controller()
    controller.start({"ide": "cursor"})
    controller.dispatch("setFocusState", False)
    assert controller.state is not None
    assert controller.state.focused is False
    controller.state.away_actions = 3

    assert controller.dispatch("getAwayActions") == 3
    assert controller.dispatch("getAwayActions") == 0


def test_visible_text_is_capped() -> None:
    controller, _ = _controller()
    assert controller.dispatch("getVisibleConversationText", 9) == "assistant"


def test_unknown_entry_point_raises() -> None:
    import pytest

    controller, _ = _controller()
    with pytest.raises(ValueError):
        controller.dispatch("eval", "1+1")


def test_overlay_mounts_are_idempotent() -> None:
    from auto_accept.surface import js_snippets
    from auto_accept.surface.overlay import OverlayRenderer

    driver = _FakeDriver()
    renderer = OverlayRenderer(driver)
    renderer.mount_progress_overlay()
    renderer.mount_progress_overlay()
    renderer.mount_summary_widget()
    renderer.mount_summary_widget()

    assert driver.scripts.count(js_snippets.MOUNT_OVERLAY_JS) == 1
    assert driver.scripts.count(js_snippets.MOUNT_SUMMARY_WIDGET_JS) == 1

    renderer.dismount_all()
    renderer.mount_progress_overlay()
    assert driver.scripts.count(js_snippets.MOUNT_OVERLAY_JS) == 2


def test_summary_state_before_mount_is_ignored() -> None:
    from auto_accept.surface.overlay import OverlayRenderer

    driver = _FakeDriver()
    renderer = OverlayRenderer(driver)
    renderer.set_summary_state({"status": "loading"})
    assert driver.scripts == []


class _ReloadingDriver(_FakeDriver):
    """Tracks which UI containers exist in the current document."""

    def __init__(self) -> None:
        super().__init__()
        self.present: set[str] = set()

    def reload(self) -> None:
        self.present.clear()

    def run_script(self, script: str) -> Any:
        from auto_accept.surface import js_snippets

        self.scripts.append(script)
        mounts = {js_snippets.MOUNT_OVERLAY_JS: "overlay", js_snippets.MOUNT_SUMMARY_WIDGET_JS: "widget"}
        dismounts = {js_snippets.DISMOUNT_OVERLAY_JS: "overlay", js_snippets.DISMOUNT_SUMMARY_WIDGET_JS: "widget"}
        if script in mounts:
            if mounts[script] in self.present:
                return False
            self.present.add(mounts[script])
            return True
        if script in dismounts:
            self.present.discard(dismounts[script])
        return True


def test_summary_widget_returns_after_document_reload() -> None:
    from auto_accept.surface.controller import SurfaceController

    driver = _ReloadingDriver()
    controller = SurfaceController(driver, spawn_threads=False)
    config = {"ide": "cursor", "pollInterval": 1000}

    controller.start(config)
    assert "widget" in driver.present
    driver.reload()

    result = controller.start(config)

    assert result == {"started": False, "epoch": 1}
    assert "widget" in driver.present


def test_progress_overlay_returns_after_document_reload() -> None:
    from auto_accept.surface.controller import SurfaceController

    driver = _ReloadingDriver()
    controller = SurfaceController(driver, spawn_threads=False)
    config = {"ide": "antigravity", "isBackgroundMode": True}

    controller.start(config)
    driver.reload()
    controller.start(config)
    controller.start(config)

    assert driver.present == {"overlay"}
    assert controller.epoch == 1
