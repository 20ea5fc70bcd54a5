from __future__ import annotations

import threading
from pathlib import Path
from typing import Any


class _FakeBridge:
    def __init__(self, targets: list[str], *, requests: set[str] | None = None, stats: dict[str, Any] | None = None):
        self._targets = targets
        self.requests = set(requests or ())
        self.stats = stats if stats is not None else {"clicks": 2, "blocked": 1, "fileEdits": 1, "terminalCommands": 1}
        self.text = "The assistant refactored the parser and fixed two failing tests."
        self.calls: list[tuple[str, str, tuple[Any, ...]]] = []

    def targets(self) -> list[str]:
        return list(self._targets)

    def refresh(self) -> list[str]:
        return self.targets()

    def evaluate(self, target_id: str, entry: str, *args: Any) -> Any:
        self.calls.append((target_id, entry, args))
        if entry == "consumeSummaryRequest":
            if target_id in self.requests:
                self.requests.discard(target_id)
                return {"requested": True, "requestedAt": 1.0}
            return {"requested": False}
        if entry == "getStats":
            return dict(self.stats)
        if entry == "getVisibleConversationText":
            return self.text
        return True

    def inject(self, target_id: str, config: dict[str, Any]) -> Any:
        return self.evaluate(target_id, "start", config)

    def stop_all(self) -> None:
        pass

    def pushed(self, target_id: str) -> list[dict[str, Any]]:
        return [args[0] for (tid, entry, args) in self.calls if tid == target_id and entry == "setSummaryResult"]


def _pipeline(tmp_path: Path, bridge: _FakeBridge, poster):
    from auto_accept.config import AutoAcceptConfig
    from auto_accept.host.session_log import SessionLog
    from auto_accept.host.store import StateStore
    from auto_accept.host.summary import SummaryPipeline
    from auto_accept.host.ui import LoggingHostUi

    config = AutoAcceptConfig(state_dir=str(tmp_path), api_base="https://api.test/api")
    store = StateStore(config.state_file)
    store.set("auto-accept-userId", "user-1")
    ui = LoggingHostUi()
    return SummaryPipeline(bridge, SessionLog(), store, config, ui, poster=poster), ui


def test_generate_posts_payload_and_pushes_success(tmp_path: Path) -> None:
    posted: list[tuple[str, dict[str, Any], float]] = []

    def poster(url: str, payload: dict[str, Any], config: Any, timeout: float) -> dict[str, Any]:  # noqa: ARG001
        posted.append((url, payload, timeout))
        return {"summary": "  Refactored parser.  "}

    bridge = _FakeBridge(["p1", "p2"])
    bridge.text = "mail me at dev@example.com about it"
    pipeline, ui = _pipeline(tmp_path, bridge, poster)

    outcome = pipeline.generate("p1")

    assert outcome.summary == "Refactored parser."
    assert len(posted) == 1
    url, payload, timeout = posted[0]
    assert url == "https://api.test/api/session-summary"
    assert timeout == 8.0
    assert payload["userId"] == "user-1"
    assert payload["stats"] == {"clicks": 4, "blocked": 2, "fileEdits": 2, "terminalCommands": 2}
    assert "[REDACTED_EMAIL]" in payload["visibleConversationText"]
    assert set(payload["sessionMeta"]) >= {"sessionId", "startedAt", "endedAt", "generatedAt", "ide", "backgroundMode"}
    statuses = [p["status"] for p in bridge.pushed("p1")]
    assert statuses == ["loading", "success"]
    assert [n.message for n in ui.notifications] == ["Auto Accept: Session summary ready."]


def test_concurrent_request_returns_in_flight_indicator(tmp_path: Path) -> None:
    entered = threading.Event()
    release = threading.Event()
    calls: list[int] = []

    def poster(url: str, payload: dict[str, Any], config: Any, timeout: float) -> dict[str, Any]:  # noqa: ARG001
        calls.append(1)
        entered.set()
        release.wait(5)
        return {"summary": "done"}

    pipeline, ui = _pipeline(tmp_path, _FakeBridge(["p1"]), poster)
    worker = threading.Thread(target=pipeline.generate, args=("p1",), kwargs={"silent": True})
    worker.start()
    assert entered.wait(5)

    second = pipeline.generate("p1")
    release.set()
    worker.join(5)

    assert second.in_progress is True
    assert len(calls) == 1
    assert any("already in progress" in n.message for n in ui.notifications)
    assert pipeline.in_flight is False


def test_failure_pushes_error_and_reraises_for_commands(tmp_path: Path) -> None:
    import pytest

    from auto_accept.host.summary import FAILED_MESSAGE, SummaryError
    from auto_accept.http_client import HttpClientError

    def poster(url: str, payload: dict[str, Any], config: Any, timeout: float) -> dict[str, Any]:  # noqa: ARG001
        raise HttpClientError("HTTP 502")

    bridge = _FakeBridge(["p1"])
    pipeline, ui = _pipeline(tmp_path, bridge, poster)

    with pytest.raises(SummaryError):
        pipeline.generate("p1", raise_errors=True)

    assert bridge.pushed("p1")[-1] == {"status": "error", "error": FAILED_MESSAGE}
    assert ui.notifications[-1].level == "error"
    assert pipeline.in_flight is False


def test_empty_summary_text_is_a_failure(tmp_path: Path) -> None:
    def poster(url: str, payload: dict[str, Any], config: Any, timeout: float) -> dict[str, Any]:  # noqa: ARG001
        return {"summary": "   "}

    bridge = _FakeBridge(["p1"])
    pipeline, _ = _pipeline(tmp_path, bridge, poster)

    outcome = pipeline.generate("p1", silent=True)
    assert outcome.summary == ""
    assert bridge.pushed("p1")[-1]["status"] == "error"


def test_nothing_to_summarize_never_calls_the_api(tmp_path: Path) -> None:
    import pytest

    from auto_accept.host.summary import NOT_ENOUGH_DATA_MESSAGE, SummaryError

    calls: list[int] = []

    def poster(url: str, payload: dict[str, Any], config: Any, timeout: float) -> dict[str, Any]:  # noqa: ARG001
        calls.append(1)
        return {"summary": "x"}

    bridge = _FakeBridge(["p1"], stats={})
    bridge.text = ""
    pipeline, _ = _pipeline(tmp_path, bridge, poster)

    with pytest.raises(SummaryError, match=NOT_ENOUGH_DATA_MESSAGE):
        pipeline.generate("p1", silent=True, raise_errors=True)
    assert calls == []


def test_poll_serves_first_request_and_shares_result(tmp_path: Path) -> None:
    calls: list[int] = []

    def poster(url: str, payload: dict[str, Any], config: Any, timeout: float) -> dict[str, Any]:  # noqa: ARG001
        calls.append(1)
        return {"summary": "Shared recap"}

    bridge = _FakeBridge(["p1", "p2", "p3"], requests={"p1", "p3"})
    pipeline, ui = _pipeline(tmp_path, bridge, poster)

    assert pipeline.poll() == 2
    assert len(calls) == 1
    assert bridge.pushed("p1")[-1]["summary"] == "Shared recap"
    assert bridge.pushed("p3")[-1] == {
        "status": "success",
        "summary": "Shared recap",
        "generatedAt": pipeline.last.generated_at if pipeline.last else "",
    }
    assert bridge.pushed("p2") == []
    assert ui.notifications == []

    assert pipeline.poll() == 0
