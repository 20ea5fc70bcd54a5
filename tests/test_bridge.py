from __future__ import annotations

import threading
from typing import Any

import pytest


class _Controller:
    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def dispatch(self, entry: str, *args: Any) -> Any:
        self.calls.append((entry, args))
        if entry == "hang":
            self.release.wait(5)
        if entry == "explode":
            raise RuntimeError("renderer gone")
        return {"entry": entry}


def test_unknown_target_is_a_bridge_error() -> None:
    from auto_accept.host.bridge import BridgeError, LocalBridge

    bridge = LocalBridge(timeout=0.5)
    try:
        with pytest.raises(BridgeError, match="not attached"):
            bridge.evaluate("missing", "getStats")
    finally:
        bridge.close()


def test_timeouts_and_surface_exceptions_become_bridge_errors() -> None:
    from auto_accept.host.bridge import BridgeError, LocalBridge

    controller = _Controller()
    bridge = LocalBridge(timeout=0.1)
    bridge.attach("p1", controller)  # type: ignore[arg-type]
    try:
        with pytest.raises(BridgeError, match="timed out"):
            bridge.evaluate("p1", "hang")
        with pytest.raises(BridgeError, match="renderer gone"):
            bridge.evaluate("p1", "explode")
    finally:
        controller.release.set()
        bridge.close()


def test_inject_starts_and_stop_all_reaches_every_target() -> None:
    from auto_accept.host.bridge import LocalBridge

    a, b = _Controller(), _Controller()
    bridge = LocalBridge()
    bridge.attach("a", a)  # type: ignore[arg-type]
    bridge.attach("b", b)  # type: ignore[arg-type]
    try:
        assert bridge.inject("a", {"ide": "cursor"}) == {"entry": "start"}
        bridge.stop_all()
    finally:
        bridge.close()

    assert a.calls == [("start", ({"ide": "cursor"},)), ("stop", ())]
    assert b.calls == [("stop", ())]
    assert bridge.refresh() == ["a", "b"]


def test_cli_parser_accepts_subcommands() -> None:
    from auto_accept.main import build_parser

    parser = build_parser()
    args = parser.parse_args(["config", "--frequency", "500", "--background", "off"])
    assert args.frequency == 500
    assert args.background is False
    assert parser.parse_args(["run", "--enable"]).enable is True
    with pytest.raises(SystemExit):
        parser.parse_args(["config", "--background", "maybe"])


def test_release_all_abandons_controllers_without_dispatching() -> None:
    from auto_accept.host.bridge import LocalBridge

    class _Abandonable(_Controller):
        def __init__(self) -> None:
            super().__init__()
            self.abandoned = 0

        def abandon(self) -> None:
            self.abandoned += 1

    a = _Abandonable()
    bridge = LocalBridge()
    bridge.attach("a", a)  # type: ignore[arg-type]
    try:
        bridge.release_all()
    finally:
        bridge.close()

    assert a.abandoned == 1
    assert a.calls == []
