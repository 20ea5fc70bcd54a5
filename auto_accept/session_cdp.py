"""Raw CDP plumbing: WebSocket connection, target discovery, Runtime.evaluate.

The surface driver builds on this; nothing here knows about chat UIs.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from contextlib import suppress
from typing import Any

import websocket

from .config import AutoAcceptConfig
from .http_client import HttpClientError, http_get_json_list

_LOGGER = logging.getLogger("auto_accept.session_cdp")

# Target types that can host the assistant's chat markup.
_DEFAULT_TARGET_TYPES = {"page", "webview", "iframe"}


class CdpConnection:
    """Low-level CDP WebSocket connection.

    Thread-safe at the command level: one command is on the wire at a time, so the
    click loop and the tab loop can share a connection.
    """

    def __init__(self, ws_url: str, timeout: float = 5.0):
        self.ws = websocket.create_connection(ws_url, timeout=timeout)
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        self._lock = threading.Lock()

    def send(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        with self._lock:
            msg_id = self._next_id
            self._next_id += 1

            msg: dict[str, Any] = {"id": msg_id, "method": method}
            if params:
                msg["params"] = params

            try:
                with suppress(Exception):
                    self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
                self.ws.send(json.dumps(msg))
            except Exception as exc:  # noqa: BLE001
                raise HttpClientError(str(exc)) from exc

            return self._recv_until(msg_id, timeout if timeout is not None else self.timeout)

    def _recv_until(self, expected_id: int, timeout: float) -> dict[str, Any]:
        """Wait for response with specific ID; events are dropped."""
        deadline = time.time() + timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise HttpClientError("CDP response timed out")

            # Keep the socket timeout small so our own deadline is enforced.
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except Exception as exc:  # noqa: BLE001
                msg = str(exc).lower()
                if isinstance(exc, TimeoutError) or "timed out" in msg:
                    continue
                raise HttpClientError(str(exc)) from exc

            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue

            if isinstance(data, dict) and data.get("id") == expected_id:
                if "error" in data:
                    raise HttpClientError(str(data["error"]))
                result = data.get("result")
                return result if isinstance(result, dict) else {}

    def evaluate(self, expression: str, *, timeout: float | None = None) -> Any:
        """Evaluate JavaScript in the page and return its JSON value (undefined/null -> None)."""
        result = self.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
            timeout=timeout,
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            text = exc.get("description") or details.get("text") or "JavaScript exception"
            raise HttpClientError(str(text)[:500])
        remote = result.get("result") if isinstance(result.get("result"), dict) else {}
        if remote.get("type") == "undefined" or remote.get("subtype") == "null":
            return None
        return remote.get("value")

    def abort(self) -> None:
        """Best-effort hard break of the underlying socket."""
        try:
            sock = getattr(self.ws, "sock", None)
        except Exception:
            sock = None
        if sock is not None:
            with suppress(Exception):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(Exception):
                sock.close()

    def close(self) -> None:
        # Raw-socket shutdown; websocket-client close() can hang on a wedged renderer.
        with suppress(Exception):
            self.abort()


def discover_port(config: AutoAcceptConfig, *, timeout: float = 1.0) -> int | None:
    """Return the first port in the configured range that answers `/json/version`."""
    for port in config.candidate_ports():
        try:
            version = http_get_json_list(f"http://{config.cdp_host}:{port}/json/version", timeout=timeout)
        except HttpClientError:
            continue
        if isinstance(version, dict):
            return port
    return None


def is_cdp_available(config: AutoAcceptConfig) -> bool:
    return discover_port(config) is not None


def list_targets(config: AutoAcceptConfig, port: int) -> list[dict[str, Any]]:
    """List CDP targets that may contain chat UI, with a debugger URL."""
    raw = http_get_json_list(f"http://{config.cdp_host}:{port}/json/list")
    if not isinstance(raw, list):
        return []
    wanted = _DEFAULT_TARGET_TYPES | set(config.extra_target_types)
    out: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        if str(item.get("type") or "").lower() not in wanted:
            continue
        ws_url = item.get("webSocketDebuggerUrl")
        target_id = item.get("id")
        if not (isinstance(ws_url, str) and ws_url and isinstance(target_id, str) and target_id):
            continue
        out.append({"id": target_id, "type": item.get("type"), "url": item.get("url") or "", "ws": ws_url})
    return out


__all__ = ["CdpConnection", "discover_port", "is_cdp_available", "list_targets"]
