"""Request/response bridge between the host and per-target surface controllers.

Every call runs on a small thread pool with a timeout; a timeout, a vanished
target or any exception raised by the surface becomes `BridgeError`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from contextlib import suppress
from typing import Any, Protocol

from ..config import AutoAcceptConfig
from ..http_client import HttpClientError
from ..session_cdp import CdpConnection, discover_port, list_targets
from ..surface.controller import SurfaceController
from ..surface.dom import CdpSurfaceDriver

_LOGGER = logging.getLogger("auto_accept.host.bridge")


class BridgeError(Exception):
    pass


class Bridge(Protocol):
    def targets(self) -> list[str]: ...

    def refresh(self) -> list[str]: ...

    def inject(self, target_id: str, config: dict[str, Any]) -> Any: ...

    def evaluate(self, target_id: str, entry: str, *args: Any) -> Any: ...

    def stop_all(self) -> None: ...

    def release_all(self) -> None: ...


class LocalBridge:
    """Bridge over in-process `SurfaceController`s keyed by target id."""

    def __init__(self, *, timeout: float = 5.0, max_workers: int = 4):
        self.timeout = timeout
        self._controllers: dict[str, SurfaceController] = {}
        self._lock = threading.Lock()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="auto-accept-bridge")

    def attach(self, target_id: str, controller: SurfaceController) -> None:
        with self._lock:
            self._controllers[target_id] = controller

    def detach(self, target_id: str) -> SurfaceController | None:
        with self._lock:
            return self._controllers.pop(target_id, None)

    def targets(self) -> list[str]:
        with self._lock:
            return list(self._controllers)

    def refresh(self) -> list[str]:
        return self.targets()

    def _controller(self, target_id: str) -> SurfaceController:
        with self._lock:
            controller = self._controllers.get(target_id)
        if controller is None:
            raise BridgeError(f"Target {target_id} is not attached")
        return controller

    def evaluate(self, target_id: str, entry: str, *args: Any) -> Any:
        controller = self._controller(target_id)
        future = self._pool.submit(controller.dispatch, entry, *args)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout as exc:
            future.cancel()
            raise BridgeError(f"{entry} on {target_id} timed out after {self.timeout}s") from exc
        except BridgeError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise BridgeError(f"{entry} on {target_id} failed: {exc}") from exc

    def inject(self, target_id: str, config: dict[str, Any]) -> Any:
        return self.evaluate(target_id, "start", config)

    def stop_all(self) -> None:
        for target_id in self.targets():
            try:
                self.evaluate(target_id, "stop")
            except BridgeError as exc:
                _LOGGER.warning("stop failed on %s: %s", target_id, exc)

    def release_all(self) -> None:
        """Cancel every local loop generation without touching the page.

        Used when another process took the lease and now owns the renderer.
        """
        with self._lock:
            controllers = list(self._controllers.values())
        for controller in controllers:
            controller.abandon()

    def close(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)


class CdpBridge(LocalBridge):
    """LocalBridge whose controllers drive real page targets over CDP."""

    def __init__(self, config: AutoAcceptConfig):
        super().__init__(timeout=config.bridge_timeout)
        self.config = config
        self._connections: dict[str, CdpConnection] = {}

    def _connect(self, target: dict[str, Any]) -> None:
        conn = CdpConnection(target["ws"], timeout=self.config.bridge_timeout)
        self._connections[target["id"]] = conn
        self.attach(target["id"], SurfaceController(CdpSurfaceDriver(conn, timeout=self.config.bridge_timeout)))
        _LOGGER.info("Attached to %s target %s (%s)", target.get("type"), target["id"], str(target.get("url"))[:80])

    def _drop(self, target_id: str) -> None:
        controller = self.detach(target_id)
        if controller is not None:
            controller.abandon()
        conn = self._connections.pop(target_id, None)
        if conn is not None:
            conn.close()
        _LOGGER.info("Detached from target %s", target_id)

    def refresh(self) -> list[str]:
        """Reconcile attached controllers with the live target list."""
        port = discover_port(self.config)
        if port is None:
            raise BridgeError(f"No CDP endpoint on {self.config.cdp_host}:{self.config.cdp_port}±{self.config.cdp_port_spread}")
        try:
            live = list_targets(self.config, port)
        except HttpClientError as exc:
            raise BridgeError(str(exc)) from exc

        live_ids = {t["id"] for t in live}
        for target_id in set(self.targets()) - live_ids:
            self._drop(target_id)
        known = set(self.targets())
        for target in live:
            if target["id"] in known:
                continue
            try:
                self._connect(target)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Could not attach to %s: %s", target["id"], exc)
        return self.targets()

    def close(self) -> None:
        for target_id in list(self._connections):
            with suppress(Exception):
                self._drop(target_id)
        super().close()


__all__ = ["Bridge", "BridgeError", "CdpBridge", "LocalBridge"]
