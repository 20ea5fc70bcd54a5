"""License verification against the backend, with retries and activation polling."""

from __future__ import annotations

import logging
import threading
import time
import urllib.parse
from collections.abc import Callable

from ..config import AutoAcceptConfig
from ..http_client import HttpClientError, http_get_json
from .store import KEY_LAST_VERIFIED, KEY_USER_ID, StateStore

_LOGGER = logging.getLogger("auto_accept.host.license")

LICENSE_TIMEOUT_S = 5.0
LICENSE_ATTEMPTS = 3
POLL_INTERVAL_S = 5.0
MAX_POLL_ATTEMPTS = 24

Fetch = Callable[[str, AutoAcceptConfig, float], dict]


def _default_fetch(url: str, config: AutoAcceptConfig, timeout: float) -> dict:
    return http_get_json(url, config, timeout=timeout)


def verify_license(
    store: StateStore,
    config: AutoAcceptConfig,
    *,
    user_id: str | None = None,
    attempts: int = LICENSE_ATTEMPTS,
    fetch: Fetch = _default_fetch,
    sleep: Callable[[float], None] = time.sleep,
) -> bool | None:
    """Return True/False from the backend, or None when it could not be reached.

    Backoff between attempts is linear: 1 s, then 2 s.
    """
    uid = user_id if user_id is not None else store.get(KEY_USER_ID)
    if not uid:
        return False
    url = f"{config.api_base}/check-license?" + urllib.parse.urlencode({"userId": str(uid)})
    for attempt in range(1, attempts + 1):
        try:
            data = fetch(url, config, LICENSE_TIMEOUT_S)
        except HttpClientError as exc:
            _LOGGER.warning("License verification attempt %s/%s failed: %s", attempt, attempts, exc)
            if attempt < attempts:
                sleep(float(attempt))
            continue
        store.set(KEY_LAST_VERIFIED, int(time.time() * 1000))
        return data.get("isPro") is True
    _LOGGER.warning("License verification: network error, keeping cached status")
    return None


class LicensePoller:
    """Re-verify every 5 s after a purchase until pro shows up or attempts run out.

    Network failures (None) do not use up an attempt.
    """

    def __init__(
        self,
        verify: Callable[[], bool | None],
        *,
        on_pro: Callable[[], None],
        on_give_up: Callable[[], None] | None = None,
        interval_s: float = POLL_INTERVAL_S,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ):
        self.verify = verify
        self.on_pro = on_pro
        self.on_give_up = on_give_up
        self.interval_s = interval_s
        self.max_attempts = max_attempts
        self.attempts = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def poll_once(self) -> bool:
        """One polling step; returns False once polling is finished."""
        result = self.verify()
        if result is None:
            _LOGGER.info("Pro polling: network error, not counting attempt")
            return True
        self.attempts += 1
        _LOGGER.info("Pro polling: attempt %s/%s", self.attempts, self.max_attempts)
        if result:
            self.on_pro()
            return False
        if self.attempts >= self.max_attempts:
            _LOGGER.info("Pro polling: max attempts reached")
            if self.on_give_up is not None:
                self.on_give_up()
            return False
        return True

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self.attempts = 0
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="auto-accept-pro-poll", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                if not self.poll_once():
                    return
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Pro polling failed: %s", exc)


__all__ = ["LicensePoller", "verify_license"]
