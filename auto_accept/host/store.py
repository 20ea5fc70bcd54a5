"""Persisted key/value store shared by every host process on the machine.

Design
- One JSON file (`state.json` under the state dir).
- Atomic writes: write temp file then replace.
- Read-modify-write runs under an inter-process file lock (`state.json.lock`).
- Corrupt or missing files read as empty (fail-soft).
"""

from __future__ import annotations

import contextlib
import io
import json
import os
import sys
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

KEY_ENABLED = "auto-accept-enabled-global"
KEY_IS_PRO = "auto-accept-isPro"
KEY_FREQUENCY = "auto-accept-frequency"
KEY_BANNED_COMMANDS = "auto-accept-banned-commands"
KEY_BACKGROUND_MODE = "auto-accept-background-mode"
KEY_ROI_STATS = "auto-accept-roi-stats"
KEY_ROI_ARCHIVE = "auto-accept-roi-archive"
KEY_FIRST_INSTALL = "auto-accept-first-install-complete"
KEY_LAST_VERIFIED = "auto-accept-last-verified"
KEY_USER_ID = "auto-accept-userId"


def lock_keys(ide: str) -> tuple[str, str]:
    """Leader lease key and heartbeat key for one editor flavour."""
    base = f"{ide}-instance-lock"
    return base, f"{base}-ping"


def _lock_file(fp: io.TextIOWrapper) -> None:
    if sys.platform == "win32":
        import msvcrt  # type: ignore

        msvcrt.locking(fp.fileno(), msvcrt.LK_LOCK, 1)
    else:
        import fcntl

        fcntl.flock(fp.fileno(), fcntl.LOCK_EX)


def _unlock_file(fp: io.TextIOWrapper) -> None:
    if sys.platform == "win32":
        import msvcrt  # type: ignore

        msvcrt.locking(fp.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(fp.fileno(), fcntl.LOCK_UN)


class StateStore:
    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        # flock is per open file description; threads of one process need their own guard.
        self._thread_lock = threading.RLock()

    def _read(self) -> dict[str, Any]:
        try:
            if not self.path.is_file():
                return {}
            obj = json.loads(self.path.read_text(encoding="utf-8", errors="replace"))
        except Exception:
            return {}
        return obj if isinstance(obj, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(data, ensure_ascii=True, indent=2, sort_keys=True)
        tmp = self.path.with_suffix(self.path.suffix + f".{os.getpid()}.tmp")
        tmp.write_text(text, encoding="utf-8")
        with contextlib.suppress(Exception):
            os.chmod(tmp, 0o600)
        tmp.replace(self.path)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[dict[str, Any]]:
        """Yield the whole mapping under the file lock; it is written back on clean exit."""
        with self._thread_lock:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fp = open(self.lock_path, "a+", encoding="utf-8")  # noqa: SIM115
            try:
                _lock_file(fp)
                try:
                    data = self._read()
                    before = json.dumps(data, sort_keys=True, default=str)
                    yield data
                    if json.dumps(data, sort_keys=True, default=str) != before:
                        self._write(data)
                finally:
                    with contextlib.suppress(Exception):
                        _unlock_file(fp)
            finally:
                with contextlib.suppress(Exception):
                    fp.close()

    def get(self, key: str, default: Any = None) -> Any:
        with self._thread_lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self.transaction() as data:
            data[key] = value

    def delete(self, key: str) -> None:
        with self.transaction() as data:
            data.pop(key, None)

    def snapshot(self) -> dict[str, Any]:
        with self._thread_lock:
            return dict(self._read())


__all__ = [
    "KEY_BACKGROUND_MODE",
    "KEY_BANNED_COMMANDS",
    "KEY_ENABLED",
    "KEY_FIRST_INSTALL",
    "KEY_FREQUENCY",
    "KEY_IS_PRO",
    "KEY_LAST_VERIFIED",
    "KEY_ROI_ARCHIVE",
    "KEY_ROI_STATS",
    "KEY_USER_ID",
    "StateStore",
    "lock_keys",
]
