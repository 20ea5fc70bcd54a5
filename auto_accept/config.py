from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_API_BASE = "https://auto-accept-backend.onrender.com/api"

SUPPORTED_IDES = ("cursor", "antigravity")

DEFAULT_BANNED_COMMANDS: list[str] = [
    "rm -rf /",
    "rm -rf ~",
    "rm -rf *",
    "format c:",
    "del /f /s /q",
    "rmdir /s /q",
    ":(){:|:&};:",  # fork bomb
    "dd if=",
    "mkfs.",
    "> /dev/sda",
    "chmod -R 777 /",
]


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _float_env(name: str, *, default: float, lo: float, hi: float) -> float:
    try:
        val = float(os.environ.get(name) or default)
    except Exception:
        val = default
    return max(lo, min(val, hi))


def _int_env(name: str, *, default: int, lo: int, hi: int) -> int:
    return int(_float_env(name, default=default, lo=lo, hi=hi))


@dataclass
class AutoAcceptConfig:
    state_dir: str
    ide: str = "cursor"
    cdp_host: str = "127.0.0.1"
    cdp_port: int = 9000
    cdp_port_spread: int = 3
    api_base: str = DEFAULT_API_BASE
    http_timeout: float = 5.0
    http_max_bytes: int = 1_000_000
    summary_timeout: float = 8.0
    bridge_timeout: float = 5.0
    sync_interval: float = 5.0
    stats_interval: float = 30.0
    extra_target_types: list[str] = field(default_factory=list)

    @staticmethod
    def normalize_ide(raw: str | None) -> str:
        name = (raw or "").strip().lower()
        if "antigravity" in name:
            return "antigravity"
        # Cursor and plain VS Code forks share the same chat markup.
        return "cursor"

    @classmethod
    def detect_ide(cls) -> str:
        explicit = os.environ.get("AUTO_ACCEPT_IDE")
        if explicit:
            return cls.normalize_ide(explicit)
        return cls.normalize_ide(os.environ.get("AUTO_ACCEPT_APP_NAME"))

    @classmethod
    def from_env(cls) -> AutoAcceptConfig:
        state_dir = expand_path(os.environ.get("AUTO_ACCEPT_STATE_DIR", "~/.auto-accept"))
        host = (os.environ.get("AUTO_ACCEPT_CDP_HOST") or "127.0.0.1").strip() or "127.0.0.1"
        types_raw = os.environ.get("AUTO_ACCEPT_TARGET_TYPES", "")
        extra_types = [t.strip().lower() for t in types_raw.split(",") if t.strip()]
        return cls(
            state_dir=state_dir,
            ide=cls.detect_ide(),
            cdp_host=host,
            cdp_port=_int_env("AUTO_ACCEPT_CDP_PORT", default=9000, lo=1, hi=65535),
            cdp_port_spread=_int_env("AUTO_ACCEPT_CDP_PORT_SPREAD", default=3, lo=0, hi=10),
            api_base=(os.environ.get("AUTO_ACCEPT_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            http_timeout=_float_env("AUTO_ACCEPT_HTTP_TIMEOUT", default=5.0, lo=0.5, hi=60.0),
            http_max_bytes=_int_env("AUTO_ACCEPT_HTTP_MAX_BYTES", default=1_000_000, lo=1024, hi=50_000_000),
            summary_timeout=_float_env("AUTO_ACCEPT_SUMMARY_TIMEOUT", default=8.0, lo=1.0, hi=120.0),
            bridge_timeout=_float_env("AUTO_ACCEPT_BRIDGE_TIMEOUT", default=5.0, lo=0.5, hi=60.0),
            sync_interval=_float_env("AUTO_ACCEPT_SYNC_INTERVAL", default=5.0, lo=0.5, hi=120.0),
            stats_interval=_float_env("AUTO_ACCEPT_STATS_INTERVAL", default=30.0, lo=1.0, hi=3600.0),
            extra_target_types=extra_types,
        )

    @property
    def state_file(self) -> Path:
        return Path(self.state_dir) / "state.json"

    def candidate_ports(self) -> list[int]:
        """Ports scanned for a CDP endpoint, configured port first."""
        ports = [self.cdp_port]
        for delta in range(1, self.cdp_port_spread + 1):
            for port in (self.cdp_port + delta, self.cdp_port - delta):
                if 0 < port < 65536:
                    ports.append(port)
        return ports
