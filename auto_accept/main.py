"""
Command-line entry point for the auto-accept controller.

`auto-accept run` keeps a coordinator alive against the editor's CDP endpoint;
the other subcommands inspect or change persisted state.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from typing import Any

from .config import AutoAcceptConfig
from .host.bridge import CdpBridge, LocalBridge
from .host.coordinator import Coordinator, LicenseRequiredError
from .host.leader import STALENESS_S
from .host.license import LicensePoller, verify_license
from .host.roi_stats import RoiTracker, roi_report
from .host.store import (
    KEY_BACKGROUND_MODE,
    KEY_BANNED_COMMANDS,
    KEY_ENABLED,
    KEY_FREQUENCY,
    KEY_IS_PRO,
    KEY_USER_ID,
    StateStore,
    lock_keys,
)
from .host.ui import LoggingHostUi
from .session_cdp import discover_port

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger("auto_accept")

__all__ = ["build_parser", "main"]


def _print(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n")
    sys.stdout.flush()


def _cmd_run(args: argparse.Namespace, config: AutoAcceptConfig, store: StateStore) -> int:
    ui = LoggingHostUi()
    coordinator = Coordinator(config, store, CdpBridge(config), ui)
    coordinator.startup()
    if args.enable and not coordinator.enabled:
        try:
            coordinator.enable(strict=True)
        except LicenseRequiredError as exc:
            logger.error("%s", exc)
            coordinator.shutdown()
            return 2
    if not coordinator.enabled:
        logger.info("Auto Accept is OFF; run with --enable to start")
        coordinator.shutdown()
        return 0
    try:
        coordinator.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        coordinator.shutdown()
    return 0


def _cmd_stats(args: argparse.Namespace, config: AutoAcceptConfig, store: StateStore) -> int:
    tracker = RoiTracker(store)
    report = roi_report(tracker.load())
    if args.archive:
        report["archive"] = tracker.archive()
    _print(report)
    return 0


def _cmd_status(args: argparse.Namespace, config: AutoAcceptConfig, store: StateStore) -> int:  # noqa: ARG001
    lock_key, ping_key = lock_keys(config.ide)
    data = store.snapshot()
    _print(
        {
            "ide": config.ide,
            "enabled": bool(data.get(KEY_ENABLED, False)),
            "isPro": bool(data.get(KEY_IS_PRO, False)),
            "backgroundMode": bool(data.get(KEY_BACKGROUND_MODE, False)),
            "leader": data.get(lock_key),
            "leaderHeartbeat": data.get(ping_key),
            "staleAfterSeconds": STALENESS_S,
            "cdpPort": discover_port(config),
        }
    )
    return 0


def _cmd_config(args: argparse.Namespace, config: AutoAcceptConfig, store: StateStore) -> int:
    coordinator = Coordinator(config, store, LocalBridge(), LoggingHostUi(), cdp_check=lambda: True)
    # Persist only; a running coordinator reloads settings on its next sync tick.
    coordinator.enabled = False
    if args.frequency is not None:
        coordinator.set_frequency(args.frequency)
    if args.banned is not None:
        if not coordinator.set_banned_commands([p for p in args.banned.split(",") if p.strip()]):
            logger.error("Banned commands customization requires an active license")
            return 2
    if args.background is not None and args.background != coordinator.background:
        coordinator.toggle_background()
    if args.user_id is not None:
        store.set(KEY_USER_ID, args.user_id)
    _print(
        {
            "frequencyMs": coordinator.frequency_ms,
            "bannedCommands": store.get(KEY_BANNED_COMMANDS, coordinator.banned_commands),
            "backgroundMode": coordinator.background,
            "stateFile": str(config.state_file),
            "apiBase": config.api_base,
            "cdp": f"{config.cdp_host}:{config.cdp_port}",
            "storedFrequency": store.get(KEY_FREQUENCY),
        }
    )
    return 0


def _cmd_check_license(args: argparse.Namespace, config: AutoAcceptConfig, store: StateStore) -> int:
    if args.user_id:
        store.set(KEY_USER_ID, args.user_id)
    result = verify_license(store, config)
    if result is not None:
        store.set(KEY_IS_PRO, result)
    if result or not args.poll:
        _print({"isPro": result})
        return 0 if result is not None else 1

    done = threading.Event()
    outcome: dict[str, Any] = {"isPro": False}

    def _on_pro() -> None:
        store.set(KEY_IS_PRO, True)
        outcome["isPro"] = True
        done.set()

    poller = LicensePoller(lambda: verify_license(store, config), on_pro=_on_pro, on_give_up=done.set)
    poller.start()
    try:
        done.wait()
    except KeyboardInterrupt:
        poller.stop()
    _print(outcome)
    return 0 if outcome["isPro"] else 1


def _on_off(raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"on", "1", "true", "yes"}:
        return True
    if value in {"off", "0", "false", "no"}:
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {raw!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="auto-accept", description="Auto-accept controller for AI chat surfaces")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the coordinator until interrupted")
    run.add_argument("--enable", action="store_true", help="Enable automation before running")
    run.set_defaults(handler=_cmd_run)

    stats = sub.add_parser("stats", help="Show this week's ROI stats")
    stats.add_argument("--archive", action="store_true", help="Include archived weeks")
    stats.set_defaults(handler=_cmd_stats)

    status = sub.add_parser("status", help="Show persisted state and the current leader")
    status.set_defaults(handler=_cmd_status)

    cfg = sub.add_parser("config", help="Show or change settings")
    cfg.add_argument("--frequency", type=int, help="Poll interval in ms (100-10000)")
    cfg.add_argument("--banned", help="Comma-separated banned command patterns (pro)")
    cfg.add_argument("--background", type=_on_off, help="Background mode on/off (pro)")
    cfg.add_argument("--user-id", help="Store the licensing user id")
    cfg.set_defaults(handler=_cmd_config)

    lic = sub.add_parser("check-license", help="Verify the license with the backend")
    lic.add_argument("--user-id", help="Store this user id first")
    lic.add_argument("--poll", action="store_true", help="Keep polling until pro is active (purchase flow)")
    lic.set_defaults(handler=_cmd_check_license)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = AutoAcceptConfig.from_env()
    store = StateStore(config.state_file)
    return int(args.handler(args, config, store))


if __name__ == "__main__":
    sys.exit(main())
