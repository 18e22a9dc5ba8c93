"""Command-line interface for Enco earbud battery status."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pyenco._cache import JsonSnapshotStorage
from pyenco.config import EncoConfig
from pyenco.exceptions import EncoConfigError, EncoError, EncoStorageError
from pyenco.models.channel import Channel
from pyenco.models.snapshot import MonitorSnapshot
from pyenco.monitor import EncoMonitor
from pyenco.state.events import ChangeKind, StateChange
from pyenco.state.store import StateStore

_LOG = logging.getLogger("pyenco.cli")

_CHANNELS = (Channel.LEFT, Channel.RIGHT, Channel.CASE)


def format_snapshot(snapshot: MonitorSnapshot) -> list[str]:
    """Human-readable status lines, one per channel plus the link state."""
    lines: list[str] = []
    for channel in _CHANNELS:
        percent = snapshot.battery.get(channel)
        value = "--" if percent is None else f"{percent}%"
        charging = " (charging)" if snapshot.charging.get(channel) else ""
        lines.append(f"{channel.value.capitalize()}: {value}{charging}")

    updated = snapshot.battery.last_updated
    lines.append(f"Updated: {updated.astimezone().strftime('%Y-%m-%d %H:%M:%S') if updated else 'never'}")
    lines.append(f"Connection: {snapshot.connection.value}")
    if snapshot.swapped:
        lines.append("Left/right: swapped")
    return lines


def snapshot_to_dict(snapshot: MonitorSnapshot) -> dict[str, Any]:
    """JSON-friendly view (for scripts and status bars)."""
    data: dict[str, Any] = {
        channel.value: {
            "battery": snapshot.battery.get(channel),
            "charging": snapshot.charging.get(channel),
        }
        for channel in _CHANNELS
    }
    data["swapped"] = snapshot.swapped
    data["connection"] = snapshot.connection.value
    data["connected"] = snapshot.is_connected
    data["last_updated"] = snapshot.battery.last_updated.isoformat() if snapshot.battery.last_updated else None
    data["last_seen"] = snapshot.last_seen.isoformat() if snapshot.last_seen else None
    return data


def _print_snapshot(snapshot: MonitorSnapshot, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(snapshot_to_dict(snapshot)), flush=True)
    else:
        print("\n".join(format_snapshot(snapshot)), flush=True)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pyenco",
        description="Battery monitor for OPPO Enco earbuds.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  %(prog)s status            Show the last known values
  %(prog)s watch --json      Stream updates as JSON lines
  %(prog)s swap              Swap left/right assignment
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--device-name", default=None, help="Advertised name substring (default: Enco).")
    parser.add_argument("--state-path", default=None, help="Last-known state file.")

    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Print the last known state without scanning.")
    status.add_argument("--json", "-j", action="store_true", help="Output as JSON.")

    watch = sub.add_parser("watch", help="Scan, connect and print every update.")
    watch.add_argument("--json", "-j", action="store_true", help="Output as JSON lines.")
    watch.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    watch.add_argument("--no-probe", action="store_true", help="Never write probe commands to the device.")

    sub.add_parser(
        "swap",
        help="Toggle the left/right swap preference. A running watcher picks it up on its next save.",
    )
    clear = sub.add_parser("clear-cache", help="Forget stored battery and charging values.")
    clear.add_argument("--all", action="store_true", help="Also forget the swap preference (delete the state file).")

    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> EncoConfig:
    overrides: dict[str, Any] = {}
    if args.device_name:
        overrides["device_name"] = args.device_name
    if args.state_path:
        overrides["state_path"] = Path(args.state_path).expanduser()
    if getattr(args, "no_probe", False):
        overrides["probe_enabled"] = False
    return EncoConfig.from_env(**overrides)


def _open_store(storage: JsonSnapshotStorage) -> StateStore:
    return StateStore(initial=storage.load_last_known())


def _cmd_status(config: EncoConfig, args: argparse.Namespace) -> int:
    store = _open_store(JsonSnapshotStorage(config.resolved_state_path))
    _print_snapshot(store.snapshot, as_json=args.json)
    return 0


def _cmd_swap(config: EncoConfig) -> int:
    storage = JsonSnapshotStorage(config.resolved_state_path)
    store = _open_store(storage)
    swapped = store.toggle_swap()
    storage.save(store.snapshot)
    print(f"Left/right swap {'enabled' if swapped else 'disabled'}")
    return 0


def _cmd_clear_cache(config: EncoConfig, args: argparse.Namespace) -> int:
    storage = JsonSnapshotStorage(config.resolved_state_path)
    if args.all:
        storage.clear()
        print(f"Removed {storage.path}")
        return 0
    store = _open_store(storage)
    store.clear_cache()
    storage.save(store.snapshot)
    print("Cleared stored battery values")
    return 0


async def _watch(config: EncoConfig, args: argparse.Namespace) -> int:
    def _on_change(change: StateChange) -> None:
        if change.kinds & {ChangeKind.BATTERY, ChangeKind.CHARGING, ChangeKind.CONNECTION, ChangeKind.LOADED}:
            _print_snapshot(change.snapshot, as_json=args.json)
            if not args.json:
                print()

    async with EncoMonitor(config) as monitor:
        _print_snapshot(monitor.snapshot, as_json=args.json)
        monitor.subscribe(_on_change)
        if not args.json:
            print(f"\nWatching for '{config.device_name}' (Ctrl+C to stop)...\n", flush=True)
        if args.duration > 0:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _build_config(args)
        if args.command == "status":
            return _cmd_status(config, args)
        if args.command == "swap":
            return _cmd_swap(config)
        if args.command == "clear-cache":
            return _cmd_clear_cache(config, args)
        return asyncio.run(_watch(config, args))
    except KeyboardInterrupt:
        print("\nStopped.")
        return 0
    except EncoConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except EncoStorageError as exc:
        print(f"State file error: {exc}", file=sys.stderr)
        return 1
    except EncoError as exc:
        _LOG.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
