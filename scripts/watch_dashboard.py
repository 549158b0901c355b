#!/usr/bin/env python3
"""Terminal dashboard for a traffic-signal installation.

Reads connection settings from ``TRAFFIC_*`` environment variables and
prints one status line per update: connection health, signal color,
traffic band, tilt state and the active timing. New alert log entries are
printed as they appear.

Optionally stages and saves a timing change before watching::

    python scripts/watch_dashboard.py --green-ms 12000 --yellow-ms 3000 --save
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pytraffic import DashboardSnapshot, TrafficConfig, TrafficError, open_monitor  # noqa: E402
from pytraffic.state.signals import alert_tone  # noqa: E402

_LOG = logging.getLogger("watch_dashboard")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch the live state of a traffic-signal installation.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--mqtt",
        action="store_true",
        help="Enable the MQTT push channel regardless of TRAFFIC_MQTT_ENABLED.",
    )
    parser.add_argument(
        "--green-ms",
        type=int,
        default=None,
        help="Stage a green duration before watching.",
    )
    parser.add_argument(
        "--yellow-ms",
        type=int,
        default=None,
        help="Stage a yellow duration before watching.",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Save staged timing after the first snapshot.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


class _Printer:
    def __init__(self) -> None:
        self._seen_alerts: set[str] = set()
        self._last_line = ""

    def __call__(self, snapshot: DashboardSnapshot) -> None:
        for entry in reversed(snapshot.alerts):
            if entry.id in self._seen_alerts:
                continue
            self._seen_alerts.add(entry.id)
            stamp = entry.created_at.astimezone().strftime("%H:%M:%S")
            print(f"[alert] {stamp} {entry.event_type:<12} ({alert_tone(entry)}) id={entry.id}")

        line = _status_line(snapshot)
        if line != self._last_line:
            self._last_line = line
            print(line)


def _status_line(snapshot: DashboardSnapshot) -> str:
    if snapshot.waiting:
        return "[state] Waiting for data..."
    signals = snapshot.signals
    config = snapshot.config
    parts = [
        f"{signals.connection_label:<12}",
        f"signal={signals.signal_badge}",
        f"traffic={signals.traffic_label}",
        f"tilt={signals.tilt_label}",
    ]
    if signals.street_light_label is not None:
        parts.append(f"street={signals.street_light_label}")
    timing = f"timing={config.green_ms}/{config.yellow_ms}ms"
    if config.dirty:
        timing += " (unsaved)"
    elif config.saving:
        timing += " (saving)"
    parts.append(timing)
    if signals.applied_timing is not None:
        parts.append(f"in_effect={signals.applied_timing[0]}/{signals.applied_timing[1]}ms")
    return "[state] " + " ".join(parts)


async def _watch(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if args.mqtt:
        overrides["mqtt_enabled"] = True
    config = TrafficConfig.from_env(**overrides)
    printer = _Printer()

    async with open_monitor(config, on_update=printer) as monitor:
        print(f"[watch] {config.site.name} via {config.base_url} (push={'on' if config.mqtt_enabled else 'off'})")
        if args.green_ms is not None:
            monitor.set_green_ms(args.green_ms)
        if args.yellow_ms is not None:
            monitor.set_yellow_ms(args.yellow_ms)
        if args.save:
            saved = await monitor.save_timing()
            print(f"[watch] Save {'succeeded' if saved else 'failed'}")

        if args.duration > 0:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_watch(args))
    except KeyboardInterrupt:
        return 0
    except TrafficError as exc:
        _LOG.error("Watcher stopped: %s", exc)
        return 2


if __name__ == "__main__":
    with contextlib.suppress(BrokenPipeError):
        raise SystemExit(_main())
