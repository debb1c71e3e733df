#!/usr/bin/env python3
"""
Network Monitor - headless network statistics engine.
Samples per-adapter byte counters, keeps hourly/daily usage per adapter
and a short speed history, and reports them from the command line.
"""
import argparse
import signal
import sys
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

from app.controller import AppController
from app.dependencies import create_dependencies
from app.events import Event, EventBus, EventType
from config import STORAGE, NetworkMonitorError, get_logger, setup_logging
from monitor.utils import SpeedUnit, format_bytes, format_speed

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Network Monitor - per-adapter usage and speed statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run --interval-ms 500
  %(prog)s summary --days 7
  %(prog)s history --minutes 60 --points 40
  %(prog)s cleanup --days 90
        """
    )
    parser.add_argument("--data-dir", type=Path, default=Path.home() / STORAGE.DATA_DIR_NAME,
                        help="Directory for the database, settings and logs")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--unit", choices=[u.value for u in SpeedUnit],
                        help="Speed display unit (default: from settings)")

    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Sample continuously until interrupted")
    run.add_argument("--interval-ms", type=int, help="Polling interval in milliseconds")
    run.add_argument("--adapter", help="Pin an adapter id ('auto' follows the primary adapter)")
    run.add_argument("--quiet", action="store_true", help="Don't print per-tick speeds")

    summary = sub.add_parser("summary", help="Show today's, recent and total usage")
    summary.add_argument("--days", type=int, default=7, help="Days of daily usage to show")

    history = sub.add_parser("history", help="Show downsampled speed history")
    history.add_argument("--minutes", type=int, default=60)
    history.add_argument("--points", type=int, default=30)

    sub.add_parser("adapters", help="List selectable adapters")

    cleanup = sub.add_parser("cleanup", help="Delete aggregates older than N days")
    cleanup.add_argument("--days", type=int, required=True)

    export = sub.add_parser("export", help="Export usage to JSON")
    export.add_argument("--output", type=Path)
    export.add_argument("--days", type=int, default=90)

    backup = sub.add_parser("backup", help="Copy the database")
    backup.add_argument("--output", type=Path)

    return parser


def _speed_line(state: dict, unit: SpeedUnit) -> Optional[str]:
    sample = state.get('primary_sample')
    if sample is None:
        return None
    line = (
        f"{datetime.now():%H:%M:%S}  {sample.adapter_id:<12} "
        f"down {format_speed(sample.download_bps, unit):>12}  "
        f"up {format_speed(sample.upload_bps, unit):>12}"
    )
    for secondary in state.get('secondaries', []):
        line += (
            f"  | {secondary.display_name} "
            f"{format_speed(secondary.download_bps, unit)}/{format_speed(secondary.upload_bps, unit)}"
        )
    if state.get('degraded'):
        line += "  [last saved: stale]"
    return line


def cmd_run(controller: AppController, args, unit: SpeedUnit) -> int:
    if args.interval_ms is not None:
        controller.set_poll_interval_ms(args.interval_ms)
    if args.adapter is not None:
        controller.set_selected_adapter(args.adapter)

    stop_requested = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_requested.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    bus = controller.event_bus
    bus.subscribe(EventType.PRIMARY_ADAPTER_CHANGED,
                  lambda e: print(e.data['message'], flush=True))
    bus.subscribe(EventType.PERSISTENCE_DEGRADED,
                  lambda e: print(f"Warning: storage unavailable ({e.data['error']})",
                                  file=sys.stderr, flush=True))

    if not args.quiet:
        def on_samples(event: Event) -> None:
            line = _speed_line({
                'primary_sample': next(
                    (s for s in event.data['samples']
                     if s.adapter_id == event.data['primary_adapter']), None
                ),
                'secondaries': event.data['secondaries'],
                'degraded': controller.get_status()['degraded'],
            }, unit)
            if line:
                print(line, flush=True)

        bus.subscribe(EventType.SAMPLES_UPDATED, on_samples)

    controller.start()
    try:
        stop_requested.wait()
    finally:
        controller.stop()

    received, sent = controller.get_today_usage()
    print(f"Today: {format_bytes(received)} down, {format_bytes(sent)} up")
    return 0


def cmd_summary(controller: AppController, args) -> int:
    received, sent = controller.get_today_usage()
    print(f"Today:  {format_bytes(received):>10} down  {format_bytes(sent):>10} up")
    for adapter_id, (adapter_rx, adapter_tx) in controller.get_today_usage_by_adapter().items():
        print(f"  {adapter_id:<14} {format_bytes(adapter_rx):>10} down  {format_bytes(adapter_tx):>10} up")

    total_rx, total_tx = controller.get_total_usage()
    print(f"Total:  {format_bytes(total_rx):>10} down  {format_bytes(total_tx):>10} up")

    end = date.today()
    start = end - timedelta(days=max(0, args.days - 1))
    rows = controller.get_daily_usage(start, end)
    if rows:
        print(f"\nDaily usage since {start.isoformat()}:")
        for row in rows:
            print(
                f"  {row.date.isoformat()}  {row.adapter_id:<14} "
                f"{format_bytes(row.bytes_received):>10} down  {format_bytes(row.bytes_sent):>10} up"
            )
    return 0


def cmd_history(controller: AppController, args, unit: SpeedUnit) -> int:
    since = datetime.now() - timedelta(minutes=args.minutes)
    points = controller.get_chart_history(since, args.points)
    if not points:
        print("No speed history recorded yet")
        return 0
    for point in points:
        print(
            f"{point.timestamp:%H:%M:%S}  down {format_speed(point.download_bps, unit):>12}  "
            f"up {format_speed(point.upload_bps, unit):>12}"
        )
    return 0


def cmd_adapters(controller: AppController) -> int:
    for item in controller.get_adapter_display_items():
        state = "up" if item.is_active else "down"
        print(f"{item.id:<16} {item.display_name:<32} {item.category:<9} {state}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the command line."""
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(argv + ["run"])
    command = args.command

    setup_logging(data_dir=args.data_dir, debug=args.debug, console_output=True)
    logger.info(f"Network Monitor starting ({command})...")

    try:
        deps = create_dependencies(data_dir=args.data_dir, event_bus=EventBus(async_mode=True))
    except NetworkMonitorError as e:
        logger.critical(f"Could not open data directory: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    unit = SpeedUnit(args.unit) if args.unit else deps.settings.get_speed_unit()
    controller = AppController(deps)

    try:
        if command == "run":
            return cmd_run(controller, args, unit)
        if command == "summary":
            return cmd_summary(controller, args)
        if command == "history":
            return cmd_history(controller, args, unit)
        if command == "adapters":
            return cmd_adapters(controller)
        if command == "cleanup":
            deleted = controller.cleanup_old_data(args.days)
            print(f"Deleted {deleted} records")
            return 0
        if command == "export":
            print(f"Exported to {deps.store.export_json(args.output, days=args.days)}")
            return 0
        if command == "backup":
            print(f"Backed up to {deps.store.backup(args.output)}")
            return 0
    except NetworkMonitorError as e:
        logger.error(f"{command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        deps.event_bus.shutdown()

    parser.error(f"unknown command {command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
