"""
Command-line interface for the device tracker.

    device-tracking segment --readings data/readings.csv --save
    device-tracking stats
    device-tracking analysis --range 24h
    device-tracking export --output backup.json
    device-tracking import backup.json
    device-tracking clear [--episodes]
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .analytics.consumption import analysis_to_dataframe
from .core.config import TIME_RANGES_MS, TrackerConfig
from .core.logging_setup import setup_logging
from .core.paths import READINGS_CSV
from .detection.threshold_segmenter import episodes_to_dataframe
from .sources.readings import load_readings, readings_to_samples
from .tracker import DeviceTracker

logger = logging.getLogger(__name__)


def _load_config(args) -> TrackerConfig:
    config = TrackerConfig.from_json(args.config) if args.config else TrackerConfig()
    if args.data_dir:
        config.data_dir = args.data_dir
    return config


def cmd_segment(tracker: DeviceTracker, args) -> int:
    readings_path = Path(args.readings)
    if not readings_path.exists():
        logger.error(f"Readings file not found: {readings_path}")
        return 1

    df = load_readings(readings_path)
    if df.empty:
        logger.warning("No readings to segment")
        return 0

    end_timestamp = int(df['timestamp'].iloc[-1]) if args.close_at_last else None
    episodes = tracker.segment_samples(
        readings_to_samples(df),
        end_timestamp=end_timestamp,
        show_progress=not args.quiet,
        total=len(df) * 3,
    )

    summary = episodes_to_dataframe(episodes)
    if not summary.empty:
        print(summary.groupby(['phase', 'type']).size().to_string())

    if args.save:
        total, replaced = tracker.save_episodes(episodes)
        logger.info(f"Stored {total} episodes ({replaced} replaced)")
    return 0


def cmd_stats(tracker: DeviceTracker, args) -> int:
    print(json.dumps(tracker.get_tracking_stats(), indent=2))
    return 0


def cmd_analysis(tracker: DeviceTracker, args) -> int:
    analysis = tracker.get_consumption_analysis(args.range)
    if args.json:
        print(json.dumps(analysis, indent=2))
        return 0

    table = analysis_to_dataframe(analysis)
    print(f"Range: {analysis['time_range']} | events: {analysis['total_events']} | "
          f"total: {analysis['total_consumption']:.2f} Wh")
    if not table.empty:
        print(table.to_string(index=False))
    return 0


def cmd_export(tracker: DeviceTracker, args) -> int:
    data = tracker.export_tracking_data()
    if args.output:
        Path(args.output).write_text(data, encoding='utf-8')
        logger.info(f"Exported tracking data to {args.output}")
    else:
        print(data)
    return 0


def cmd_import(tracker: DeviceTracker, args) -> int:
    try:
        data = Path(args.file).read_text(encoding='utf-8')
    except OSError as e:
        logger.error(f"Could not read {args.file}: {e}")
        return 1
    return 0 if tracker.import_tracking_data(data) else 1


def cmd_clear(tracker: DeviceTracker, args) -> int:
    tracker.clear_tracking_data()
    if args.episodes:
        tracker.clear_episodes()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Device event tracking for a three-phase meter")
    parser.add_argument("--data-dir", type=str, default=None,
                        help="Directory holding the tracking collections (default: DATA_DIR)")
    parser.add_argument("--config", type=str, default=None, help="TrackerConfig JSON file")
    parser.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Warnings only, no progress bars")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("segment", help="Segment a readings CSV into consumption episodes")
    p.add_argument("--readings", type=str, default=str(READINGS_CSV),
                   help=f"Readings CSV (default: {READINGS_CSV})")
    p.add_argument("--save", action="store_true", help="Merge the episodes into the episode collection")
    p.add_argument("--close-at-last", action="store_true",
                   help="Close open episodes at the last reading instead of now")
    p.set_defaults(func=cmd_segment)

    p = sub.add_parser("stats", help="Association statistics")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("analysis", help="Per-device consumption analysis")
    p.add_argument("--range", type=str, default=None, choices=sorted(TIME_RANGES_MS),
                   help="Time range (default: all events)")
    p.add_argument("--json", action="store_true", help="Print the full analysis as JSON")
    p.set_defaults(func=cmd_analysis)

    p = sub.add_parser("export", help="Export tracking data as JSON")
    p.add_argument("--output", type=str, default=None, help="Write to file instead of stdout")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Import tracking data from a JSON backup")
    p.add_argument("file", type=str)
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("clear", help="Clear tracking data (environment config is kept)")
    p.add_argument("--episodes", action="store_true", help="Also clear consumption episodes")
    p.set_defaults(func=cmd_clear)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    setup_logging(log_file=args.log_file, level=level)

    try:
        config = _load_config(args)
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    tracker = DeviceTracker.from_config(config)
    return args.func(tracker, args)


if __name__ == "__main__":
    sys.exit(main())
