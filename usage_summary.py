"""usage_summary.py

Build day/week/month usage rollups from a session export and write them
to JSON/CSV files, then print a summary report.

Usage: python usage_summary.py [sessions.json] [--from YYYY-MM-DD] [--to YYYY-MM-DD]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date

from analytics import build_usage_payload, print_summary_report, save_analytics_files
from parsers import ParsingError, ShapeError
from sessions import load_sessions

logger = logging.getLogger(__name__)

OUTPUT_DIR = "usage_analytics"


def main(
    path: str = "sessions.json",
    output_dir: str = OUTPUT_DIR,
    date_from: date | None = None,
    date_to: date | None = None,
) -> None:
    """Load sessions, build analytics, save files and print the report.

    Exits with status 1 when the file is missing or any record is
    malformed.  Nothing is written in that case.
    """
    try:
        sessions = load_sessions(path)
    except FileNotFoundError:
        print(f"Error: session file not found: {path}", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: invalid JSON in {path}: {e}", file=sys.stderr)
        sys.exit(1)
    except (ShapeError, ParsingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    payload = build_usage_payload(sessions, date_from, date_to)
    save_analytics_files(payload, output_dir)
    print_summary_report(payload, output_dir)


def _parse_date_arg(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}; expected YYYY-MM-DD")


def cli() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description='Summarize network session usage by day, week and month')
    parser.add_argument('json_file', nargs='?', default='sessions.json',
                        help='Path to the sessions JSON file (default: sessions.json)')
    parser.add_argument('--from', dest='date_from', type=_parse_date_arg,
                        help='Only include sessions that start on or after this date')
    parser.add_argument('--to', dest='date_to', type=_parse_date_arg,
                        help='Only include sessions that start on or before this date')
    parser.add_argument('--output-dir', '-o', default=OUTPUT_DIR,
                        help=f'Directory for JSON/CSV output (default: {OUTPUT_DIR})')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    main(args.json_file, args.output_dir, args.date_from, args.date_to)

    print("\nRun 'python usage_viz.py' to create visualizations.")


if __name__ == '__main__':
    cli()
