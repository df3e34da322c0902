#!/usr/bin/env python3
"""Windows entry point for the weekly SLA performance report."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = BASE_DIR / "config" / "config.yaml"
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from sla_common.workflow import ReportOptions, send_weekly_report

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute SLA compliance for the last week and e-mail it to help desk managers (Windows edition)."
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to configuration YAML file. Defaults to "
            f"{DEFAULT_CONFIG_PATH} or config/config.yaml if present."
        ),
    )
    parser.add_argument(
        "--output-directory",
        help="Directory where the report bundle should be written. Overrides reporting.output_directory.",
    )
    parser.add_argument("--start-date", help="Optional ISO8601 window start (UTC assumed if no timezone).")
    parser.add_argument("--end-date", help="Optional ISO8601 window end, exclusive (UTC assumed if no timezone).")
    parser.add_argument(
        "--window-days",
        type=int,
        help="Length of the reporting window in days when --start-date is omitted (default: 7).",
    )
    parser.add_argument(
        "--format",
        action="append",
        choices=["html", "pdf", "images", "json"],
        help="Report bundle formats to write to disk (default: html, json).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Write the report bundle without sending any e-mail.",
    )
    parser.add_argument(
        "--show-console-log",
        action="store_true",
        help="Show detailed log output instead of the default progress display.",
    )
    parser.add_argument(
        "--simple-console",
        action="store_true",
        help="Use a simple console log format instead of Rich formatting.",
    )
    parser.add_argument(
        "--console-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the console logging level.",
    )
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    options = ReportOptions(
        config_path=args.config,
        output_directory=args.output_directory,
        start_date=args.start_date,
        end_date=args.end_date,
        window_days=args.window_days,
        formats=args.format,
        dry_run=args.dry_run,
        disable_console=not args.show_console_log,
        simple_console=args.simple_console,
        console_level=args.console_level,
        show_console_log=args.show_console_log,
    )
    try:
        result = send_weekly_report(options, base_dir=BASE_DIR)
    except Exception as exc:
        LOGGER.exception("Weekly SLA report failed")
        print(f"Weekly SLA report failed: {exc}", file=sys.stderr)
        return 1
    print(result.message)
    if result.summary:
        print(
            f"Tickets: {result.summary['total_tickets']} | "
            f"Response compliance: {result.summary['response_compliance']}% | "
            f"Resolution compliance: {result.summary['resolution_compliance']}%"
        )
    return 0 if result.success else 2


if __name__ == "__main__":
    sys.exit(main())
