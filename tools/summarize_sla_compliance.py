#!/usr/bin/env python3
"""Print SLA compliance for a reporting window in the console."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Tuple

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = BASE_DIR / "config" / "config.yaml"
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from sla_common.config import load_config  # type: ignore  # pylint: disable=import-error
from sla_common.logging_setup import configure_logging  # type: ignore  # pylint: disable=import-error
from sla_common.metrics import ComplianceReport  # type: ignore  # pylint: disable=import-error
from sla_common.report_formatter import compliance_label  # type: ignore  # pylint: disable=import-error
from sla_common.workflow import (  # type: ignore  # pylint: disable=import-error
    DEFAULT_WINDOW_DAYS,
    compute_window_report,
    create_store_client,
    resolve_window,
)

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print a table summarising SLA compliance for a reporting window.",
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to configuration YAML file. Defaults to "
            f"{DEFAULT_CONFIG_PATH} or config/config.yaml if present."
        ),
    )
    parser.add_argument("--start-date", help="Optional ISO8601 window start (UTC assumed if no timezone).")
    parser.add_argument("--end-date", help="Optional ISO8601 window end, exclusive.")
    parser.add_argument(
        "--window-days",
        type=int,
        help=(
            "Window length when --start-date is omitted. Defaults to reporting.window_days "
            f"or {DEFAULT_WINDOW_DAYS}."
        ),
    )
    return parser


def _table(title: Tuple[str, ...], rows: List[Tuple[str, ...]]) -> List[str]:
    """Format rows as a left-aligned first column followed by right-aligned values."""

    widths = [max(len(row[index]) for row in [title] + rows) for index in range(len(title))]
    lines = ["  ".join(
        cell.ljust(widths[index]) if index == 0 else cell.rjust(widths[index])
        for index, cell in enumerate(title)
    )]
    lines.append("  ".join("-" * width for width in widths))
    for row in rows:
        lines.append("  ".join(
            cell.ljust(widths[index]) if index == 0 else cell.rjust(widths[index])
            for index, cell in enumerate(row)
        ))
    return lines


def _render_report(report: ComplianceReport) -> List[str]:
    summary_rows = [
        ("Total tickets", str(report.total_tickets)),
        ("Resolved tickets", str(report.resolved_tickets)),
        ("Response breaches", str(report.response_breaches)),
        ("Resolution breaches", str(report.resolution_breaches)),
        (
            "Response compliance",
            f"{report.response_compliance:.1f}% ({compliance_label(report.response_compliance)})",
        ),
        (
            "Resolution compliance",
            f"{report.resolution_compliance:.1f}% ({compliance_label(report.resolution_compliance)})",
        ),
        ("Avg response time (h)", f"{report.avg_response_time_hours:.1f}"),
        ("Avg resolution time (h)", f"{report.avg_resolution_time_hours:.1f}"),
    ]
    lines = _table(("Metric", "Value"), summary_rows)

    if report.by_priority:
        lines.append("")
        lines.extend(_table(
            ("Priority", "Tickets", "Response", "Resolution"),
            [
                (row.name, str(row.total), str(row.response_breaches), str(row.resolution_breaches))
                for row in report.by_priority
            ],
        ))
    if report.top_categories:
        lines.append("")
        lines.extend(_table(
            ("Category", "Tickets", "Breaches"),
            [(row.name, str(row.total), str(row.breaches)) for row in report.top_categories],
        ))
    return lines


def run(
    config_path: str | None,
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    window_days: int | None = None,
) -> List[str]:
    config = load_config(config_path)
    configure_logging(config, base_dir=BASE_DIR)
    reporting_cfg = config.get("reporting", {})

    try:
        window_start, window_end = resolve_window(
            start_date=start_date,
            end_date=end_date,
            window_days=int(window_days or reporting_cfg.get("window_days", DEFAULT_WINDOW_DAYS)),
        )
        client = create_store_client(config)
        report = compute_window_report(client, window_start, window_end)
    except Exception as exc:
        LOGGER.exception("Failed to summarise SLA compliance: %s", exc)
        raise SystemExit(1) from exc

    lines = [f"SLA compliance {window_start.isoformat()} to {window_end.isoformat()}", ""]
    lines.extend(_render_report(report))
    for line in lines:
        print(line)
    return lines


def main(argv: Iterable[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    run(args.config, start_date=args.start_date, end_date=args.end_date, window_days=args.window_days)


if __name__ == "__main__":
    main()
