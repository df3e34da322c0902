"""Higher level workflows used by platform specific entry points."""
from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from .config import load_config, resolve_path
from .logging_setup import configure_logging
from .mailer import DEFAULT_SENDER, ResendMailer
from .metrics import ComplianceReport, Ticket, calculate_metrics
from .report_formatter import (
    build_subject,
    render_html,
    render_images,
    render_pdf,
    save_metrics_json,
    write_html,
)
from .ticket_store_client import TicketStoreClient

LOGGER = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7
DEFAULT_FORMATS = ("html", "json")
DEFAULT_RECIPIENT_ROLES = ("admin", "hr_manager")
DEFAULT_SETTINGS_KEY = "resend_api_key"


def _current_utc_timestamp() -> str:
    """Return a compact UTC timestamp for report directory names."""

    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


def _parse_filter_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = date_parser.isoparse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class ReportOptions:
    config_path: Optional[str]
    output_directory: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    window_days: Optional[int] = None
    formats: Optional[List[str]] = None
    dry_run: bool = False
    disable_console: bool = False
    simple_console: bool = False
    console_level: Optional[str] = None
    show_console_log: bool = False


@dataclass
class WeeklyReportResult:
    success: bool
    message: str
    recipients: List[str] = field(default_factory=list)
    report_directory: Optional[Path] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    report: Optional[ComplianceReport] = None


class _ProgressTask:
    """Lightweight textual progress indicator."""

    def __init__(self, description: str, enabled: bool) -> None:
        self.description = description
        self.enabled = enabled
        self.start_time = time.monotonic()
        self.count = 0

    def update(self, count: int, total: Optional[int] = None) -> None:
        if not self.enabled:
            return
        self.count = max(count, 0)
        elapsed = max(time.monotonic() - self.start_time, 0.0)
        rate = self.count / elapsed if elapsed > 0 and self.count > 0 else 0.0
        progress = f"{self.count}/{total}" if total else f"{self.count}"
        parts = [self.description, progress, f"elapsed {elapsed:6.1f}s"]
        parts.append(f"rate {rate:6.2f}/s" if rate > 0 else "rate --")
        sys.stdout.write("\r" + " ".join(parts))
        sys.stdout.flush()

    def done(self) -> None:
        if not self.enabled:
            return
        self.update(self.count)
        sys.stdout.write("\n")
        sys.stdout.flush()


def _prepare_logging(config: dict, options: ReportOptions, *, base_dir: Path) -> None:
    logging_config = config.setdefault("logging", {})
    console_cfg = logging_config.setdefault("console", {})
    if options.disable_console:
        console_cfg["enabled"] = False
    if options.simple_console:
        console_cfg["rich_format"] = False
    if options.console_level:
        console_cfg["level"] = options.console_level
    configure_logging(config, base_dir=base_dir)


def create_store_client(config: dict) -> TicketStoreClient:
    store_cfg = config.get("ticket_store", {})
    base_url = store_cfg.get("base_url")
    api_key = store_cfg.get("api_key")
    if not base_url or not api_key:
        raise ValueError("Configuration missing ticket_store.base_url or ticket_store.api_key")
    return TicketStoreClient(
        base_url=base_url,
        api_key=api_key,
        verify_ssl=store_cfg.get("verify_ssl", True),
        timeout=int(store_cfg.get("timeout", 30)),
        page_size=int(store_cfg.get("page_size", 1000)),
    )


def _create_mailer(config: dict, api_key: str) -> ResendMailer:
    mail_cfg = config.get("mail", {})
    return ResendMailer(
        api_key=api_key,
        sender=mail_cfg.get("sender", DEFAULT_SENDER),
        timeout=int(mail_cfg.get("timeout", 30)),
        max_attempts=int(mail_cfg.get("max_attempts", 3)),
        backoff_seconds=float(mail_cfg.get("retry_backoff_seconds", 2.0)),
    )


def resolve_window(
    *,
    start_date: Optional[str],
    end_date: Optional[str],
    window_days: int,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Return the ``[start, end)`` reporting window in UTC.

    Explicit dates win; otherwise the window covers ``window_days`` ending at
    ``end_date`` or now.
    """
    end = _parse_filter_date(end_date) or (now or datetime.now(timezone.utc))
    start = _parse_filter_date(start_date) or end - timedelta(days=window_days)
    if start >= end:
        raise ValueError(f"Reporting window start {start.isoformat()} must precede end {end.isoformat()}")
    return start, end


def fetch_tickets(
    client: TicketStoreClient,
    window_start: datetime,
    window_end: datetime,
    *,
    show_progress: bool = False,
) -> List[Ticket]:
    progress = _ProgressTask("Fetching tickets", show_progress)
    tickets: List[Ticket] = []
    skipped = 0
    try:
        for row in client.iter_tickets(
            created_from=window_start,
            created_to=window_end,
            progress_callback=progress.update,
        ):
            try:
                tickets.append(Ticket.from_api(row))
            except ValueError as exc:
                skipped += 1
                LOGGER.warning("Skipping ticket row: %s", exc)
    finally:
        progress.done()
    if skipped:
        LOGGER.warning("Skipped %s ticket rows without a usable creation time", skipped)
    LOGGER.info("Found %s tickets between %s and %s", len(tickets), window_start, window_end)
    return tickets


def compute_window_report(
    client: TicketStoreClient,
    window_start: datetime,
    window_end: datetime,
    *,
    show_progress: bool = False,
) -> ComplianceReport:
    tickets = fetch_tickets(client, window_start, window_end, show_progress=show_progress)
    return calculate_metrics(tickets)


def _resolve_mail_api_key(config: dict, client: TicketStoreClient) -> Optional[str]:
    mail_cfg = config.get("mail", {})
    if mail_cfg.get("api_key"):
        return str(mail_cfg["api_key"])
    return client.get_setting(mail_cfg.get("settings_key", DEFAULT_SETTINGS_KEY))


def _resolve_recipients(config: dict, client: TicketStoreClient) -> Tuple[List[str], str]:
    """Return recipients and, when there are none, the reason why."""
    recipients_cfg = config.get("recipients", {})
    roles = recipients_cfg.get("roles") or list(DEFAULT_RECIPIENT_ROLES)
    extra = [str(email).strip() for email in recipients_cfg.get("extra") or [] if str(email).strip()]

    user_ids = client.list_user_ids_with_roles(roles)
    if not user_ids and not extra:
        return [], "No managers found"
    emails = client.list_profile_emails(user_ids)
    for email in extra:
        if email not in emails:
            emails.append(email)
    if not emails:
        return [], "No manager emails found"
    return emails, ""


def write_report_bundle(
    report: ComplianceReport,
    window_start: datetime,
    window_end: datetime,
    *,
    report_root: Path,
    formats: List[str],
    html: Optional[str] = None,
) -> None:
    report_root.mkdir(parents=True, exist_ok=True)

    if "html" in formats:
        html_path = report_root / "report.html"
        write_html(report, window_start, window_end, html_path, html=html)
        LOGGER.info("HTML report written to %s", html_path)

    if "pdf" in formats:
        pdf_path = report_root / "report.pdf"
        render_pdf(report, window_start, window_end, pdf_path)
        LOGGER.info("PDF report written to %s", pdf_path)

    if "images" in formats:
        generated = render_images(report, report_root / "images")
        if generated:
            LOGGER.info("Generated %s chart images", len(generated))

    if "json" in formats:
        json_path = report_root / "metrics.json"
        save_metrics_json(report, window_start, window_end, json_path)
        LOGGER.info("Metrics JSON written to %s", json_path)


def _summarise(report: ComplianceReport) -> Dict[str, Any]:
    return {
        "total_tickets": report.total_tickets,
        "response_compliance": f"{report.response_compliance:.1f}",
        "resolution_compliance": f"{report.resolution_compliance:.1f}",
    }


def send_weekly_report(options: ReportOptions, *, base_dir: Optional[Path] = None) -> WeeklyReportResult:
    """Fetch the window's tickets, compute SLA metrics, render and deliver them."""
    base_dir = base_dir or Path.cwd()
    config = load_config(options.config_path)
    _prepare_logging(config, options, base_dir=base_dir)
    LOGGER.info("Generating weekly SLA performance report")

    client = create_store_client(config)

    api_key = _resolve_mail_api_key(config, client)
    if not api_key and not options.dry_run:
        LOGGER.warning("Resend API key not configured")
        return WeeklyReportResult(success=False, message="Resend API key not configured")

    recipients, reason = _resolve_recipients(config, client)
    if not recipients and not options.dry_run:
        LOGGER.warning(reason)
        return WeeklyReportResult(success=False, message=reason)
    LOGGER.info("Found %s managers to notify", len(recipients))

    reporting_cfg = config.get("reporting", {})
    window_days = int(options.window_days or reporting_cfg.get("window_days", DEFAULT_WINDOW_DAYS))
    window_start, window_end = resolve_window(
        start_date=options.start_date,
        end_date=options.end_date,
        window_days=window_days,
    )

    report = compute_window_report(
        client,
        window_start,
        window_end,
        show_progress=not options.show_console_log,
    )

    formats = [fmt.lower() for fmt in (options.formats or reporting_cfg.get("formats") or DEFAULT_FORMATS)]
    output_directory = resolve_path(
        options.output_directory or reporting_cfg.get("output_directory", "reports"), base=base_dir
    )
    report_root = output_directory / f"sla_report_{_current_utc_timestamp()}"
    html = render_html(report, window_start, window_end)
    write_report_bundle(
        report,
        window_start,
        window_end,
        report_root=report_root,
        formats=formats,
        html=html,
    )

    summary = _summarise(report)
    if options.dry_run:
        LOGGER.info("Dry run enabled: report not sent")
        return WeeklyReportResult(
            success=True,
            message=f"Dry run: report written to {report_root}",
            recipients=recipients,
            report_directory=report_root,
            summary=summary,
            report=report,
        )

    assert api_key is not None
    mailer = _create_mailer(config, api_key)
    mailer.send(
        subject=build_subject(window_start, window_end),
        html=html,
        recipients=recipients,
    )
    LOGGER.info("Weekly SLA report sent to %s managers", len(recipients))
    return WeeklyReportResult(
        success=True,
        message=f"Report sent to {len(recipients)} managers",
        recipients=recipients,
        report_directory=report_root,
        summary=summary,
        report=report,
    )
