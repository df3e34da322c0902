"""Render SLA compliance reports as HTML e-mail, PDF, charts and JSON."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from importlib import import_module
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from jinja2 import Template

from .metrics import ComplianceReport

LOGGER = logging.getLogger(__name__)

GREEN = "#22c55e"
AMBER = "#eab308"
RED = "#ef4444"

# (minimum percentage, label) checked top down.
COMPLIANCE_LABELS: Sequence[Tuple[float, str]] = (
    (95.0, "Excellent"),
    (80.0, "Good"),
    (60.0, "Needs Improvement"),
)
COMPLIANCE_COLORS: Sequence[Tuple[float, str]] = (
    (95.0, GREEN),
    (80.0, AMBER),
)


def compliance_label(value: float) -> str:
    for threshold, label in COMPLIANCE_LABELS:
        if value >= threshold:
            return label
    return "Critical"


def compliance_color(value: float) -> str:
    for threshold, color in COMPLIANCE_COLORS:
        if value >= threshold:
            return color
    return RED


def breach_color(count: int) -> str:
    return RED if count > 0 else GREEN


def format_date(value: datetime) -> str:
    """Format a date as ``Jan 5, 2024``."""
    return f"{value:%b} {value.day}, {value.year}"


def build_subject(window_start: datetime, window_end: datetime) -> str:
    return (
        "Weekly SLA Performance Report - "
        f"{format_date(window_start)} to {format_date(window_end)}"
    )


HTML_TEMPLATE = Template(
    """
<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Weekly SLA Report</title>
  </head>
  <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; margin: 0; padding: 0; background-color: #f3f4f6;">
    <div style="max-width: 700px; margin: 0 auto; padding: 20px;">
      <div style="background: linear-gradient(135deg, #3b82f6 0%, #1d4ed8 100%); padding: 30px; border-radius: 12px 12px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 28px;">Weekly SLA Report</h1>
        <p style="color: rgba(255,255,255,0.9); margin: 10px 0 0 0; font-size: 16px;">{{ window_label }}</p>
      </div>

      <div style="background: white; padding: 30px; border: 1px solid #e5e7eb; border-top: none;">
        <h2 style="color: #1f2937; font-size: 20px; margin: 0 0 20px 0; border-bottom: 2px solid #e5e7eb; padding-bottom: 10px;">Executive Summary</h2>
        <table style="width: 100%; margin-bottom: 30px; text-align: center;">
          <tr>
            {% for card in summary_cards %}
            <td style="width: 25%; padding: 10px;">
              <p style="margin: 0; font-size: 32px; font-weight: bold; color: {{ card.color }};">{{ card.value }}</p>
              <p style="margin: 5px 0 0 0; font-size: 12px; color: #6b7280;">{{ card.label }}</p>
            </td>
            {% endfor %}
          </tr>
        </table>

        <h2 style="color: #1f2937; font-size: 20px; margin: 30px 0 20px 0; border-bottom: 2px solid #e5e7eb; padding-bottom: 10px;">SLA Compliance</h2>
        <table style="width: 100%; margin-bottom: 30px;">
          <tr>
            {% for gauge in gauges %}
            <td style="width: 50%; padding: 15px; background: #f9fafb; border-radius: 8px; vertical-align: top; text-align: center;">
              <p style="margin: 0; font-size: 14px; color: #6b7280;">{{ gauge.title }}</p>
              <p style="margin: 10px 0; font-size: 48px; font-weight: bold; color: {{ gauge.color }};">{{ "%.1f"|format(gauge.value) }}%</p>
              <span style="display: inline-block; padding: 4px 12px; background: {{ gauge.color }}20; color: {{ gauge.color }}; border-radius: 20px; font-size: 12px; font-weight: 500;">{{ gauge.label }}</span>
              <p style="margin: 15px 0 0 0; font-size: 12px; color: #6b7280;">{{ gauge.time_label }}: <strong>{{ "%.1f"|format(gauge.hours) }}h</strong></p>
            </td>
            {% endfor %}
          </tr>
        </table>

        {% if report.by_priority %}
        <h2 style="color: #1f2937; font-size: 20px; margin: 30px 0 20px 0; border-bottom: 2px solid #e5e7eb; padding-bottom: 10px;">Performance by Priority</h2>
        <table style="width: 100%; border-collapse: collapse; margin-bottom: 30px;">
          <thead>
            <tr style="background: #f9fafb;">
              <th style="padding: 12px; text-align: left;">Priority</th>
              <th style="padding: 12px; text-align: center;">Tickets</th>
              <th style="padding: 12px; text-align: center;">Response Breaches</th>
              <th style="padding: 12px; text-align: center;">Resolution Breaches</th>
            </tr>
          </thead>
          <tbody>
            {% for row in report.by_priority %}
            <tr>
              <td style="padding: 12px; border-bottom: 1px solid #e5e7eb;">{{ row.name }}</td>
              <td style="padding: 12px; border-bottom: 1px solid #e5e7eb; text-align: center;">{{ row.total }}</td>
              <td style="padding: 12px; border-bottom: 1px solid #e5e7eb; text-align: center; color: {{ breach_color(row.response_breaches) }};">{{ row.response_breaches }}</td>
              <td style="padding: 12px; border-bottom: 1px solid #e5e7eb; text-align: center; color: {{ breach_color(row.resolution_breaches) }};">{{ row.resolution_breaches }}</td>
            </tr>
            {% endfor %}
          </tbody>
        </table>
        {% endif %}

        {% if report.top_categories %}
        <h2 style="color: #1f2937; font-size: 20px; margin: 30px 0 20px 0; border-bottom: 2px solid #e5e7eb; padding-bottom: 10px;">Top Categories</h2>
        <table style="width: 100%; border-collapse: collapse; margin-bottom: 30px;">
          <thead>
            <tr style="background: #f9fafb;">
              <th style="padding: 12px; text-align: left;">Category</th>
              <th style="padding: 12px; text-align: center;">Tickets</th>
              <th style="padding: 12px; text-align: center;">Total Breaches</th>
            </tr>
          </thead>
          <tbody>
            {% for row in report.top_categories %}
            <tr>
              <td style="padding: 12px; border-bottom: 1px solid #e5e7eb;">{{ row.name }}</td>
              <td style="padding: 12px; border-bottom: 1px solid #e5e7eb; text-align: center;">{{ row.total }}</td>
              <td style="padding: 12px; border-bottom: 1px solid #e5e7eb; text-align: center; color: {{ breach_color(row.breaches) }};">{{ row.breaches }}</td>
            </tr>
            {% endfor %}
          </tbody>
        </table>
        {% endif %}

        {% if report.has_breaches %}
        <div style="background: #fef3c7; border-left: 4px solid #f59e0b; padding: 15px; border-radius: 0 8px 8px 0; margin-top: 20px;">
          <p style="margin: 0 0 10px 0; font-weight: 600; color: #92400e;">Areas for Improvement</p>
          <ul style="margin: 0; padding-left: 20px; color: #92400e; font-size: 14px;">
            {% for line in improvement_notes %}
            <li>{{ line }}</li>
            {% endfor %}
          </ul>
        </div>
        {% else %}
        <div style="background: #dcfce7; border-left: 4px solid #22c55e; padding: 15px; border-radius: 0 8px 8px 0; margin-top: 20px;">
          <p style="margin: 0; font-weight: 600; color: #166534;">Great Performance!</p>
          <p style="margin: 10px 0 0 0; color: #166534; font-size: 14px;">No SLA breaches this week. Keep up the excellent work!</p>
        </div>
        {% endif %}
      </div>

      <div style="background: #f9fafb; padding: 20px; border-radius: 0 0 12px 12px; border: 1px solid #e5e7eb; border-top: none; text-align: center;">
        <p style="margin: 0; color: #6b7280; font-size: 12px;">
          This is an automated weekly report from the HRIS Help Desk system.<br />
          Generated on {{ generated_at }}
        </p>
      </div>
    </div>
  </body>
</html>
""",
    autoescape=True,
)


def improvement_notes(report: ComplianceReport) -> List[str]:
    notes: List[str] = []
    if report.response_breaches > 0:
        notes.append(
            f"Response SLA: {report.response_breaches} breach(es) this week. "
            "Consider reviewing staffing during peak hours."
        )
    if report.resolution_breaches > 0:
        notes.append(
            f"Resolution SLA: {report.resolution_breaches} breach(es) this week. "
            "Review ticket complexity and escalation processes."
        )
    return notes


def render_html(
    report: ComplianceReport,
    window_start: datetime,
    window_end: datetime,
    *,
    generated_at: Optional[datetime] = None,
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    summary_cards = [
        {"label": "Total Tickets", "value": report.total_tickets, "color": "#3b82f6"},
        {"label": "Resolved", "value": report.resolved_tickets, "color": GREEN},
        {
            "label": "Response Breaches",
            "value": report.response_breaches,
            "color": breach_color(report.response_breaches),
        },
        {
            "label": "Resolution Breaches",
            "value": report.resolution_breaches,
            "color": breach_color(report.resolution_breaches),
        },
    ]
    gauges = [
        {
            "title": "Response SLA Compliance",
            "value": report.response_compliance,
            "color": compliance_color(report.response_compliance),
            "label": compliance_label(report.response_compliance),
            "time_label": "Avg Response Time",
            "hours": report.avg_response_time_hours,
        },
        {
            "title": "Resolution SLA Compliance",
            "value": report.resolution_compliance,
            "color": compliance_color(report.resolution_compliance),
            "label": compliance_label(report.resolution_compliance),
            "time_label": "Avg Resolution Time",
            "hours": report.avg_resolution_time_hours,
        },
    ]
    return HTML_TEMPLATE.render(
        report=report,
        window_label=f"{format_date(window_start)} - {format_date(window_end)}",
        summary_cards=summary_cards,
        gauges=gauges,
        improvement_notes=improvement_notes(report),
        breach_color=breach_color,
        generated_at=generated_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip(),
    )


def write_html(
    report: ComplianceReport,
    window_start: datetime,
    window_end: datetime,
    output_path: Path,
    *,
    html: Optional[str] = None,
) -> None:
    """Write the HTML report, reusing ``html`` when it was already rendered."""
    if html is None:
        html = render_html(report, window_start, window_end)
    output_path.write_text(html, encoding="utf-8")


def _pdf_text(text: str) -> str:
    """Replace characters the core Helvetica font cannot encode with ``?``."""
    return text.encode("latin-1", "replace").decode("latin-1")


class _PDFReport(FPDF):
    def header(self) -> None:  # pragma: no cover - simple layout call
        self.set_font("Helvetica", "B", 14)
        self.cell(0, 10, "Weekly SLA Report", new_x=XPos.LMARGIN, new_y=YPos.NEXT, align="C")
        self.ln(5)


def render_pdf(
    report: ComplianceReport,
    window_start: datetime,
    window_end: datetime,
    output_path: Path,
) -> None:
    pdf = _PDFReport()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()
    pdf.set_font("Helvetica", size=10)
    pdf.multi_cell(0, 6, f"Window: {format_date(window_start)} - {format_date(window_end)}")
    pdf.ln(4)

    def _section(title: str, body: Iterable[str]) -> None:
        pdf.set_font("Helvetica", "B", 12)
        pdf.cell(0, 8, title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", size=10)
        for line in body:
            pdf.cell(0, 5, _pdf_text(line), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(2)

    _section(
        "Executive Summary",
        [
            f"Total tickets: {report.total_tickets}",
            f"Resolved: {report.resolved_tickets}",
            f"Response breaches: {report.response_breaches}",
            f"Resolution breaches: {report.resolution_breaches}",
        ],
    )
    _section(
        "SLA Compliance",
        [
            f"Response: {report.response_compliance:.1f}% ({compliance_label(report.response_compliance)}), "
            f"avg {report.avg_response_time_hours:.1f}h",
            f"Resolution: {report.resolution_compliance:.1f}% ({compliance_label(report.resolution_compliance)}), "
            f"avg {report.avg_resolution_time_hours:.1f}h",
        ],
    )
    _section(
        "Performance by Priority",
        [
            f"{row.name}: {row.total} tickets, {row.response_breaches} response / "
            f"{row.resolution_breaches} resolution breaches"
            for row in report.by_priority
        ] or ["No tickets in this window."],
    )
    _section(
        "Top Categories",
        [f"{row.name}: {row.total} tickets, {row.breaches} breaches" for row in report.top_categories]
        or ["No tickets in this window."],
    )
    pdf.output(str(output_path))


def _get_pyplot():  # pragma: no cover - thin wrapper around matplotlib import
    matplotlib = import_module("matplotlib")
    matplotlib.use("Agg")
    return import_module("matplotlib.pyplot")


def _plot_bar_chart(labels: List[str], series: Dict[str, List[int]], output_path: Path, title: str) -> None:
    if not labels:
        return
    plt = _get_pyplot()
    plt.figure(figsize=(10, 4))
    width = 0.8 / max(len(series), 1)
    positions = list(range(len(labels)))
    for index, (name, values) in enumerate(series.items()):
        offsets = [pos + index * width for pos in positions]
        plt.bar(offsets, values, width=width, label=name)
    plt.xticks([pos + width * (len(series) - 1) / 2 for pos in positions], labels, rotation=45, ha="right")
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close()


def render_images(report: ComplianceReport, output_dir: Path) -> List[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    generated: List[Path] = []

    priority_path = output_dir / "breaches_by_priority.png"
    _plot_bar_chart(
        [row.name for row in report.by_priority],
        {
            "Tickets": [row.total for row in report.by_priority],
            "Response breaches": [row.response_breaches for row in report.by_priority],
            "Resolution breaches": [row.resolution_breaches for row in report.by_priority],
        },
        priority_path,
        "SLA Breaches by Priority",
    )
    if priority_path.exists():
        generated.append(priority_path)

    category_path = output_dir / "top_categories.png"
    _plot_bar_chart(
        [row.name for row in report.top_categories],
        {
            "Tickets": [row.total for row in report.top_categories],
            "Breaches": [row.breaches for row in report.top_categories],
        },
        category_path,
        "Top Categories",
    )
    if category_path.exists():
        generated.append(category_path)

    return generated


def report_payload(
    report: ComplianceReport,
    window_start: datetime,
    window_end: datetime,
) -> Dict[str, Any]:
    payload = report.to_dict()
    payload["window_start"] = window_start.isoformat()
    payload["window_end"] = window_end.isoformat()
    payload["response_label"] = compliance_label(report.response_compliance)
    payload["resolution_label"] = compliance_label(report.resolution_compliance)
    return payload


def save_metrics_json(
    report: ComplianceReport,
    window_start: datetime,
    window_end: datetime,
    output_path: Path,
) -> None:
    payload = report_payload(report, window_start, window_end)
    output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
