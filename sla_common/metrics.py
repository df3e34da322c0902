"""SLA compliance metrics for a window of help desk tickets.

The aggregation here is pure: it performs no I/O and keeps no state between
calls, so independent windows (for example one per tenant) can be computed
concurrently. Breach flags are precomputed by the ticket store and are taken
as ground truth.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from statistics import mean
from typing import Any, Dict, Iterable, List, Optional

from dateutil import parser as date_parser

LOGGER = logging.getLogger(__name__)

RESOLVED_STATUSES = frozenset({"resolved", "closed"})
NO_PRIORITY = "No Priority"
UNCATEGORIZED = "Uncategorized"
TOP_CATEGORY_LIMIT = 5


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.isoparse(str(value))
        except (ValueError, TypeError, OverflowError):
            LOGGER.debug("Unable to parse datetime value %r", value)
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hours_between(start: datetime, end: datetime) -> float:
    delta = _as_utc(end) - _as_utc(start)
    return delta.total_seconds() / 3600.0


def _unwrap_join(value: Any) -> Optional[Dict[str, Any]]:
    """Return the single joined row PostgREST embeds as an object or a list."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        return value
    return None


def _optional_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Priority:
    name: str
    response_time_hours: Optional[float] = None
    resolution_time_hours: Optional[float] = None


@dataclass(frozen=True)
class Category:
    name: str


@dataclass(frozen=True)
class Ticket:
    """A help desk ticket joined with its priority and category metadata."""

    id: str
    status: str
    created_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    sla_breach_response: bool = False
    sla_breach_resolution: bool = False
    priority: Optional[Priority] = None
    category: Optional[Category] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Ticket":
        """Build a ticket from a ticket store row.

        Raises ``ValueError`` when ``created_at`` is missing or unparsable,
        since the SLA clock cannot be anchored without it.
        """
        created = _parse_datetime(payload.get("created_at"))
        if created is None:
            raise ValueError(
                f"Ticket {payload.get('id')!r} has no usable created_at value: "
                f"{payload.get('created_at')!r}"
            )

        priority_row = _unwrap_join(payload.get("priority"))
        priority = None
        if priority_row and priority_row.get("name"):
            priority = Priority(
                name=str(priority_row["name"]),
                response_time_hours=_optional_float(priority_row.get("response_time_hours")),
                resolution_time_hours=_optional_float(priority_row.get("resolution_time_hours")),
            )

        category_row = _unwrap_join(payload.get("category"))
        category = None
        if category_row and category_row.get("name"):
            category = Category(name=str(category_row["name"]))

        return cls(
            id=str(payload.get("id", "")),
            status=str(payload.get("status") or "").strip().lower(),
            created_at=created,
            first_response_at=_parse_datetime(payload.get("first_response_at")),
            resolved_at=_parse_datetime(payload.get("resolved_at")),
            sla_breach_response=payload.get("sla_breach_response") is True,
            sla_breach_resolution=payload.get("sla_breach_resolution") is True,
            priority=priority,
            category=category,
        )

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_STATUSES

    @property
    def priority_name(self) -> str:
        return self.priority.name if self.priority and self.priority.name else NO_PRIORITY

    @property
    def category_name(self) -> str:
        return self.category.name if self.category and self.category.name else UNCATEGORIZED

    @property
    def has_breach(self) -> bool:
        return self.sla_breach_response or self.sla_breach_resolution


@dataclass(frozen=True)
class PriorityBreakdown:
    name: str
    total: int
    response_breaches: int
    resolution_breaches: int


@dataclass(frozen=True)
class CategoryBreakdown:
    name: str
    total: int
    breaches: int


@dataclass(frozen=True)
class ComplianceReport:
    """Aggregate SLA statistics for one reporting window."""

    total_tickets: int = 0
    resolved_tickets: int = 0
    response_compliance: float = 100.0
    resolution_compliance: float = 100.0
    response_breaches: int = 0
    resolution_breaches: int = 0
    avg_response_time_hours: float = 0.0
    avg_resolution_time_hours: float = 0.0
    by_priority: List[PriorityBreakdown] = field(default_factory=list)
    top_categories: List[CategoryBreakdown] = field(default_factory=list)

    @property
    def has_breaches(self) -> bool:
        return bool(self.response_breaches or self.resolution_breaches)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _compliance(eligible: int, breaches: int) -> float:
    """Share of eligible tickets without a breach, clamped to [0, 100].

    No eligible tickets means nothing could breach, which counts as 100.
    """
    if eligible <= 0:
        return 100.0
    value = (eligible - breaches) / eligible * 100.0
    return min(max(value, 0.0), 100.0)


def _average(values: List[float]) -> float:
    return float(mean(values)) if values else 0.0


def _group_by_priority(tickets: Iterable[Ticket]) -> List[PriorityBreakdown]:
    groups: Dict[str, Dict[str, int]] = defaultdict(lambda: {
        "total": 0,
        "response_breaches": 0,
        "resolution_breaches": 0,
    })
    for ticket in tickets:
        entry = groups[ticket.priority_name]
        entry["total"] += 1
        if ticket.sla_breach_response:
            entry["response_breaches"] += 1
        if ticket.sla_breach_resolution:
            entry["resolution_breaches"] += 1
    rows = [PriorityBreakdown(name=name, **counts) for name, counts in groups.items()]
    rows.sort(key=lambda row: (-row.total, row.name))
    return rows


def _group_by_category(tickets: Iterable[Ticket], limit: int) -> List[CategoryBreakdown]:
    groups: Dict[str, Dict[str, int]] = defaultdict(lambda: {"total": 0, "breaches": 0})
    for ticket in tickets:
        entry = groups[ticket.category_name]
        entry["total"] += 1
        if ticket.has_breach:
            entry["breaches"] += 1
    rows = [CategoryBreakdown(name=name, **counts) for name, counts in groups.items()]
    rows.sort(key=lambda row: (-row.total, row.name))
    return rows[:limit]


def calculate_metrics(
    tickets: Iterable[Ticket],
    *,
    top_category_limit: int = TOP_CATEGORY_LIMIT,
) -> ComplianceReport:
    """Compute the compliance report for tickets already limited to a window.

    Equal totals in the breakdowns are ordered by name so the report does not
    depend on the order tickets arrive in.
    """
    tickets = list(tickets)
    total = len(tickets)
    if total == 0:
        return ComplianceReport()

    resolved = sum(1 for ticket in tickets if ticket.is_resolved)
    responded = [ticket for ticket in tickets if ticket.first_response_at is not None]
    response_breaches = sum(1 for ticket in tickets if ticket.sla_breach_response)
    resolution_breaches = sum(1 for ticket in tickets if ticket.sla_breach_resolution)

    # Resolution time uses the timestamp, resolution compliance uses the status.
    response_hours = [
        _hours_between(ticket.created_at, ticket.first_response_at)
        for ticket in responded
        if ticket.first_response_at is not None
    ]
    resolution_hours = [
        _hours_between(ticket.created_at, ticket.resolved_at)
        for ticket in tickets
        if ticket.resolved_at is not None
    ]

    report = ComplianceReport(
        total_tickets=total,
        resolved_tickets=resolved,
        response_compliance=_compliance(len(responded), response_breaches),
        resolution_compliance=_compliance(resolved, resolution_breaches),
        response_breaches=response_breaches,
        resolution_breaches=resolution_breaches,
        avg_response_time_hours=_average(response_hours),
        avg_resolution_time_hours=_average(resolution_hours),
        by_priority=_group_by_priority(tickets),
        top_categories=_group_by_category(tickets, top_category_limit),
    )
    LOGGER.debug(
        "Computed SLA metrics for %s tickets (%s resolved, %s responded)",
        total,
        resolved,
        len(responded),
    )
    return report
