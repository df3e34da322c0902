"""Shared modules for the weekly SLA compliance report scripts."""

from .config import ConfigError, load_config, resolve_path
from .logging_setup import configure_logging
from .mailer import DeliveryError, ResendMailer
from .metrics import ComplianceReport, Ticket, calculate_metrics
from .report_formatter import render_html
from .ticket_store_client import TicketStoreClient

__all__ = [
    "ConfigError",
    "load_config",
    "resolve_path",
    "configure_logging",
    "DeliveryError",
    "ResendMailer",
    "ComplianceReport",
    "Ticket",
    "calculate_metrics",
    "render_html",
    "TicketStoreClient",
]
