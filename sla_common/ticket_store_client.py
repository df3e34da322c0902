"""HTTP client for the help desk ticket store (Supabase PostgREST API)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Generator, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

import requests

LOGGER = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"

TICKET_SELECT = ",".join(
    [
        "id",
        "status",
        "created_at",
        "first_response_at",
        "resolved_at",
        "sla_breach_response",
        "sla_breach_resolution",
        "priority:ticket_priorities(name,response_time_hours,resolution_time_hours)",
        "category:ticket_categories(name)",
    ]
)

Params = List[Tuple[str, str]]


def _in_filter(values: Iterable[str]) -> str:
    quoted = []
    for value in values:
        text = str(value).replace('"', '\\"')
        quoted.append(f'"{text}"')
    return f"in.({','.join(quoted)})"


class TicketStoreClient:
    """Read-only wrapper around the PostgREST tables used by the SLA report."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        verify_ssl: bool = True,
        timeout: int = 30,
        page_size: int = 1000,
    ) -> None:
        self.base_url = self._normalise_base_url(base_url)
        if self.base_url.rstrip("/") != base_url.rstrip("/"):
            LOGGER.debug("Normalised ticket store URL from %s to %s", base_url, self.base_url)
        self.session = requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.page_size = max(int(page_size), 1)

    # -- Low level request helpers -------------------------------------------------
    def _request(self, method: str, table: str, *, params: Optional[Params] = None) -> Any:
        url = self._build_url(table)
        LOGGER.debug("HTTP %s %s params=%s", method, url, params)
        response = self.session.request(
            method,
            url,
            params=params,
            timeout=self.timeout,
            verify=self.verify_ssl,
        )
        LOGGER.debug("Response status=%s", response.status_code)
        response.raise_for_status()
        if response.content:
            return response.json()
        return []

    def _normalise_base_url(self, base_url: str) -> str:
        """Trim the REST suffix and return the bare project URL."""

        cleaned = base_url.strip().rstrip("/")
        if cleaned.lower().endswith(REST_PREFIX):
            cleaned = cleaned[: -len(REST_PREFIX)]
        cleaned = cleaned.rstrip("/")
        return cleaned or base_url.rstrip("/")

    def _build_url(self, table: str) -> str:
        base = self.base_url.rstrip("/") + "/"
        return urljoin(base, f"{REST_PREFIX.lstrip('/')}/{table.lstrip('/')}")

    def _select(self, table: str, params: Params) -> List[Dict[str, Any]]:
        payload = self._request("GET", table, params=params)
        if isinstance(payload, list):
            return [row for row in payload if isinstance(row, dict)]
        return []

    # -- Public API ----------------------------------------------------------------
    def iter_tickets(
        self,
        *,
        created_from: datetime,
        created_to: datetime,
        progress_callback: Optional[Callable[[int, Optional[int]], None]] = None,
    ) -> Generator[Dict[str, Any], None, None]:
        """Yield ticket rows created in ``[created_from, created_to)``.

        Rows carry their joined priority and category metadata. Pages are
        requested with ``limit``/``offset`` until a short page is returned;
        ``progress_callback`` receives ``(processed_count, None)`` after each
        page.
        """
        offset = 0
        processed = 0
        while True:
            params: Params = [
                ("select", TICKET_SELECT),
                ("created_at", f"gte.{created_from.isoformat()}"),
                ("created_at", f"lt.{created_to.isoformat()}"),
                ("order", "created_at.asc,id.asc"),
                ("limit", str(self.page_size)),
                ("offset", str(offset)),
            ]
            rows = self._select("tickets", params)
            LOGGER.info("Fetched %s tickets at offset %s", len(rows), offset)
            for row in rows:
                yield row
            processed += len(rows)
            if progress_callback:
                progress_callback(processed, None)
            if len(rows) < self.page_size:
                break
            offset += self.page_size

    def get_setting(self, key: str) -> Optional[str]:
        rows = self._select(
            "system_settings",
            [("select", "value"), ("key", f"eq.{key}"), ("limit", "1")],
        )
        if not rows:
            return None
        value = rows[0].get("value")
        return str(value) if value else None

    def list_user_ids_with_roles(self, roles: Sequence[str]) -> List[str]:
        if not roles:
            return []
        rows = self._select("user_roles", [("select", "user_id"), ("role", _in_filter(roles))])
        user_ids: List[str] = []
        for row in rows:
            user_id = row.get("user_id")
            if user_id and str(user_id) not in user_ids:
                user_ids.append(str(user_id))
        return user_ids

    def list_profile_emails(self, user_ids: Sequence[str]) -> List[str]:
        if not user_ids:
            return []
        rows = self._select("profiles", [("select", "email,full_name"), ("id", _in_filter(user_ids))])
        emails: List[str] = []
        for row in rows:
            email = (row.get("email") or "").strip()
            if email and email not in emails:
                emails.append(email)
        return emails
