"""Deliver rendered reports through the Resend e-mail API."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Sequence

import requests

LOGGER = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_SENDER = "HRIS Help Desk <onboarding@resend.dev>"
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class DeliveryError(RuntimeError):
    """Raised when a report e-mail could not be delivered."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _response_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason or ""
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


class ResendMailer:
    """Send HTML e-mails, retrying rate limits, server errors and network failures."""

    def __init__(
        self,
        *,
        api_key: str,
        sender: str = DEFAULT_SENDER,
        api_url: str = RESEND_API_URL,
        timeout: int = 30,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
    ) -> None:
        self.api_url = api_url
        self.sender = sender
        self.timeout = timeout
        self.max_attempts = max(int(max_attempts), 1)
        self.backoff_seconds = max(float(backoff_seconds), 0.0)
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def send(self, *, subject: str, html: str, recipients: Sequence[str]) -> str:
        """Send ``html`` to ``recipients`` and return the provider message id."""
        if not recipients:
            raise ValueError("At least one recipient is required")
        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": list(recipients),
            "subject": subject,
            "html": html,
        }

        last_error: Optional[DeliveryError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.session.post(self.api_url, json=payload, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_error = DeliveryError(f"Mail transport unreachable: {exc}")
                LOGGER.warning(
                    "Attempt %s/%s to send report failed: %s", attempt, self.max_attempts, exc
                )
            else:
                if response.ok:
                    body = response.json() if response.content else {}
                    message_id = str(body.get("id", "")) if isinstance(body, dict) else ""
                    LOGGER.info("Report e-mail accepted for %s recipients (id=%s)", len(recipients), message_id)
                    return message_id
                message = _response_message(response)
                last_error = DeliveryError(
                    f"Mail transport rejected the report ({response.status_code}): {message}",
                    status_code=response.status_code,
                )
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise last_error
                LOGGER.warning(
                    "Attempt %s/%s to send report returned %s: %s",
                    attempt,
                    self.max_attempts,
                    response.status_code,
                    message,
                )
            if attempt < self.max_attempts and self.backoff_seconds:
                delay = self.backoff_seconds * attempt
                LOGGER.debug("Sleeping %.2fs before retrying delivery", delay)
                time.sleep(delay)

        assert last_error is not None
        raise last_error
