"""Tests for ResendMailer delivery and retry behaviour."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List
from unittest.mock import MagicMock
import sys

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sla_common import mailer as mailer_module
from sla_common.mailer import RESEND_API_URL, DeliveryError, ResendMailer


def _response(status_code: int, payload: Any = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.content = b"{}" if payload is not None else b""
    response.json.return_value = payload if payload is not None else {}
    response.text = ""
    response.reason = "Error"
    return response


@pytest.fixture(name="sleeps")
def fixture_sleeps(monkeypatch: pytest.MonkeyPatch) -> List[float]:
    recorded: List[float] = []
    monkeypatch.setattr(mailer_module.time, "sleep", recorded.append)
    return recorded


def _mailer(**kwargs: Any) -> ResendMailer:
    mailer = ResendMailer(api_key="re_test", sender="Help Desk <desk@example.com>", **kwargs)
    mailer.session = MagicMock()
    return mailer


def test_send_posts_payload_and_returns_id(sleeps: List[float]) -> None:
    mailer = _mailer()
    mailer.session.post.return_value = _response(200, {"id": "msg-1"})

    message_id = mailer.send(subject="Weekly", html="<p>hi</p>", recipients=["a@example.com"])

    assert message_id == "msg-1"
    url = mailer.session.post.call_args[0][0]
    payload = mailer.session.post.call_args[1]["json"]
    assert url == RESEND_API_URL
    assert payload == {
        "from": "Help Desk <desk@example.com>",
        "to": ["a@example.com"],
        "subject": "Weekly",
        "html": "<p>hi</p>",
    }
    assert sleeps == []


def test_authorization_header_uses_api_key() -> None:
    mailer = ResendMailer(api_key="re_test")

    assert mailer.session.headers["Authorization"] == "Bearer re_test"


def test_send_retries_server_errors_then_succeeds(sleeps: List[float]) -> None:
    mailer = _mailer(max_attempts=3, backoff_seconds=1.5)
    mailer.session.post.side_effect = [
        _response(503, {"message": "unavailable"}),
        _response(429, {"message": "slow down"}),
        _response(200, {"id": "msg-2"}),
    ]

    assert mailer.send(subject="s", html="h", recipients=["a@example.com"]) == "msg-2"
    assert mailer.session.post.call_count == 3
    assert sleeps == [1.5, 3.0]


def test_send_retries_connection_errors_and_gives_up(sleeps: List[float]) -> None:
    mailer = _mailer(max_attempts=2, backoff_seconds=1)
    mailer.session.post.side_effect = requests.ConnectionError("network down")

    with pytest.raises(DeliveryError, match="unreachable"):
        mailer.send(subject="s", html="h", recipients=["a@example.com"])
    assert mailer.session.post.call_count == 2
    assert sleeps == [1.0]


def test_send_does_not_retry_client_errors(sleeps: List[float]) -> None:
    mailer = _mailer(max_attempts=3)
    mailer.session.post.return_value = _response(422, {"message": "invalid from address"})

    with pytest.raises(DeliveryError) as excinfo:
        mailer.send(subject="s", html="h", recipients=["a@example.com"])

    assert excinfo.value.status_code == 422
    assert "invalid from address" in str(excinfo.value)
    assert mailer.session.post.call_count == 1
    assert sleeps == []


def test_send_requires_recipients() -> None:
    mailer = _mailer()

    with pytest.raises(ValueError):
        mailer.send(subject="s", html="h", recipients=[])
    mailer.session.post.assert_not_called()
