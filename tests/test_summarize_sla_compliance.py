import sys
from datetime import datetime, timezone
from importlib import util
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

MODULE_PATH = PROJECT_ROOT / "tools" / "summarize_sla_compliance.py"
spec = util.spec_from_file_location("sla_tools.summarize", MODULE_PATH)
assert spec and spec.loader
summary_tool = util.module_from_spec(spec)
sys.modules[spec.name] = summary_tool
spec.loader.exec_module(summary_tool)

WINDOW = (datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 1, 8, tzinfo=timezone.utc))


class DummyClient:
    def __init__(self, rows: Iterable[Dict[str, Any]]):
        self._rows = list(rows)

    def iter_tickets(self, *, created_from, created_to, progress_callback=None):
        return list(self._rows)


@pytest.fixture(name="sample_rows")
def fixture_sample_rows() -> List[Dict[str, Any]]:
    return [
        {
            "id": "1",
            "status": "closed",
            "created_at": "2024-01-02T08:00:00Z",
            "first_response_at": "2024-01-02T09:30:00Z",
            "resolved_at": "2024-01-02T16:00:00Z",
            "sla_breach_response": False,
            "sla_breach_resolution": False,
            "priority": {"name": "Urgent"},
            "category": {"name": "Payroll"},
        },
        {
            "id": "2",
            "status": "open",
            "created_at": "2024-01-03T08:00:00Z",
            "first_response_at": "2024-01-03T09:00:00Z",
            "sla_breach_response": True,
            "priority": {"name": "Urgent"},
            "category": {"name": "Payroll"},
        },
        {
            "id": "3",
            "status": "open",
            "created_at": "2024-01-04T08:00:00Z",
            "priority": None,
            "category": {"name": "Benefits"},
        },
    ]


def _install(
    monkeypatch: pytest.MonkeyPatch,
    rows: List[Dict[str, Any]],
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    captured: Dict[str, Any] = {}

    def fake_resolve_window(**kwargs: Any):
        captured["window_args"] = kwargs
        return WINDOW

    monkeypatch.setattr(summary_tool, "load_config", lambda path: config or {"ticket_store": {}})
    monkeypatch.setattr(summary_tool, "configure_logging", lambda config, base_dir=None: None)
    monkeypatch.setattr(summary_tool, "create_store_client", lambda config: DummyClient(rows))
    monkeypatch.setattr(summary_tool, "resolve_window", fake_resolve_window)
    return captured


def test_run_prints_summary_and_breakdowns(monkeypatch, capsys, sample_rows) -> None:
    captured = _install(monkeypatch, sample_rows)

    lines = summary_tool.run(None, window_days=14)

    output = capsys.readouterr().out
    assert captured["window_args"]["window_days"] == 14
    assert lines[0] == "SLA compliance 2024-01-01T00:00:00+00:00 to 2024-01-08T00:00:00+00:00"
    assert "Total tickets" in output
    assert "50.0% (Critical)" in output
    assert "100.0% (Excellent)" in output
    assert "Avg response time (h)" in output

    priority_rows = [line.split() for line in lines if line.startswith(("Urgent", "No Priority"))]
    assert priority_rows == [["Urgent", "2", "1", "0"], ["No", "Priority", "1", "0", "0"]]
    category_rows = [line.split() for line in lines if line.startswith(("Payroll", "Benefits"))]
    assert category_rows == [["Payroll", "2", "1"], ["Benefits", "1", "0"]]


def test_run_for_empty_window_omits_breakdowns(monkeypatch, capsys) -> None:
    _install(monkeypatch, [])

    lines = summary_tool.run(None)

    assert not any(line.startswith("Priority") for line in lines)
    assert not any(line.startswith("Category") for line in lines)
    assert "100.0% (Excellent)" in capsys.readouterr().out


def test_run_exits_when_store_is_unavailable(monkeypatch) -> None:
    _install(monkeypatch, [])

    def failing_client(config):
        raise ValueError("Configuration missing ticket_store.base_url or ticket_store.api_key")

    monkeypatch.setattr(summary_tool, "create_store_client", failing_client)

    with pytest.raises(SystemExit) as excinfo:
        summary_tool.run(None)
    assert excinfo.value.code == 1


def test_table_aligns_columns() -> None:
    lines = summary_tool._table(("Name", "Count"), [("Payroll", "12"), ("HR", "3")])

    assert lines == [
        "Name     Count",
        "-------  -----",
        "Payroll     12",
        "HR           3",
    ]


def test_run_reads_window_length_from_config(monkeypatch, capsys) -> None:
    captured = _install(monkeypatch, [], {"ticket_store": {}, "reporting": {"window_days": 30}})

    summary_tool.run(None)

    assert captured["window_args"]["window_days"] == 30


def test_run_defaults_window_length_without_config(monkeypatch, capsys) -> None:
    captured = _install(monkeypatch, [])

    summary_tool.run(None)

    assert captured["window_args"]["window_days"] == summary_tool.DEFAULT_WINDOW_DAYS == 7


def test_parser_leaves_window_length_to_config() -> None:
    args = summary_tool.build_parser().parse_args([])

    assert args.window_days is None
