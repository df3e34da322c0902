import sys
from importlib import util
from pathlib import Path
from types import ModuleType
from typing import Any, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sla_common.workflow import WeeklyReportResult


def _load_entry_point(platform: str) -> ModuleType:
    module_path = PROJECT_ROOT / platform / "send_weekly_report.py"
    spec = util.spec_from_file_location(f"sla_{platform}.send_weekly_report", module_path)
    assert spec and spec.loader
    module = util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


@pytest.fixture(name="entry_point", params=["macos", "windows"])
def fixture_entry_point(request) -> ModuleType:
    return _load_entry_point(request.param)


def test_main_builds_options_and_prints_summary(entry_point, monkeypatch, capsys) -> None:
    calls: List[Any] = []

    def fake_send(options, *, base_dir=None):
        calls.append(options)
        return WeeklyReportResult(
            success=True,
            message="Report sent to 3 managers",
            summary={"total_tickets": 4, "response_compliance": "75.0", "resolution_compliance": "100.0"},
        )

    monkeypatch.setattr(entry_point, "send_weekly_report", fake_send)

    code = entry_point.main(["--format", "pdf", "--format", "json", "--window-days", "14", "--dry-run"])

    assert code == 0
    options = calls[0]
    assert options.formats == ["pdf", "json"]
    assert options.window_days == 14
    assert options.dry_run is True
    assert options.disable_console is True
    output = capsys.readouterr().out
    assert "Report sent to 3 managers" in output
    assert "Response compliance: 75.0%" in output


def test_main_returns_two_when_nothing_sent(entry_point, monkeypatch, capsys) -> None:
    monkeypatch.setattr(
        entry_point,
        "send_weekly_report",
        lambda options, base_dir=None: WeeklyReportResult(success=False, message="No managers found"),
    )

    assert entry_point.main([]) == 2
    assert "No managers found" in capsys.readouterr().out


def test_main_reports_unexpected_failures(entry_point, monkeypatch, capsys) -> None:
    def failing_send(options, base_dir=None):
        raise RuntimeError("ticket store unreachable")

    monkeypatch.setattr(entry_point, "send_weekly_report", failing_send)

    assert entry_point.main(["--show-console-log"]) == 1
    assert "ticket store unreachable" in capsys.readouterr().err
