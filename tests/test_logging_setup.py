"""Tests for root logger configuration."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

import pytest
from rich.logging import RichHandler

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sla_common.logging_setup import QUIET_LOGGERS, configure_logging


@pytest.fixture(name="root_logger")
def fixture_root_logger():
    root = logging.getLogger()
    yield root
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)


def test_plain_console_handler(root_logger, tmp_path: Path) -> None:
    config = {
        "logging": {
            "console": {"rich_format": False, "level": "warning"},
            "file": {"enabled": False},
        }
    }

    handlers = configure_logging(config, base_dir=tmp_path)

    assert root_logger.handlers == handlers
    assert len(handlers) == 1
    assert type(handlers[0]) is logging.StreamHandler
    assert handlers[0].level == logging.WARNING


def test_rich_console_is_default(root_logger, tmp_path: Path) -> None:
    handlers = configure_logging({"logging": {"file": {"enabled": False}}}, base_dir=tmp_path)

    assert len(handlers) == 1
    assert isinstance(handlers[0], RichHandler)
    assert handlers[0].level == logging.INFO


def test_file_handler_rotates_under_base_dir(root_logger, tmp_path: Path) -> None:
    config = {
        "logging": {
            "console": {"enabled": False},
            "file": {"path": "logs/weekly.log", "max_bytes": 1024, "backup_count": 2, "level": "INFO"},
        }
    }

    handlers = configure_logging(config, base_dir=tmp_path)

    assert len(handlers) == 1
    handler = handlers[0]
    assert isinstance(handler, RotatingFileHandler)
    assert Path(handler.baseFilename) == tmp_path / "logs" / "weekly.log"
    assert handler.maxBytes == 1024
    assert handler.backupCount == 2
    assert handler.level == logging.INFO

    logging.getLogger("sla_common.test").info("weekly report started")
    handler.flush()
    assert "weekly report started" in (tmp_path / "logs" / "weekly.log").read_text(encoding="utf-8")


def test_reconfiguring_replaces_previous_handlers(root_logger, tmp_path: Path) -> None:
    config = {"logging": {"console": {"rich_format": False}, "file": {"enabled": False}}}

    first = configure_logging(config, base_dir=tmp_path)
    second = configure_logging(config, base_dir=tmp_path)

    assert root_logger.handlers == second
    assert first[0] not in root_logger.handlers


def test_third_party_debug_output_is_quieted(root_logger, tmp_path: Path) -> None:
    configure_logging({"logging": {"console": {"enabled": False}, "file": {"enabled": False}}}, base_dir=tmp_path)

    assert root_logger.level == logging.DEBUG
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
