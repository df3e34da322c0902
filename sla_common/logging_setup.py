"""Logging sinks for the SLA report scripts."""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.logging import RichHandler

from .config import resolve_path

DEFAULT_LOG_PATH = "logs/sla_reports.log"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 8

# Chatty at DEBUG while rendering charts and PDFs or pooling connections.
QUIET_LOGGERS = ("urllib3", "matplotlib", "fontTools", "PIL")

PLAIN_CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_handler(console_cfg: Dict[str, Any]) -> logging.Handler:
    level = str(console_cfg.get("level", "INFO")).upper()
    if console_cfg.get("rich_format", True):
        handler: logging.Handler = RichHandler(
            level=level,
            rich_tracebacks=True,
            show_path=False,
            markup=False,
            log_time_format=f"[{DATE_FORMAT}]",
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(PLAIN_CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _file_handler(file_cfg: Dict[str, Any], base_dir: Optional[Path]) -> logging.Handler:
    """Size-rotated log file; the weekly job appends to it across runs."""
    file_path = resolve_path(file_cfg.get("path", DEFAULT_LOG_PATH), base=base_dir)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        file_path,
        mode="a",
        maxBytes=int(file_cfg.get("max_bytes", DEFAULT_MAX_BYTES)),
        backupCount=int(file_cfg.get("backup_count", DEFAULT_BACKUP_COUNT)),
        encoding="utf-8",
    )
    handler.setLevel(str(file_cfg.get("level", "DEBUG")).upper())
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def configure_logging(config: Dict[str, Any], *, base_dir: Path | None = None) -> List[logging.Handler]:
    """Replace the root logger's handlers with the sinks named in ``config['logging']``.

    Returns the installed handlers.
    """
    logging.captureWarnings(True)
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    root.setLevel(logging.DEBUG)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging_config = config.get("logging", {})
    console_cfg = logging_config.get("console", {})
    file_cfg = logging_config.get("file", {})

    handlers: List[logging.Handler] = []
    if console_cfg.get("enabled", True):
        handlers.append(_console_handler(console_cfg))
    if file_cfg.get("enabled", True):
        handlers.append(_file_handler(file_cfg, base_dir))
    for handler in handlers:
        root.addHandler(handler)
    return handlers
