"""Structured logging for schedtop.

Events are written as JSON lines to a rotating file. The terminal belongs to
the Textual UI, so nothing is rendered to the console.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import structlog

DEFAULT_STATE_DIR = Path.home() / ".local" / "state" / "schedtop"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3


def default_log_path() -> Path:
    """Return the log file location under the user's state directory."""
    return DEFAULT_STATE_DIR / "schedtop.log"


def install_default_filter(level: int = logging.INFO) -> None:
    """Drop events below level if nothing has configured structlog yet.

    structlog's stock logger prints every event to stdout, debug included.
    Code that uses the engine without calling configure() gets only INFO
    and above. An existing configuration is left alone.
    """
    if not structlog.is_configured():
        structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def configure(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure structlog to write JSON lines through stdlib logging.

    Args:
        log_path: Log file to write. Defaults to default_log_path().
        level: Minimum stdlib level to record.
    """
    path = log_path if log_path is not None else default_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    for handler in stdlib_root.handlers:
        handler.close()
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
