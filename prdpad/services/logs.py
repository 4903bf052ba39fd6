"""
Logging configuration for prdpad.

Events are structured key/value records.  While a note is open in an editor
session its ID is bound with :func:`bind_note_context`, so every record logged
in the meantime (saves, reconciliation, parse warnings) carries ``note_id``
without each call site passing it.
"""

import logging
import logging.handlers
import os
import sys
from typing import TYPE_CHECKING, Final

import structlog

from prdpad.utils import get_app_data_path

if TYPE_CHECKING:
    from pathlib import Path

#: Environment variable that enables console logging at DEBUG level.
DEBUG_ENV: Final[str] = "PRDPAD_DEBUG"
#: Third-party loggers kept at WARNING unless debugging.
QUIET_LOGGERS: Final[tuple[str, ...]] = ("alembic", "sqlalchemy")


def get_log_dir() -> "Path":
    """
    Get the path to the log directory.

    Returns:
        The path to the log directory.

    """
    log_dir = get_app_data_path() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file_path() -> "Path":
    """
    Get the path to the current log file.

    Returns:
        The path to the current log file.

    """
    return get_log_dir() / "prdpad.log.json"


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(debug: bool | None = None) -> None:
    """
    Configure structlog and standard logging.

    - JSON logs to file with 3-week rotation.
    - Records from the standard library (alembic, SQLAlchemy) go through the
      same processors, so they are rendered the same way.
    - In debug mode, console logs and DEBUG level; otherwise INFO, with the
      :data:`QUIET_LOGGERS` at WARNING.

    Keyword Args:
        debug: Whether to log in debug mode (default: whether ``PRDPAD_DEBUG``
            is set)

    """
    if debug is None:
        debug = DEBUG_ENV in os.environ
    processors = _shared_processors()

    file_handler = logging.handlers.TimedRotatingFileHandler(
        get_log_file_path(),
        when="D",
        interval=21,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=processors,
        )
    )
    handlers: list[logging.Handler] = [file_handler]

    if debug:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(),
                foreign_pre_chain=processors,
            )
        )
        handlers.append(console_handler)

    logging.basicConfig(
        handlers=handlers,
        level=logging.DEBUG if debug else logging.INFO,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if debug else logging.WARNING)

    structlog.configure(
        processors=[
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_note_context(note_id: str) -> None:
    """Attach ``note_id`` to every record logged from now on."""
    structlog.contextvars.bind_contextvars(note_id=note_id)


def clear_note_context() -> None:
    """Stop attaching a note ID to log records."""
    structlog.contextvars.unbind_contextvars("note_id")


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        A structlog logger

    """
    return structlog.get_logger(name)
