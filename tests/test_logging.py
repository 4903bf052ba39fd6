"""Tests for logging configuration."""

import json
import logging
import logging.handlers
from unittest.mock import patch

import pytest

from prdpad.services.logs import (
    DEBUG_ENV,
    bind_note_context,
    clear_note_context,
    configure_logging,
    get_log_file_path,
    get_logger,
)


@pytest.fixture
def temp_log_dir(tmp_path, monkeypatch):
    """Fixture for a temporary log directory."""
    monkeypatch.delenv(DEBUG_ENV, raising=False)
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    with patch("prdpad.services.logs.get_app_data_path", return_value=tmp_path):
        yield log_dir


def test_logging_configuration(temp_log_dir):
    """Test that logging is configured correctly."""
    configure_logging()

    logger = get_logger("test_logger")
    logger.info("note.saved", note_id="note-1")

    # Flush handlers to ensure log is written
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_file = get_log_file_path()
    assert log_file.exists()
    assert log_file.name == "prdpad.log.json"

    with open(log_file, "r", encoding="utf-8") as f:
        log_entry = json.loads(f.read().strip().splitlines()[-1])

    assert log_entry["event"] == "note.saved"
    assert log_entry["level"] == "info"
    assert log_entry["note_id"] == "note-1"
    assert "timestamp" in log_entry


def test_log_rotation(temp_log_dir):
    """Test that TimedRotatingFileHandler is set up."""
    configure_logging()

    root_logger = logging.getLogger()
    handlers = [
        h
        for h in root_logger.handlers
        if isinstance(h, logging.handlers.TimedRotatingFileHandler)
    ]

    assert len(handlers) == 1
    handler = handlers[0]
    assert handler.when == "D"
    # TimedRotatingFileHandler converts interval to seconds internally
    assert handler.interval == 21 * 24 * 60 * 60
    assert handler.backupCount == 5
    assert root_logger.level == logging.INFO


def test_debug_console_logging(temp_log_dir, monkeypatch):
    """Test that the debug variable adds a console handler."""
    monkeypatch.setenv(DEBUG_ENV, "1")

    configure_logging()

    root_logger = logging.getLogger()
    stream_handlers = [
        h
        for h in root_logger.handlers
        if type(h) is logging.StreamHandler
    ]
    assert len(stream_handlers) == 1
    assert root_logger.level == logging.DEBUG


def read_entries():
    for handler in logging.getLogger().handlers:
        handler.flush()
    with open(get_log_file_path(), "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f.read().strip().splitlines()]


def test_note_context_is_attached(temp_log_dir):
    """Records logged while a note is bound carry its ID."""
    configure_logging()
    logger = get_logger("test_logger")

    bind_note_context("note-1")
    logger.info("editor.saved", fields=["title"])
    clear_note_context()
    logger.info("editor.idle")

    saved, idle = read_entries()[-2:]
    assert saved["note_id"] == "note-1"
    assert "note_id" not in idle


def test_standard_library_records_are_structured(temp_log_dir):
    """Records from plain stdlib loggers are rendered as JSON too."""
    configure_logging()

    logging.getLogger("prdpad.plain").warning("schema is current")

    entry = read_entries()[-1]
    assert entry["event"] == "schema is current"
    assert entry["level"] == "warning"
    assert "timestamp" in entry


def test_third_party_loggers_are_quiet(temp_log_dir):
    configure_logging()
    assert logging.getLogger("alembic").level == logging.WARNING

    configure_logging(debug=True)
    assert logging.getLogger("alembic").level == logging.NOTSET
