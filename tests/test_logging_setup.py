# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for logging setup."""

import json
import logging
import sys
import tempfile
from pathlib import Path

import pytest

from hub_mcp.logging_setup import StructuredFormatter, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


def _read_entries(log_dir: Path):
    log_files = list(log_dir.glob("*.log"))
    assert len(log_files) == 1
    lines = [line for line in log_files[0].read_text().strip().split("\n") if line]
    return [json.loads(line) for line in lines]


def test_setup_logging_creates_directory():
    """Test that setup_logging creates the log directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".hub_mcp_logs"
        assert not log_dir.exists()

        log_file = setup_logging(log_dir=log_dir, console_output=False)

        assert log_dir.is_dir()
        assert log_file.parent == log_dir
        assert log_file.name.startswith("hub_mcp_")


def test_logging_produces_json():
    """Test that logs are written in JSON format."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".hub_mcp_logs"
        setup_logging(log_dir=log_dir, log_level=logging.INFO, console_output=False)

        logging.getLogger("hub_mcp.test").info("Schema loaded")

        entries = _read_entries(log_dir)
        # Startup message + test message
        assert len(entries) >= 2
        for entry in entries:
            assert {"timestamp", "level", "logger", "message"} <= set(entry)
        assert entries[-1]["message"] == "Schema loaded"
        assert entries[-1]["timestamp"].endswith("Z")


def test_logging_levels():
    """Test that records below the configured level are dropped."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".hub_mcp_logs"
        setup_logging(log_dir=log_dir, log_level=logging.WARNING, console_output=False)

        logger = logging.getLogger("hub_mcp.test")
        logger.info("Info message")
        logger.warning("Warning message")

        messages = [entry["message"] for entry in _read_entries(log_dir)]
        assert "Info message" not in messages
        assert "Warning message" in messages


def test_extra_fields_are_merged():
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".hub_mcp_logs"
        setup_logging(log_dir=log_dir, log_level=logging.DEBUG, console_output=False)

        logging.getLogger("hub_mcp.executor").debug(
            "GraphQL query completed", extra={"extra_fields": {"retries": 2}}
        )

        assert _read_entries(log_dir)[-1]["retries"] == 2


def test_console_output_goes_to_stderr():
    """stdout carries the stdio transport, so console logs must use stderr."""
    with tempfile.TemporaryDirectory() as tmpdir:
        setup_logging(log_dir=Path(tmpdir), console_output=True)

        stream_handlers = [
            h
            for h in logging.getLogger().handlers
            if type(h) is logging.StreamHandler
        ]
        assert len(stream_handlers) == 1
        assert stream_handlers[0].stream is sys.stderr


def test_formatter_includes_exception():
    formatter = StructuredFormatter()
    try:
        raise ValueError("bad schema")
    except ValueError:
        record = logging.getLogger("hub_mcp").makeRecord(
            "hub_mcp", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )

    entry = json.loads(formatter.format(record))
    assert entry["level"] == "ERROR"
    assert "ValueError: bad schema" in entry["exception"]
