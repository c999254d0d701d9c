# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for logging setup."""

import json
import logging
import sys
from pathlib import Path

import pytest

from aerobundle.bundler import BundleGenerationError, Bundler
from aerobundle.logging_setup import (
    PACKAGE_LOGGER,
    StructuredFormatter,
    log_fields,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


def read_log_lines(log_file: Path):
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.flush()
    return [json.loads(line) for line in log_file.read_text().splitlines() if line]


def test_setup_logging_creates_directory(tmp_path):
    """Test that setup_logging creates the log directory."""
    log_dir = tmp_path / ".aerobundle_logs"
    assert not log_dir.exists()

    setup_logging(log_dir=log_dir, console_output=False)

    assert log_dir.is_dir()


def test_setup_logging_returns_log_file(tmp_path):
    log_dir = tmp_path / ".aerobundle_logs"

    log_file = setup_logging(log_dir=log_dir, console_output=False)

    assert log_file.parent == log_dir
    assert log_file.name.startswith("aerobundle_")
    assert log_file.suffix == ".log"
    assert list(log_dir.glob("*.log")) == [log_file]


def test_logging_produces_json(tmp_path):
    """Test that logs are written in JSON format."""
    log_file = setup_logging(log_dir=tmp_path, log_level=logging.INFO, console_output=False)

    logging.getLogger("aerobundle.test").info("Built bundle")
    lines = read_log_lines(log_file)

    # Startup message + test message
    assert len(lines) >= 2
    for data in lines:
        assert {"timestamp", "level", "logger", "thread", "message"} <= set(data)

    assert lines[0]["log_file"] == str(log_file)
    assert lines[-1]["logger"] == "aerobundle.test"
    assert lines[-1]["message"] == "Built bundle"
    assert lines[-1]["level"] == "INFO"


def test_setup_logging_replaces_handlers(tmp_path):
    """Calling setup_logging twice leaves a single file handler."""
    setup_logging(log_dir=tmp_path, console_output=True)
    setup_logging(log_dir=tmp_path, console_output=False)

    handlers = logging.getLogger(PACKAGE_LOGGER).handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.FileHandler)


def test_root_logger_untouched(tmp_path):
    root_handlers = list(logging.getLogger().handlers)

    setup_logging(log_dir=tmp_path, console_output=True)

    assert logging.getLogger().handlers == root_handlers


def test_log_level_filters(tmp_path):
    log_file = setup_logging(log_dir=tmp_path, log_level=logging.WARNING, console_output=False)

    logging.getLogger("aerobundle.cache").info("Bundle cache hit")
    logging.getLogger("aerobundle.cache").warning("Bundle cache degraded")

    messages = [line["message"] for line in read_log_lines(log_file)]
    assert messages == ["Bundle cache degraded"]


def test_bundle_build_logs_structured_fields(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    (project / "main.js").write_text("require('./a.js');")
    (project / "a.js").write_text("var a = 1;")
    log_file = setup_logging(log_dir=tmp_path / "logs", console_output=False)

    text = Bundler().generate_bundle(str(project), "main.js")

    lines = read_log_lines(log_file)
    built = [line for line in lines if line["message"].startswith("Built bundle")]
    assert len(built) == 1
    assert built[0]["logger"] == "aerobundle.bundler"
    assert built[0]["project_root"] == str(project)
    assert built[0]["entry_point"] == "main.js"
    assert built[0]["file_count"] == 2
    assert built[0]["chars"] == len(text)
    assert built[0]["minified"] is True
    assert built[0]["duration_ms"] >= 0


def test_bundle_failure_logs_structured_fields(tmp_path):
    (tmp_path / "main.js").write_text("require('./missing.js');")
    log_file = setup_logging(log_dir=tmp_path / "logs", console_output=False)

    with pytest.raises(BundleGenerationError):
        Bundler().generate_bundle(str(tmp_path), "main.js")

    errors = [line for line in read_log_lines(log_file) if line["level"] == "ERROR"]
    assert len(errors) == 1
    assert errors[0]["entry_point"] == "main.js"
    assert errors[0]["project_root"] == str(tmp_path)
    assert errors[0]["error_type"] == "FileNotFoundError"


def test_structured_formatter_with_exception():
    formatter = StructuredFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord(
            name="aerobundle.bundler",
            level=logging.ERROR,
            pathname=__file__,
            lineno=1,
            msg="Bundle generation failed for %s",
            args=("main.js",),
            exc_info=sys.exc_info(),
        )

    data = json.loads(formatter.format(record))

    assert data["message"] == "Bundle generation failed for main.js"
    assert data["level"] == "ERROR"
    assert "ValueError: boom" in data["exception"]
    assert data["timestamp"].endswith("Z")


def test_structured_fields_do_not_override_core_keys():
    formatter = StructuredFormatter()
    record = logging.LogRecord(
        name="aerobundle.cache",
        level=logging.DEBUG,
        pathname=__file__,
        lineno=1,
        msg="Bundle cache hit",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(log_fields(message="spoofed", entry_point="main.js", path=Path("/x")))

    data = json.loads(formatter.format(record))

    assert data["message"] == "Bundle cache hit"
    assert data["entry_point"] == "main.js"
    assert data["path"] == str(Path("/x"))
