"""
Tests for logging setup and structured JSON logging.
"""

import json
import logging

import pytest

from blobmirror.observability import StructuredFormatter, add_correlation_id, get_correlation_id
from blobmirror.utils.logging import (
    ConsoleFormatter,
    FileFormatter,
    _parse_level,
    get_logger,
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture(autouse=True)
def restore_blobmirror_logger():
    logger = logging.getLogger("blobmirror")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


def _record(msg="Copying object: a/x", level=logging.INFO, **extra):
    record = logging.LogRecord("blobmirror.sync", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    """Tests for the correlation id context."""

    def test_unset_by_default(self):
        assert get_correlation_id() is None

    def test_scoped(self):
        with add_correlation_id("run-1") as cid:
            assert cid == "run-1"
            assert get_correlation_id() == "run-1"
        assert get_correlation_id() is None

    def test_generated(self):
        with add_correlation_id() as cid:
            assert len(cid) == 8

    def test_nested(self):
        with add_correlation_id("outer"):
            with add_correlation_id("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"


class TestStructuredFormatter:
    """Tests for JSON log lines."""

    def test_basic_fields(self):
        data = json.loads(StructuredFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "blobmirror.sync"
        assert data["message"] == "Copying object: a/x"
        assert "timestamp" in data
        assert "correlation_id" not in data

    def test_correlation_id_included(self):
        with add_correlation_id("run-42"):
            data = json.loads(StructuredFormatter().format(_record()))
        assert data["correlation_id"] == "run-42"

    def test_extra_fields(self):
        record = _record(run_summary={"copied": 3, "failed": 0})

        data = json.loads(StructuredFormatter(extra_fields={"service": "mirror"}).format(record))

        assert data["run_summary"] == {"copied": 3, "failed": 0}
        assert data["service"] == "mirror"

    def test_exception_info(self):
        try:
            raise ValueError("bad fingerprint")
        except ValueError:
            import sys

            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad fingerprint"


class TestLoggingSetup:
    """Tests for setup_logging and friends."""

    @pytest.mark.parametrize(
        "value,expected",
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), (logging.ERROR, logging.ERROR), ("loud", logging.INFO)],
    )
    def test_parse_level(self, value, expected):
        assert _parse_level(value) == expected

    def test_json_console(self):
        logger = setup_logging(level="DEBUG", json_format=True)

        assert logger.level == logging.DEBUG
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_plain_console(self):
        logger = setup_logging(use_rich=False)

        assert isinstance(logger.handlers[0].formatter, ConsoleFormatter)

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "mirror.log"
        logger = setup_logging(log_file=log_file, console_enabled=False)

        get_logger("blobmirror.test").info("Sync completed successfully")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, FileFormatter)
        assert "Sync completed successfully" in log_file.read_text()

    def test_from_config_relative_file(self, tmp_path):
        logger = setup_logging_from_config(
            {"logging": {"level": "WARNING", "file": "mirror.log", "console_enabled": False}}, project_dir=tmp_path
        )

        assert logger.level == logging.WARNING
        assert logger.handlers[0].baseFilename == str(tmp_path / "mirror.log")

    def test_from_config_json(self):
        logger = setup_logging_from_config({"logging": {"format": "json"}})
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_console_formatter_adds_location_for_errors(self):
        line = ConsoleFormatter().format(_record("Error during sync", level=logging.ERROR))
        assert line.startswith("ERROR: ")
        assert "test_observability.py:10" in line

    def test_get_logger_propagates(self):
        logger = get_logger("blobmirror.sync.orchestrator")
        assert logger.propagate is True
        assert logger.name == "blobmirror.sync.orchestrator"
