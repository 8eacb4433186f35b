"""Tests for logging configuration."""

import json
import logging

import pytest

from uio9.core.logging_setup import (
    AuditLogger,
    JSONFormatter,
    configure_comprehensive_logging,
    configure_logging,
    log_performance,
)


@pytest.fixture
def clean_root_logger():
    """Detach root handlers so configure_logging can install its own."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    root.handlers = []
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def clean_audit_logger():
    audit = logging.getLogger("uio9.audit")
    saved = audit.handlers[:]
    audit.handlers = []
    yield audit
    for handler in audit.handlers:
        handler.close()
    audit.handlers = saved


def make_record(message="hello", **kwargs):
    record = logging.LogRecord(
        name="uio9.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in kwargs.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "uio9.test"
        assert "timestamp" in data

    def test_extra_fields(self):
        record = make_record(extra_fields={"event_type": "search"})
        data = json.loads(JSONFormatter().format(record))

        assert data["event_type"] == "search"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_file_handler(self, tmp_path, clean_root_logger):
        log_file = tmp_path / "nested" / "uio9.log"

        configure_logging(log_file=log_file, console_output=False)
        logging.getLogger("uio9.test").info("written to file")
        for handler in clean_root_logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "written to file" in log_file.read_text()

    def test_not_configured_twice(self, tmp_path, clean_root_logger):
        configure_logging(console_output=True)
        configure_logging(console_output=True)

        assert len(clean_root_logger.handlers) == 1

    def test_comprehensive_logging(self, tmp_path, clean_root_logger, clean_audit_logger):
        audit, main_log = configure_comprehensive_logging(
            log_dir=tmp_path, use_json=True, console_output=False
        )

        assert isinstance(audit, AuditLogger)
        assert main_log == tmp_path / "uio9.log"


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_search_event(self, tmp_path, clean_audit_logger):
        log_file = tmp_path / "audit.log"
        audit = AuditLogger(log_file)

        audit.log_search(
            client_id="cli_user",
            attributes=["username"],
            results_count=3,
            failed_sources=["tiktok"],
        )
        for handler in audit.logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["event_type"] == "search"
        assert entry["client_id"] == "cli_user"
        assert entry["results_count"] == 3
        assert entry["failed_sources"] == ["tiktok"]
        assert entry["timed_out"] is False

    def test_export_event(self, tmp_path, clean_audit_logger):
        log_file = tmp_path / "audit.log"
        audit = AuditLogger(log_file)

        audit.log_export("cli_user", "html", 2)
        for handler in audit.logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["event_type"] == "export"
        assert entry["export_format"] == "html"


def test_log_performance(caplog):
    logger = logging.getLogger("uio9.perf")

    with caplog.at_level(logging.INFO, logger="uio9.perf"):
        with log_performance("search", logger):
            pass

    assert "search completed in" in caplog.text
    assert "success=True" in caplog.text
    record = caplog.records[-1]
    assert record.msg == "%s completed in %.2fms (success=%s)"
    assert record.args[0] == "search"


def test_log_performance_on_error(caplog):
    logger = logging.getLogger("uio9.perf")

    with caplog.at_level(logging.INFO, logger="uio9.perf"):
        with pytest.raises(RuntimeError):
            with log_performance("search", logger):
                raise RuntimeError("boom")

    assert "success=False" in caplog.text
