"""
Tests for DNS Logging System

This module tests the structured logging functionality including:
- Console and JSON rendering configuration
- Rotating JSON log files
- DNS request logging and timing
"""

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from ingress_dns.config.schema import LoggingConfig
from ingress_dns.dns_logging import (
    DNSRequestLogger,
    get_logger,
    log_exception,
    query_type_name,
    response_code_name,
    setup_logging,
)
from ingress_dns.dns_logging import logger as logger_module
from ingress_dns.dns_logging.logger import StructuredLogger


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    """Put the root logger and structlog back the way the test found them."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    monkeypatch.setattr(logger_module, "_logger_instance", None)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestStructuredLogger:
    """Test structured logging framework."""

    def test_structured_logger_creation(self):
        """Test creating a structured logger."""
        config = LoggingConfig(level="INFO", format="json")

        logger = StructuredLogger(config)

        assert logger.config == config
        assert not logger._configured

    def test_json_renderer(self):
        logger = StructuredLogger(LoggingConfig(format="json"))

        assert isinstance(logger._get_renderer(), structlog.processors.JSONRenderer)

    def test_console_renderer(self):
        logger = StructuredLogger(LoggingConfig(format="console"))

        assert isinstance(logger._get_renderer(), structlog.dev.ConsoleRenderer)

    def test_configure_sets_root_level(self):
        logger = StructuredLogger(LoggingConfig(level="warning"))

        logger.configure()

        assert logger._configured
        assert logger.logger is not None
        assert logging.getLogger().level == logging.WARNING
        assert len(logging.getLogger().handlers) == 1

    def test_configure_is_idempotent(self):
        logger = StructuredLogger(LoggingConfig())

        logger.configure()
        logger.configure()

        assert len(logging.getLogger().handlers) == 1

    def test_file_handler_writes_json(self, tmp_path):
        """Test that both structlog and stdlib records reach the file as JSON."""
        log_file = tmp_path / "logs" / "ingress-dns.log"
        setup_logging(LoggingConfig(level="DEBUG", file=str(log_file)))

        get_logger("ingress_dns.test").info("structured event", host="app.local")
        logging.getLogger("ingress_dns.core.test").warning("stdlib event")

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert lines[0]["event"] == "structured event"
        assert lines[0]["host"] == "app.local"
        assert lines[0]["level"] == "info"
        assert lines[1]["event"] == "stdlib event"
        assert lines[1]["logger"] == "ingress_dns.core.test"
        assert lines[1]["level"] == "warning"

    def test_get_logger_before_setup(self):
        logger = get_logger("early")

        with capture_logs() as logs:
            logger.info("before setup")

        assert logs[0]["event"] == "before setup"


class TestLogException:
    """Test exception logging helper."""

    def test_logs_given_exception(self):
        logger = structlog.get_logger("test")

        with capture_logs() as logs:
            try:
                raise RuntimeError("inventory exploded")
            except RuntimeError as e:
                log_exception(logger, "Startup failed", e)

        assert logs[0]["event"] == "Startup failed"
        assert logs[0]["log_level"] == "error"
        assert logs[0]["exception_type"] == "RuntimeError"
        assert logs[0]["exception_message"] == "inventory exploded"
        assert "RuntimeError: inventory exploded" in logs[0]["traceback"]

    def test_logs_current_exception(self):
        logger = structlog.get_logger("test")

        with capture_logs() as logs:
            try:
                raise KeyError("missing")
            except KeyError:
                log_exception(logger, "Lookup failed")

        assert logs[0]["exception_type"] == "KeyError"

    def test_without_exception(self):
        logger = structlog.get_logger("test")

        with capture_logs() as logs:
            log_exception(logger, "Nothing raised")

        assert logs == [{"event": "Nothing raised", "log_level": "error"}]


class TestDNSRequestLogger:
    """Test DNS request logging."""

    def test_start_request_generates_id(self):
        request_logger = DNSRequestLogger()

        first = request_logger.start_request()
        second = request_logger.start_request()

        assert first != second
        assert first in request_logger.active_requests

    def test_start_request_custom_id(self):
        request_logger = DNSRequestLogger()

        assert request_logger.start_request("req-1") == "req-1"

    def test_end_request_logs_answers(self):
        with capture_logs() as logs:
            request_logger = DNSRequestLogger()
            request_id = request_logger.start_request()
            elapsed = request_logger.end_request(
                request_id=request_id,
                client_ip="192.0.2.10",
                questions=[{"domain": "app.example.com", "query_type": "A"}],
                response_code=0,
                response_data=["app.example.com. 300 IN A 10.0.0.5"],
            )

        assert elapsed >= 0
        assert request_id not in request_logger.active_requests
        entry = logs[0]
        assert entry["event"] == "DNS request processed"
        assert entry["log_level"] == "info"
        assert entry["client_ip"] == "192.0.2.10"
        assert entry["response_code"] == "NOERROR"
        assert entry["answer_count"] == 1
        assert entry["timestamp"].endswith("Z")

    def test_end_request_logs_error_as_warning(self):
        with capture_logs() as logs:
            request_logger = DNSRequestLogger()
            request_id = request_logger.start_request()
            request_logger.end_request(
                request_id=request_id,
                client_ip="192.0.2.10",
                questions=[],
                response_code=1,
                error="Malformed DNS packet",
            )

        entry = logs[0]
        assert entry["event"] == "DNS request failed"
        assert entry["log_level"] == "warning"
        assert entry["response_code"] == "FORMERR"
        assert entry["error"] == "Malformed DNS packet"
        assert entry["response_data"] == []


def test_query_type_name():
    assert query_type_name(1) == "A"
    assert query_type_name(28) == "AAAA"
    assert query_type_name(65534) == "TYPE65534"


def test_response_code_name():
    assert response_code_name(0) == "NOERROR"
    assert response_code_name(2) == "SERVFAIL"
    assert response_code_name(3) == "NXDOMAIN"
    assert response_code_name(5000) == "RCODE5000"
