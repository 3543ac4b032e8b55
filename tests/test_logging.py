"""Tests for structured logging helpers."""

import json
import logging

from core.logging_config import (
    JSONFormatter,
    LogContext,
    TextFormatter,
    current_client_ip,
    current_request_id,
    current_user_id,
    generate_request_id,
    mask_email,
    set_user_context,
)


def _record(message="hello"):
    return logging.LogRecord("society.test", logging.INFO, __file__, 1, message, None, None)


class TestMaskEmail:
    """Tests for email masking in log lines."""

    def test_masks_local_part(self):
        assert mask_email("alice@example.com") == "a***@example.com"

    def test_invalid(self):
        assert mask_email("") == "<invalid>"
        assert mask_email("no-at-sign") == "<invalid>"


class TestFormatters:
    """Tests for JSON and text formatters."""

    def test_json_includes_context(self):
        with LogContext(request_id="req12345", client_ip="203.0.113.7"):
            data = json.loads(JSONFormatter().format(_record()))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["request_id"] == "req12345"
        assert data["client_ip"] == "203.0.113.7"
        assert "user_id" not in data

    def test_text_includes_context(self):
        with LogContext(request_id="req12345"):
            set_user_context("0123456789abcdef")
            line = TextFormatter().format(_record())

        assert "req=req12345" in line
        assert "user=01234567" in line
        assert line.endswith("society.test [req=req12345, user=01234567]: hello")


class TestLogContext:
    """Tests for per-request correlation context."""

    def test_context_restored(self):
        with LogContext(request_id="inner", client_ip="198.51.100.4"):
            assert current_request_id.get() == "inner"
            assert current_client_ip.get() == "198.51.100.4"
        assert current_request_id.get() == ""
        assert current_client_ip.get() == ""

    def test_user_cleared_on_entry_and_exit(self):
        """A user attached in one request never shows up in the next."""
        with LogContext(request_id="first"):
            set_user_context("user-1")
        with LogContext(request_id="second"):
            assert current_user_id.get() == ""
        assert current_user_id.get() == ""

    def test_request_ids_are_short(self):
        assert len(generate_request_id()) == 8
