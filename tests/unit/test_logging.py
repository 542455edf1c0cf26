"""
Tests for logging configuration.
"""

import logging

from fhir_conformance.config.logging import (
    add_flow_id,
    configure_logging,
    flow_id_var,
    get_flow_id,
    get_logger,
    redact_secrets,
    set_flow_id,
)


class TestFlowId:
    """Tests for flow ID context handling."""

    def test_generated(self):
        token = flow_id_var.set("")
        try:
            flow_id = set_flow_id()
            assert len(flow_id) == 8
            assert get_flow_id() == flow_id
        finally:
            flow_id_var.reset(token)

    def test_explicit(self):
        token = flow_id_var.set("")
        try:
            assert set_flow_id("abc123") == "abc123"
            assert get_flow_id() == "abc123"
        finally:
            flow_id_var.reset(token)

    def test_processor_adds_flow_id(self):
        token = flow_id_var.set("abc123")
        try:
            event = add_flow_id(None, "info", {"event": "test"})
            assert event["flow_id"] == "abc123"
        finally:
            flow_id_var.reset(token)

    def test_processor_without_flow(self):
        token = flow_id_var.set("")
        try:
            event = add_flow_id(None, "info", {"event": "test"})
            assert "flow_id" not in event
        finally:
            flow_id_var.reset(token)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_suppresses_noisy_loggers(self):
        configure_logging(level="DEBUG")

        assert logging.getLogger("aiohttp.access").level == logging.WARNING
        assert logging.getLogger("playwright").level == logging.WARNING

    def test_json_format(self):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("tests.logging")

        logger.info("json_event", answer=42)

        assert logger is not None


class TestRedactSecrets:
    """Tests for the secret redaction processor."""

    def test_token_truncated(self):
        event = redact_secrets(None, "info", {"event": "x", "access_token": "eyJhbGciOiJSUzI1NiJ9"})
        assert event["access_token"] == "eyJhbG..."

    def test_short_value_kept(self):
        event = redact_secrets(None, "info", {"event": "x", "code": "abc"})
        assert event["code"] == "abc"

    def test_other_keys_untouched(self):
        event = redact_secrets(None, "info", {"event": "x", "url": "https://auth.example.com/token"})
        assert event["url"] == "https://auth.example.com/token"
