"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

import pytest

from subtrack.core.logger import JSONFormatter, configure_logging, log_event


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_sets_level(restore_root_logger) -> None:
    """``configure_logging`` should set the root logger level."""

    # Act
    configure_logging("DEBUG")

    # Assert
    assert restore_root_logger.level == logging.DEBUG
    [handler] = restore_root_logger.handlers
    assert isinstance(handler.formatter, JSONFormatter)


def test_log_event_renders_whitelisted_fields_only(caplog) -> None:
    logger = logging.getLogger("tests.logger")

    with caplog.at_level(logging.INFO, logger="tests.logger"):
        log_event(logger, "auth.sign_in", identity_id=7, outcome="ok", password="hunter2")

    [record] = caplog.records
    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "auth.sign_in"
    assert payload["event"] == "auth.sign_in"
    assert (payload["identity_id"], payload["outcome"]) == (7, "ok")
    assert "password" not in payload
    assert payload["request_id"] is None


def test_request_id_header_is_echoed(client) -> None:
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"
