# tests/unit/test_logger.py
from __future__ import annotations

import json
import logging
from uuid import UUID

import pytest
from sessionkeeper.core.logger import JSONFormatter, ensure_request_id


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="sessionkeeper.services.sessions.rotation",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="session.token_reused",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_session_context():
    payload = json.loads(
        JSONFormatter().format(_record(user_id="u1", event="token_reused", count=3))
    )

    assert payload["message"] == "session.token_reused"
    assert payload["level"] == "WARNING"
    assert payload["user_id"] == "u1"
    assert payload["event"] == "token_reused"
    assert payload["count"] == 3
    assert "state" not in payload


def test_request_id_honors_correlation_header(app):
    with app.test_request_context(headers={"X-Request-ID": "abc-123"}):
        assert ensure_request_id() == "abc-123"


def test_responses_carry_request_id(client):
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "trace-1"})
    assert resp.headers["X-Request-ID"] == "trace-1"


@pytest.mark.parametrize("supplied", ["has spaces in it", "x" * 129, "semi;colon"])
def test_malformed_correlation_header_is_replaced(app, supplied):
    with app.test_request_context(headers={"X-Request-ID": supplied}):
        request_id = ensure_request_id()

    assert request_id != supplied
    assert UUID(request_id)


def test_request_id_is_stable_within_a_request(app):
    with app.test_request_context():
        assert ensure_request_id() == ensure_request_id()
