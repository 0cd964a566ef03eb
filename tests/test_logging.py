"""Tests for request correlation and analytics events."""

import logging

from intake_scheduling.analytics import build_event, log_event
from intake_scheduling.config import build_log_handler
from intake_scheduling.logging_context import (
    RequestIdFilter,
    get_request_id,
    get_request_logger,
    new_request_id,
    set_request_id,
)


class TestRequestContext:
    def test_new_request_id_format(self):
        request_id = new_request_id()
        assert request_id.startswith("REQ-")
        assert len(request_id) == 12
        assert new_request_id() != request_id

    def test_set_and_get(self):
        set_request_id("REQ-test0001")
        assert get_request_id() == "REQ-test0001"

    def test_filter_injects_request_id(self):
        set_request_id("REQ-test0002")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert RequestIdFilter().filter(record)
        assert record.request_id == "REQ-test0002"

    def test_request_logger_filter_attached_once(self):
        logger = get_request_logger("intake_scheduling.tests.once")
        get_request_logger("intake_scheduling.tests.once")
        assert sum(isinstance(f, RequestIdFilter) for f in logger.filters) == 1

    def test_console_handler_prints_request_id(self):
        set_request_id("REQ-test0004")
        handler = build_log_handler()
        # a plain module logger without its own filter
        record = logging.LogRecord("intake_scheduling.plain", logging.INFO, __file__, 1, "msg", None, None)
        assert handler.filter(record)
        assert "[REQ-test0004] INFO: msg" in handler.format(record)


class TestAnalytics:
    def test_build_event(self):
        set_request_id("REQ-test0003")
        event = build_event("matching_success", matches_found=3)
        assert event["event"] == "matching_success"
        assert event["matches_found"] == 3
        assert event["request_id"] == "REQ-test0003"
        assert "timestamp" in event

    def test_log_event(self, caplog):
        with caplog.at_level(logging.INFO, logger="intake_scheduling.analytics"):
            payload = log_event("interpretation_error", code="TIMEOUT")
        assert payload["code"] == "TIMEOUT"
        assert any("interpretation_error" in r.getMessage() for r in caplog.records)
