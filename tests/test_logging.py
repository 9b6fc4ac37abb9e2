"""
Tests for structured logging.
"""

import json
import logging
import sys

import pytest

from ecosort.exceptions import OutOfStockError
from ecosort.logging_config import ConsoleFormatter, LogContext, PerformanceTracker, StructuredFormatter


def make_record(msg="reward_redeemed", **extra):
    record = logging.LogRecord("ecosort.event", logging.INFO, __file__, 10, msg, (), None)
    record.__dict__.update(extra)
    return record


@pytest.fixture(autouse=True)
def clean_context():
    LogContext.clear()
    yield
    LogContext.clear()


class TestStructuredFormatter:
    def test_event_context_and_extras(self):
        LogContext.set_request_id("req-9")
        LogContext.set_user_id("resident-1")

        entry = json.loads(StructuredFormatter().format(make_record(cost=100, new_balance=25.5)))

        assert entry["event"] == "reward_redeemed"
        assert entry["request_id"] == "req-9"
        assert entry["user_id"] == "resident-1"
        assert (entry["cost"], entry["new_balance"]) == (100, 25.5)
        assert "client_ip" not in entry

    def test_redemption_code_masked(self):
        entry = json.loads(StructuredFormatter().format(make_record(code="AB12CD34")))
        assert entry["code"] == "***"

    def test_exception_details(self):
        try:
            raise OutOfStockError("r1")
        except OutOfStockError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", (), sys.exc_info())

        entry = json.loads(StructuredFormatter().format(record))
        assert entry["exception"]["type"] == "OutOfStockError"


class TestConsoleFormatter:
    def test_masks_code_in_extras(self):
        line = ConsoleFormatter().format(make_record(code="AB12CD34", cost=5))
        assert "AB12CD34" not in line
        assert "cost=5" in line


class TestLogContext:
    def test_rejects_unknown_fields(self):
        with pytest.raises(KeyError):
            LogContext.bind(balance=10)

    def test_clear(self):
        LogContext.set_endpoint("/v1/rewards")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestPerformanceTracker:
    def test_completed(self, caplog):
        with caplog.at_level(logging.INFO, logger="ecosort.performance"):
            with PerformanceTracker("confirm_submission", submission_id="s1") as tracker:
                pass

        assert tracker.duration_ms is not None
        assert caplog.records[-1].getMessage() == "confirm_submission_completed"
        assert caplog.records[-1].submission_id == "s1"

    def test_failed_reraises(self, caplog):
        with caplog.at_level(logging.INFO, logger="ecosort.performance"):
            with pytest.raises(OutOfStockError):
                with PerformanceTracker("redeem_reward", reward_id="r1"):
                    raise OutOfStockError("r1")

        record = caplog.records[-1]
        assert record.getMessage() == "redeem_reward_failed"
        assert record.levelno == logging.WARNING
        assert record.error == "OutOfStockError"
