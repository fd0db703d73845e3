"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import InsufficientBalanceError
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests and restore the suite's config."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        [record] = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        account_id = uuid4()
        get_logger("test").info("custody_withdrawal_added", extra={
            "account_id": account_id,
            "amount": Decimal("20.00"),
        })

        [record] = _parse_all_logs(stream)
        assert record["account_id"] == str(account_id)
        assert record["amount"] == "20.00"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientBalanceError("acc-1", Decimal("30"), Decimal("20"))
        except InsufficientBalanceError:
            get_logger("test").exception("withdrawal_failed")

        [record] = _parse_all_logs(stream)
        assert record["exc_type"] == "InsufficientBalanceError"
        assert record["exc_code"] == "INSUFFICIENT_BALANCE"
        assert record["exc_entity_id"] == "acc-1"
        assert record["exc_available"] == "20"
        assert "traceback" in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]


class TestLogContext:

    def test_set_fields_appear(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="req-1", employee_id="emp-1")
        get_logger("test").info("with_context")

        [record] = _parse_all_logs(stream)
        assert record["correlation_id"] == "req-1"
        assert record["employee_id"] == "emp-1"

    def test_bind_restores_on_exit(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner", account_id="acc-1"):
            assert LogContext.get_all() == {"actor_id": "inner", "account_id": "acc-1"}
        assert LogContext.get_all() == {"actor_id": "outer"}

    def test_bind_stringifies_values(self):
        actor = uuid4()
        with LogContext.bind(actor_id=actor):
            assert LogContext.get_all()["actor_id"] == str(actor)

    def test_clear(self):
        LogContext.set(actor_id="a")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_idempotent(self):
        first, _ = _make_handler()
        second, _ = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        assert logging.getLogger("ledger_kernel").handlers == [first]

    def test_reset_allows_reconfigure(self):
        first, _ = _make_handler()
        second, _ = _make_handler()
        configure_logging(handler=first)
        reset_logging()
        configure_logging(handler=second)
        assert logging.getLogger("ledger_kernel").handlers == [second]
