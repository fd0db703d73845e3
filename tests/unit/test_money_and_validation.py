"""
Unit tests for amount parsing, money rounding and kernel utilities.

Verifies:
- Float and boolean amounts are rejected at the boundary
- Rounding is deterministic per mode
- Keyed locks serialize per key and clean up
- DeterministicClock only moves when told to
"""

import threading
import time
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal

import pytest

from ledger_kernel.db.types import ROUNDING_MODES, round_money
from ledger_kernel.domain.clock import DeterministicClock, SystemClock
from ledger_kernel.domain.validation import (
    parse_amount,
    require_decimal,
    require_non_empty,
    require_non_negative_amount,
    require_positive_amount,
)
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.services.lock_service import KeyedLockRegistry


class TestParseAmount:

    def test_decimal_passthrough(self):
        assert parse_amount(Decimal("12.34")) == Decimal("12.34")

    def test_string_and_int(self):
        assert parse_amount(" 100.50 ") == Decimal("100.50")
        assert parse_amount(7) == Decimal("7")

    def test_float_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_amount(0.1, "initial_amount")
        assert exc.value.field == "initial_amount"

    def test_bool_rejected(self):
        with pytest.raises(ValidationError):
            parse_amount(True)

    def test_none_rejected(self):
        with pytest.raises(ValidationError):
            parse_amount(None)

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            parse_amount("NaN")
        with pytest.raises(ValidationError):
            parse_amount(Decimal("Infinity"))

    def test_unparsable(self):
        with pytest.raises(ValidationError):
            parse_amount("ten")


class TestAmountGuards:

    def test_positive(self):
        assert require_positive_amount("0.01") == Decimal("0.01")
        with pytest.raises(ValidationError):
            require_positive_amount("0")
        with pytest.raises(ValidationError):
            require_positive_amount("-1")

    def test_non_negative(self):
        assert require_non_negative_amount("0") == Decimal("0")
        with pytest.raises(ValidationError):
            require_non_negative_amount("-0.01")

    def test_require_decimal(self):
        require_decimal(Decimal("1"))
        with pytest.raises(ValidationError):
            require_decimal("1")

    def test_non_empty(self):
        assert require_non_empty("  Fuel ", "category") == "Fuel"
        with pytest.raises(ValidationError) as exc:
            require_non_empty("   ", "category")
        assert exc.value.field == "category"


class TestRoundMoney:

    def test_default_two_places(self):
        assert round_money(Decimal("1.005")) == Decimal("1.01")

    def test_whole_units(self):
        assert round_money(Decimal("49.5"), 0) == Decimal("50")
        assert round_money(Decimal("49.5"), 0, ROUND_HALF_EVEN) == Decimal("50")
        assert round_money(Decimal("48.5"), 0, ROUND_HALF_EVEN) == Decimal("48")

    def test_modes_table(self):
        assert ROUNDING_MODES == {"half_up": ROUND_HALF_UP, "half_even": ROUND_HALF_EVEN}

    def test_deterministic(self):
        value = Decimal("123.456789")
        assert {round_money(value, 4) for _ in range(100)} == {Decimal("123.4568")}


class TestKeyedLockRegistry:

    def test_same_key_serializes(self):
        registry = KeyedLockRegistry("test")
        inside = []
        overlaps = []

        def worker():
            with registry.hold("account-1"):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == []
        assert registry.active_keys() == 0

    def test_different_keys_independent(self):
        registry = KeyedLockRegistry("test")
        with registry.hold("a"):
            acquired = threading.Event()

            def other():
                with registry.hold("b"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(timeout=2)
            t.join()
            assert registry.active_keys() == 1

    def test_released_on_exception(self):
        registry = KeyedLockRegistry("test")
        with pytest.raises(RuntimeError):
            with registry.hold("a"):
                raise RuntimeError("boom")
        assert registry.active_keys() == 0


class TestClock:

    def test_deterministic_default(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2024, 1, 1)
        assert clock.now() == clock.now()

    def test_advance(self):
        clock = DeterministicClock()
        start = clock.now()
        clock.advance(30)
        clock.advance_days(2)
        assert clock.now() - start == timedelta(days=2, seconds=30)

    def test_set_time_resets_offset(self):
        clock = DeterministicClock()
        clock.advance(99)
        target = datetime(2025, 6, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target

    def test_system_clock_is_utc(self):
        assert SystemClock().now().tzinfo == timezone.utc
