"""
Tests for the closure FIFO allocation engine.
"""

from decimal import Decimal

from ledger_engines.closure_allocation import allocate_fifo, plan_closure
from ledger_engines.fee_allocation import FeeLine


def _line(number: int, fee: str) -> FeeLine:
    value = Decimal(fee)
    return FeeLine(
        contract_number=number,
        total_amount=value,
        total_paid=value,
        rent_paid_estimate=value,
        operating_fee_rate=Decimal("100"),
        collected_fee=value,
    )


class TestAllocateFifo:

    def test_ascending_contract_number(self):
        allocation = allocate_fifo([_line(3, "40"), _line(1, "50"), _line(2, "30")], Decimal("60"))
        assert allocation == {1: Decimal("50"), 2: Decimal("10"), 3: Decimal("0")}

    def test_negative_available_is_zero(self):
        allocation = allocate_fifo([_line(1, "50")], Decimal("-5"))
        assert allocation == {1: Decimal("0")}

    def test_zero_fee_lines_absorb_nothing(self):
        allocation = allocate_fifo([_line(1, "0"), _line(2, "10")], Decimal("5"))
        assert allocation == {1: Decimal("0"), 2: Decimal("5")}


class TestPlanClosure:

    def test_previously_consumed_reduces_pool(self):
        lines = [_line(1, "50"), _line(2, "30")]
        plan = plan_closure(
            closing_numbers=[1, 2],
            unclosed_lines=lines,
            total_withdrawals=Decimal("100"),
            previously_consumed=Decimal("70"),
        )
        assert plan.total_contracts == 2
        assert plan.total_amount == Decimal("80")
        assert plan.total_withdrawn == Decimal("30")
        assert plan.remaining_balance == Decimal("50")

    def test_withdrawn_never_exceeds_amount(self):
        plan = plan_closure(
            closing_numbers=[1],
            unclosed_lines=[_line(1, "50")],
            total_withdrawals=Decimal("1000"),
            previously_consumed=Decimal("0"),
        )
        assert plan.total_withdrawn == Decimal("50")
        assert plan.remaining_balance == Decimal("0")
