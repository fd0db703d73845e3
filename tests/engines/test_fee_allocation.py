"""
Tests for the operating-fee allocator engine.

Covers:
- Proportional rent estimate and fee rounding
- Exclusion by flag and by closure window
- Tolerance of missing joins
- Determinism and tracing
"""

from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_engines.fee_allocation import (
    ClosureType,
    ClosureWindow,
    ContractTerms,
    PaymentRecord,
    compute_operating_fees,
    fee_line,
    paid_totals,
    uncovered_contracts,
)

SCENARIO = ContractTerms(
    contract_number=500,
    contract_date=date(2024, 3, 1),
    total_rent=Decimal("1000"),
    installation_cost=Decimal("200"),
    print_cost=Decimal("100"),
    operating_fee_rate=Decimal("10"),
)


def _summary(**overrides):
    kwargs = dict(
        contracts=[SCENARIO],
        payments=[PaymentRecord(500, Decimal("650"), "receipt")],
        excluded_contracts=frozenset(),
        closures=[],
        withdrawal_amounts=[Decimal("20")],
    )
    kwargs.update(overrides)
    return compute_operating_fees(**kwargs)


class TestFeeLine:

    def test_scenario(self):
        line = fee_line(SCENARIO, Decimal("650"))
        assert line.total_amount == Decimal("1300")
        assert line.rent_paid_estimate == Decimal("500")
        assert line.collected_fee == Decimal("50")

    def test_zero_total_amount(self):
        line = fee_line(ContractTerms(contract_number=1, operating_fee_rate=Decimal("10")), Decimal("99"))
        assert line.rent_paid_estimate == Decimal("0")
        assert line.collected_fee == Decimal("0")

    def test_estimate_kept_at_full_precision(self):
        terms = ContractTerms(
            contract_number=1,
            total_rent=Decimal("100"),
            installation_cost=Decimal("200"),
            operating_fee_rate=Decimal("10"),
        )
        line = fee_line(terms, Decimal("100"))
        assert line.rent_paid_estimate == Decimal("100") / Decimal("3")
        assert line.collected_fee == Decimal("3")

    def test_half_even(self):
        terms = ContractTerms(contract_number=1, total_rent=Decimal("250"), operating_fee_rate=Decimal("5"))
        assert fee_line(terms, Decimal("250"), 0, ROUND_HALF_EVEN).collected_fee == Decimal("12")
        assert fee_line(terms, Decimal("250")).collected_fee == Decimal("13")


class TestCoverage:

    def test_range_window_bounds_inclusive(self):
        window = ClosureWindow(ClosureType.CONTRACT_RANGE, contract_start=400, contract_end=500)
        assert window.covers_number(400)
        assert window.covers_number(500)
        assert not window.covers_number(501)

    def test_period_window_ignored_unless_requested(self):
        window = ClosureWindow(
            ClosureType.PERIOD, period_start=date(2024, 1, 1), period_end=date(2024, 12, 31),
        )
        assert uncovered_contracts([SCENARIO], frozenset(), [window]) == [SCENARIO]
        assert uncovered_contracts([SCENARIO], frozenset(), [window], True) == []

    def test_window_with_missing_bound_covers_nothing(self):
        window = ClosureWindow(ClosureType.CONTRACT_RANGE, contract_start=1)
        assert not window.covers(SCENARIO)

    def test_flag_excludes(self):
        assert uncovered_contracts([SCENARIO], frozenset({500}), []) == []


class TestComputeOperatingFees:

    def test_scenario(self):
        summary = _summary()
        assert summary.total_operating_fees == Decimal("50")
        assert summary.total_withdrawals == Decimal("20")
        assert summary.remaining_balance == Decimal("30")
        assert summary.withdrawals_count == 1

    def test_closure_excludes_even_when_unpaid(self):
        window = ClosureWindow(ClosureType.CONTRACT_RANGE, contract_start=400, contract_end=600)
        summary = _summary(closures=[window], payments=[])
        assert summary.total_contracts == 0
        assert summary.total_operating_fees == Decimal("0")
        assert summary.remaining_balance == Decimal("-20")

    def test_orphan_payments_ignored(self):
        totals = paid_totals([
            PaymentRecord(None, Decimal("5"), "receipt"),
            PaymentRecord(1, None, "receipt"),
            PaymentRecord(1, Decimal("7"), "refund"),
            PaymentRecord(1, Decimal("3"), "payment"),
        ])
        assert dict(totals) == {1: Decimal("3")}

    def test_empty_inputs(self):
        summary = compute_operating_fees(
            contracts=[], payments=[], excluded_contracts=frozenset(),
            closures=[], withdrawal_amounts=[],
        )
        assert summary.total_operating_fees == Decimal("0")
        assert summary.remaining_balance == Decimal("0")
        assert summary.lines == ()

    def test_emits_engine_trace(self, captured_logs):
        _summary()
        traces = [r for r in captured_logs() if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "fee_allocation"
        assert len(traces[-1]["input_fingerprint"]) == 16


contract_numbers = st.integers(min_value=1, max_value=50)
money = st.decimals(min_value=0, max_value=100000, places=2, allow_nan=False, allow_infinity=False)


@st.composite
def fee_inputs(draw):
    numbers = draw(st.lists(contract_numbers, unique=True, max_size=8))
    contracts = [
        ContractTerms(
            contract_number=n,
            total_rent=draw(money),
            installation_cost=draw(money),
            print_cost=draw(money),
            operating_fee_rate=draw(st.decimals(min_value=0, max_value=100, places=2)),
        )
        for n in numbers
    ]
    payments = [
        PaymentRecord(draw(contract_numbers), draw(money), draw(st.sampled_from(["receipt", "payment", "invoice"])))
        for _ in range(draw(st.integers(0, 10)))
    ]
    return contracts, payments


class TestDeterminism:

    @given(fee_inputs(), st.lists(money, max_size=5))
    @settings(max_examples=50, deadline=None)
    def test_same_inputs_same_totals(self, inputs, withdrawals):
        contracts, payments = inputs
        kwargs = dict(
            payments=payments,
            excluded_contracts=frozenset(),
            closures=[],
            withdrawal_amounts=withdrawals,
        )
        first = compute_operating_fees(contracts=contracts, **kwargs)
        second = compute_operating_fees(contracts=list(reversed(contracts)), **kwargs)
        assert first.total_operating_fees == second.total_operating_fees
        assert first.remaining_balance == first.total_operating_fees - first.total_withdrawals
        assert all(line.collected_fee >= 0 for line in first.lines)
