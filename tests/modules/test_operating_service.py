"""
Tests for the operating-fee service.

Validates:
- The fee view (proportional rent estimate, rounding, missing joins)
- Withdrawals against the fee balance
- Exclusion flags and period closures, including FIFO consumption
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    BalanceSourceMismatchError,
    ClosureNotFoundError,
    ConfirmationRequiredError,
    EmployeeNotFoundError,
    EmptyClosureError,
    InsufficientBalanceError,
    ValidationError,
    WithdrawalNotFoundError,
)
from ledger_modules.operating.config import OperatingFeeConfig
from ledger_modules.operating.models import ClosureType
from ledger_modules.operating.service import OperatingFeeService
from tests.modules.conftest import TEST_SECOND_EMPLOYEE_ID, _add_employee

W_DATE = date(2024, 1, 10)


@pytest.fixture
def scenario_contract(add_contract, add_payment):
    """Contract #500: fee 50 on 650 paid."""
    add_contract(500, rent="1000", installation="200", print_cost="100", rate="10")
    add_payment(500, "400")
    add_payment(500, "250", entry_type="account_payment")
    return 500


@pytest.fixture
def three_contracts(add_contract, add_payment):
    """Contracts 100, 200, 300 fully paid at 5%: fees 50, 30, 40."""
    for number, rent in ((100, "1000"), (200, "600"), (300, "800")):
        add_contract(number, rent=rent, rate="5", contract_date=date(2024, 1, number // 100))
        add_payment(number, rent)
    return (100, 200, 300)


# =============================================================================
# Fee view
# =============================================================================


class TestComputeOperatingFees:

    def test_scenario_single_contract(
        self, operating_service, operating_employee, scenario_contract, test_actor_id,
    ):
        operating_service.record_withdrawal(
            operating_employee, Decimal("20"), W_DATE, test_actor_id,
        )
        summary = operating_service.compute_operating_fees(operating_employee)

        assert summary.total_contracts == 1
        assert summary.total_operating_fees == Decimal("50")
        assert summary.total_withdrawals == Decimal("20")
        assert summary.remaining_balance == Decimal("30")
        assert summary.withdrawals_count == 1
        [line] = summary.lines
        assert line.total_amount == Decimal("1300")
        assert line.total_paid == Decimal("650")
        assert line.collected_fee == Decimal("50")

    def test_scenario_range_closure_excludes(
        self, operating_service, operating_employee, scenario_contract,
        add_contract, add_payment, test_actor_id,
    ):
        add_contract(700, rent="100", rate="10")
        add_payment(700, "100")
        before = operating_service.compute_operating_fees(operating_employee)
        assert before.total_operating_fees == Decimal("60")

        operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=400, contract_end=600,
        )
        after = operating_service.compute_operating_fees(operating_employee)
        assert after.total_operating_fees == Decimal("10")
        assert [ln.contract_number for ln in after.lines] == [700]

    def test_unknown_employee(self, operating_service):
        with pytest.raises(EmployeeNotFoundError):
            operating_service.compute_operating_fees(uuid4())

    def test_no_contracts_is_zero(self, operating_service, operating_employee):
        summary = operating_service.compute_operating_fees(operating_employee)
        assert summary.total_contracts == 0
        assert summary.total_operating_fees == Decimal("0")
        assert summary.remaining_balance == Decimal("0")

    def test_missing_joins_yield_zero(
        self, operating_service, operating_employee, add_contract, add_payment,
    ):
        add_contract(1, rent="1000", rate=None)
        add_payment(1, "1000")
        add_contract(2, rent=None, installation=None, print_cost=None, rate="10")
        add_payment(2, "500")
        add_contract(3, rent="1000", rate="10")
        add_payment(999, "1000")
        add_payment(None, "1000")

        summary = operating_service.compute_operating_fees(operating_employee)
        assert summary.total_contracts == 3
        assert summary.total_operating_fees == Decimal("0")

    def test_only_paid_entry_types_count(
        self, operating_service, operating_employee, add_contract, add_payment,
    ):
        add_contract(1, rent="1000", rate="10")
        add_payment(1, "500", entry_type="invoice")
        add_payment(1, "200", entry_type="payment")
        summary = operating_service.compute_operating_fees(operating_employee)
        assert summary.lines[0].total_paid == Decimal("200")
        assert summary.total_operating_fees == Decimal("20")

    def test_withdrawals_of_other_employees_ignored(
        self, operating_service, operating_employee, scenario_contract,
        session, test_actor_id,
    ):
        other = _add_employee(
            session, TEST_SECOND_EMPLOYEE_ID, "Other", linked_to_operating_expenses=True,
        )
        operating_service.record_withdrawal(other, Decimal("45"), W_DATE, test_actor_id)
        summary = operating_service.compute_operating_fees(operating_employee)
        assert summary.total_withdrawals == Decimal("0")
        assert summary.remaining_balance == Decimal("50")

    def test_deterministic(self, operating_service, operating_employee, three_contracts):
        first = operating_service.compute_operating_fees(operating_employee)
        second = operating_service.compute_operating_fees(operating_employee)
        assert first == second

    @pytest.mark.parametrize("mode, expected", [("half_up", "13"), ("half_even", "12")])
    def test_rounding_mode(
        self, session, deterministic_clock, operating_employee,
        add_contract, add_payment, mode, expected,
    ):
        add_contract(1, rent="250", rate="5")
        add_payment(1, "250")
        service = OperatingFeeService(
            session, config=OperatingFeeConfig(rounding_mode=mode), clock=deterministic_clock,
        )
        summary = service.compute_operating_fees(operating_employee)
        assert summary.total_operating_fees == Decimal(expected)

    def test_rounding_places(
        self, session, deterministic_clock, operating_employee, add_contract, add_payment,
    ):
        add_contract(1, rent="250", rate="5")
        add_payment(1, "250")
        service = OperatingFeeService(
            session, config=OperatingFeeConfig(fee_rounding_places=2), clock=deterministic_clock,
        )
        assert service.compute_operating_fees(operating_employee).total_operating_fees == Decimal("12.50")


# =============================================================================
# Withdrawals
# =============================================================================


class TestWithdrawals:

    def test_over_balance_rejected(
        self, operating_service, operating_employee, scenario_contract, test_actor_id,
    ):
        with pytest.raises(InsufficientBalanceError) as exc:
            operating_service.record_withdrawal(
                operating_employee, Decimal("50.01"), W_DATE, test_actor_id,
            )
        assert exc.value.available == Decimal("50")
        assert operating_service.list_withdrawals(operating_employee) == []

    def test_exact_balance_accepted(
        self, operating_service, operating_employee, scenario_contract, test_actor_id,
    ):
        wd = operating_service.record_withdrawal(
            operating_employee, Decimal("50"), W_DATE, test_actor_id,
            method="cash", receiver_name="Ops", sender_name="Accounts",
        )
        assert wd.method == "cash"
        assert operating_service.compute_operating_fees(
            operating_employee
        ).remaining_balance == Decimal("0")

    def test_non_positive_rejected(self, operating_service, operating_employee, test_actor_id):
        with pytest.raises(ValidationError):
            operating_service.record_withdrawal(
                operating_employee, Decimal("0"), W_DATE, test_actor_id,
            )

    def test_unknown_employee(self, operating_service, test_actor_id):
        with pytest.raises(EmployeeNotFoundError):
            operating_service.record_withdrawal(uuid4(), Decimal("1"), W_DATE, test_actor_id)

    @pytest.mark.parametrize("employee_fixture", ["team_employee", "salaried_employee"])
    def test_employee_without_operating_link_rejected(
        self, operating_service, scenario_contract, test_actor_id, request, employee_fixture,
    ):
        employee_id = request.getfixturevalue(employee_fixture)
        with pytest.raises(BalanceSourceMismatchError):
            operating_service.record_withdrawal(
                employee_id, Decimal("1"), W_DATE, test_actor_id,
            )
        assert operating_service.list_withdrawals() == []

    def test_edit_may_reuse_own_amount(
        self, operating_service, operating_employee, scenario_contract, test_actor_id,
    ):
        wd = operating_service.record_withdrawal(
            operating_employee, Decimal("40"), W_DATE, test_actor_id,
        )
        edited = operating_service.edit_withdrawal(
            wd.id, test_actor_id, amount=Decimal("50"), notes="corrected",
        )
        assert edited.amount == Decimal("50")
        assert edited.notes == "corrected"
        with pytest.raises(InsufficientBalanceError):
            operating_service.edit_withdrawal(wd.id, test_actor_id, amount=Decimal("51"))
        assert operating_service.list_withdrawals()[0].amount == Decimal("50")

    def test_edit_unknown(self, operating_service, test_actor_id):
        with pytest.raises(WithdrawalNotFoundError):
            operating_service.edit_withdrawal(uuid4(), test_actor_id, amount=Decimal("1"))

    def test_delete_restores_balance(
        self, operating_service, operating_employee, scenario_contract, test_actor_id,
    ):
        wd = operating_service.record_withdrawal(
            operating_employee, Decimal("20"), W_DATE, test_actor_id,
        )
        with pytest.raises(ConfirmationRequiredError):
            operating_service.delete_withdrawal(wd.id, test_actor_id)
        operating_service.delete_withdrawal(wd.id, test_actor_id, confirmed=True)
        assert operating_service.compute_operating_fees(
            operating_employee
        ).remaining_balance == Decimal("50")

    def test_list_newest_first(
        self, operating_service, operating_employee, scenario_contract, test_actor_id,
    ):
        operating_service.record_withdrawal(
            operating_employee, Decimal("5"), date(2024, 1, 1), test_actor_id,
        )
        operating_service.record_withdrawal(
            operating_employee, Decimal("6"), date(2024, 2, 1), test_actor_id,
        )
        amounts = [w.amount for w in operating_service.list_withdrawals(operating_employee)]
        assert amounts == [Decimal("6"), Decimal("5")]


# =============================================================================
# Exclusion flags
# =============================================================================


class TestExclusions:

    def test_excluded_contract_drops_out(
        self, operating_service, operating_employee, three_contracts, test_actor_id,
    ):
        operating_service.set_contract_exclusion(200, True, test_actor_id)
        summary = operating_service.compute_operating_fees(operating_employee)
        assert summary.total_operating_fees == Decimal("90")

        operating_service.set_contract_exclusion(200, False, test_actor_id)
        summary = operating_service.compute_operating_fees(operating_employee)
        assert summary.total_operating_fees == Decimal("120")

    def test_upsert_keeps_one_flag(self, operating_service, test_actor_id):
        operating_service.set_contract_exclusion(7, True, test_actor_id)
        operating_service.set_contract_exclusion(7, True, test_actor_id)
        operating_service.set_contract_exclusion(7, False, test_actor_id)
        flags = operating_service.list_exclusions()
        assert len(flags) == 1
        assert flags[0].excluded is False


# =============================================================================
# Period closures
# =============================================================================


class TestClosures:

    def test_fifo_consumes_oldest_first(
        self, operating_service, operating_employee, three_contracts, test_actor_id,
    ):
        operating_service.record_withdrawal(
            operating_employee, Decimal("60"), W_DATE, test_actor_id,
        )
        closure = operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=100, contract_end=200,
        )
        assert closure.total_contracts == 2
        assert closure.total_amount == Decimal("80")
        assert closure.total_withdrawn == Decimal("60")
        assert closure.remaining_balance == Decimal("20")

        second = operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=250, contract_end=350,
        )
        assert second.total_amount == Decimal("40")
        assert second.total_withdrawn == Decimal("0")
        assert second.remaining_balance == Decimal("40")

    def test_open_older_contracts_absorb_first(
        self, operating_service, operating_employee, three_contracts, test_actor_id,
    ):
        operating_service.record_withdrawal(
            operating_employee, Decimal("60"), W_DATE, test_actor_id,
        )
        closure = operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=200, contract_end=300,
        )
        assert closure.total_amount == Decimal("70")
        assert closure.total_withdrawn == Decimal("10")
        assert closure.remaining_balance == Decimal("60")

    def test_closure_date_defaults_to_today(
        self, operating_service, three_contracts, test_actor_id, deterministic_clock,
    ):
        closure = operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=100, contract_end=300,
            notes="Year end",
        )
        assert closure.closure_date == deterministic_clock.today()
        assert closure.notes == "Year end"

    @pytest.mark.parametrize("start, end", [(300, 100), (100, 100), (None, 100)])
    def test_bad_range_rejected(self, operating_service, three_contracts, test_actor_id, start, end):
        with pytest.raises(ValidationError):
            operating_service.create_closure(
                ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=start, contract_end=end,
            )
        assert operating_service.list_closures() == []

    def test_empty_range_rejected(self, operating_service, three_contracts, test_actor_id):
        with pytest.raises(EmptyClosureError):
            operating_service.create_closure(
                ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=700, contract_end=800,
            )

    def test_already_closed_range_is_empty(
        self, operating_service, three_contracts, test_actor_id,
    ):
        operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=100, contract_end=300,
        )
        with pytest.raises(EmptyClosureError):
            operating_service.create_closure(
                ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=150, contract_end=250,
            )

    def test_period_closure(
        self, operating_service, operating_employee, three_contracts, test_actor_id,
    ):
        closure = operating_service.create_closure(
            ClosureType.PERIOD, test_actor_id,
            period_start=date(2024, 1, 1), period_end=date(2024, 1, 2),
        )
        assert closure.total_contracts == 2
        assert closure.total_amount == Decimal("80")

        # The employee view ignores period closures unless configured.
        summary = operating_service.compute_operating_fees(operating_employee)
        assert summary.total_operating_fees == Decimal("120")

    def test_period_closure_excluded_when_configured(
        self, session, deterministic_clock, operating_employee, three_contracts, test_actor_id,
    ):
        service = OperatingFeeService(
            session,
            config=OperatingFeeConfig(exclude_period_closures=True),
            clock=deterministic_clock,
        )
        service.create_closure(
            ClosureType.PERIOD, test_actor_id,
            period_start=date(2024, 1, 1), period_end=date(2024, 1, 2),
        )
        assert service.compute_operating_fees(operating_employee).total_operating_fees == Decimal("40")

    def test_inverted_period_rejected(self, operating_service, three_contracts, test_actor_id):
        with pytest.raises(ValidationError):
            operating_service.create_closure(
                ClosureType.PERIOD, test_actor_id,
                period_start=date(2024, 2, 1), period_end=date(2024, 1, 1),
            )

    def test_delete_closure_reopens(
        self, operating_service, operating_employee, three_contracts, test_actor_id,
    ):
        closure = operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=100, contract_end=200,
        )
        assert operating_service.compute_operating_fees(
            operating_employee
        ).total_operating_fees == Decimal("40")

        with pytest.raises(ConfirmationRequiredError):
            operating_service.delete_closure(closure.id, test_actor_id)
        operating_service.delete_closure(closure.id, test_actor_id, confirmed=True)

        assert operating_service.list_closures() == []
        assert operating_service.compute_operating_fees(
            operating_employee
        ).total_operating_fees == Decimal("120")

    def test_delete_unknown_closure(self, operating_service, test_actor_id):
        with pytest.raises(ClosureNotFoundError):
            operating_service.delete_closure(uuid4(), test_actor_id, confirmed=True)

    def test_closure_logs(self, operating_service, three_contracts, test_actor_id, captured_logs):
        operating_service.create_closure(
            ClosureType.CONTRACT_RANGE, test_actor_id, contract_start=100, contract_end=200,
        )
        logs = captured_logs()
        completed = [r for r in logs if r["message"] == "period_closure_completed"]
        assert len(completed) == 1
        assert completed[0]["total_amount"] in ("80", "80.000000000")
        assert any(r["message"] == "LEDGER_ENGINE_TRACE" for r in logs)
