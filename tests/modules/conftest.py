"""
Shared fixtures for module tests.

All IDs are deterministic so tests can import and use them directly.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares which parent rows it depends on in its function signature.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from ledger_modules.contracts.orm import ContractModel, CustomerPaymentModel
from ledger_modules.custody.service import CustodyLedgerService
from ledger_modules.operating.service import OperatingFeeService
from ledger_modules.payroll.orm import EmployeeModel, InstallationTeamAccountModel
from ledger_modules.payroll.service import PayrollService

# ---------------------------------------------------------------------------
# Deterministic entity IDs
# ---------------------------------------------------------------------------

TEST_EMPLOYEE_ID = UUID("00000000-0000-4000-a000-000000000003")
TEST_OPERATING_EMPLOYEE_ID = UUID("00000000-0000-4000-a000-000000000004")
TEST_TEAM_EMPLOYEE_ID = UUID("00000000-0000-4000-a000-000000000005")
TEST_SECOND_EMPLOYEE_ID = UUID("00000000-0000-4000-a000-000000000006")
TEST_TEAM_ID = UUID("00000000-0000-4000-a000-000000000020")
TEST_PAYMENT_ID = UUID("00000000-0000-4000-a000-000000000030")


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def custody_service(session, deterministic_clock):
    return CustodyLedgerService(session, clock=deterministic_clock)


@pytest.fixture
def operating_service(session, deterministic_clock):
    return OperatingFeeService(session, clock=deterministic_clock)


@pytest.fixture
def payroll_service(session, deterministic_clock):
    return PayrollService(session, clock=deterministic_clock)


# ---------------------------------------------------------------------------
# Employees (opt-in, individual)
# ---------------------------------------------------------------------------


def _add_employee(session, employee_id, name, **kwargs):
    session.add(EmployeeModel(id=employee_id, name=name, **kwargs))
    session.commit()
    return employee_id


@pytest.fixture
def salaried_employee(session) -> UUID:
    """Employee with neither operating-fee link nor installation team."""
    return _add_employee(session, TEST_EMPLOYEE_ID, "Salaried Employee")


@pytest.fixture
def operating_employee(session) -> UUID:
    return _add_employee(
        session, TEST_OPERATING_EMPLOYEE_ID, "Operations Manager",
        linked_to_operating_expenses=True,
    )


@pytest.fixture
def team_employee(session) -> UUID:
    return _add_employee(
        session, TEST_TEAM_EMPLOYEE_ID, "Installation Lead",
        installation_team_id=TEST_TEAM_ID,
    )


# ---------------------------------------------------------------------------
# Contract and team-account factories
# ---------------------------------------------------------------------------


@pytest.fixture
def add_contract(session):
    """Insert a contract row.  Amounts are Decimal strings."""

    def _add(
        number: int,
        rent: str | None = "0",
        installation: str | None = "0",
        print_cost: str | None = "0",
        rate: str | None = "0",
        contract_date: date | None = None,
    ) -> int:
        session.add(ContractModel(
            id=uuid4(),
            contract_number=number,
            customer_name=f"Customer {number}",
            contract_date=contract_date,
            total_rent=Decimal(rent) if rent is not None else None,
            installation_cost=Decimal(installation) if installation is not None else None,
            print_cost=Decimal(print_cost) if print_cost is not None else None,
            operating_fee_rate=Decimal(rate) if rate is not None else None,
        ))
        session.commit()
        return number

    return _add


@pytest.fixture
def add_payment(session):
    """Insert a customer payment row."""

    def _add(contract_number: int | None, amount: str, entry_type: str = "receipt") -> None:
        session.add(CustomerPaymentModel(
            id=uuid4(),
            contract_number=contract_number,
            amount=Decimal(amount),
            entry_type=entry_type,
        ))
        session.commit()

    return _add


@pytest.fixture
def add_team_row(session, test_actor_id):
    """Insert a pending installation-team account row for TEST_TEAM_ID."""

    def _add(amount: str, installation_date: date | None, status: str = "pending") -> UUID:
        row_id = uuid4()
        session.add(InstallationTeamAccountModel(
            id=row_id,
            team_id=TEST_TEAM_ID,
            installation_date=installation_date,
            amount=Decimal(amount),
            status=status,
            created_by_id=test_actor_id,
        ))
        session.commit()
        return row_id

    return _add
