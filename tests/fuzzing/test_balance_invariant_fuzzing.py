"""
Property-based tests for the custody balance invariant.

Verifies, over random operation sequences:
- The stored balance always equals the replay of the account's rows
- With the guard enabled the balance never goes negative
- Rejected operations leave no rows behind
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_engines.balance import derive_balance
from ledger_kernel.domain.validation import parse_amount
from ledger_kernel.exceptions import (
    AccountExhaustedError,
    InsufficientBalanceError,
    ValidationError,
)

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("500"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

operations = st.lists(
    st.tuples(
        st.sampled_from(["deposit", "withdrawal", "credit", "debit", "expense"]),
        amounts,
    ),
    min_size=1,
    max_size=15,
)

FUZZ_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)


def _apply(service, account_id, op, amount, actor_id):
    day = date(2024, 1, 1)
    if op == "deposit":
        service.add_deposit(account_id, amount, day, actor_id)
    elif op == "withdrawal":
        service.add_withdrawal(account_id, amount, day, actor_id)
    elif op == "credit":
        service.record_adjustment(account_id, amount, day, "Count correction", actor_id)
    elif op == "debit":
        service.record_adjustment(account_id, -amount, day, "Count correction", actor_id)
    else:
        service.add_expense(account_id, "Supplies", amount, day, "Fuzzed spend", actor_id)


class TestCustodyBalanceInvariant:

    @given(initial=amounts, ops=operations)
    @FUZZ_SETTINGS
    def test_stored_balance_matches_replay(self, custody_service, test_actor_id, initial, ops):
        account = custody_service.create_account(uuid4(), initial, test_actor_id)
        accepted = 0
        for op, amount in ops:
            try:
                _apply(custody_service, account.id, op, amount, test_actor_id)
                accepted += 1
            except (InsufficientBalanceError, AccountExhaustedError):
                pass

            statement = custody_service.get_statement(account.id)
            assert statement.account.current_balance == statement.closing_balance
            assert statement.closing_balance >= 0

        statement = custody_service.get_statement(account.id)
        assert len(statement.transactions) + len(statement.expenses) == accepted
        replay = derive_balance(initial, statement.transactions, statement.expenses)
        assert replay.balance == statement.closing_balance


class TestAmountParsing:

    @given(value=st.decimals(allow_nan=False, allow_infinity=False, places=4))
    @settings(max_examples=200)
    def test_decimal_strings_round_trip_exactly(self, value):
        assert parse_amount(str(value)) == value

    @given(value=st.floats(allow_nan=False, allow_infinity=False))
    @settings(max_examples=50)
    def test_floats_always_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value)

    @given(value=st.text(alphabet="abcxyz!@ ", min_size=1, max_size=8))
    @settings(max_examples=50)
    def test_garbage_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value)
