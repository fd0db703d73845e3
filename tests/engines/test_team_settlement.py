"""
Tests for oldest-first team-row settlement.
"""

from datetime import date
from decimal import Decimal

from ledger_engines.team_settlement import PendingTeamRow, select_rows_to_settle


def _rows(*specs):
    return [PendingTeamRow(row_id=rid, installation_date=d, amount=Decimal(a)) for rid, d, a in specs]


class TestSelectRowsToSettle:

    def test_exact_cover(self):
        rows = _rows(("a", date(2024, 1, 1), "10"), ("b", date(2024, 1, 2), "20"))
        plan = select_rows_to_settle(rows, Decimal("30"))
        assert plan.settled_row_ids == ("a", "b")
        assert plan.settled_total == Decimal("30")
        assert plan.unallocated == Decimal("0")

    def test_partial_row_never_marked(self):
        rows = _rows(("a", date(2024, 1, 1), "10"), ("b", date(2024, 1, 2), "20"))
        plan = select_rows_to_settle(rows, Decimal("25"))
        assert plan.settled_row_ids == ("a",)
        assert plan.unallocated == Decimal("15")

    def test_stops_at_first_misfit(self):
        # "c" would fit in the remaining budget but comes after "b".
        rows = _rows(
            ("a", date(2024, 1, 1), "10"),
            ("b", date(2024, 1, 2), "50"),
            ("c", date(2024, 1, 3), "5"),
        )
        plan = select_rows_to_settle(rows, Decimal("20"))
        assert plan.settled_row_ids == ("a",)

    def test_sorted_by_date_not_input_order(self):
        rows = _rows(("late", date(2024, 3, 1), "10"), ("early", date(2024, 1, 1), "10"))
        plan = select_rows_to_settle(rows, Decimal("10"))
        assert plan.settled_row_ids == ("early",)

    def test_undated_rows_last(self):
        rows = _rows(("none", None, "1"), ("dated", date(2030, 1, 1), "1"))
        plan = select_rows_to_settle(rows, Decimal("1"))
        assert plan.settled_row_ids == ("dated",)

    def test_first_row_too_large(self):
        rows = _rows(("a", date(2024, 1, 1), "100"))
        plan = select_rows_to_settle(rows, Decimal("99"))
        assert plan.settled_row_ids == ()
        assert plan.unallocated == Decimal("99")

    def test_zero_amount(self):
        rows = _rows(("a", date(2024, 1, 1), "1"))
        assert select_rows_to_settle(rows, Decimal("0")).settled_row_ids == ()
