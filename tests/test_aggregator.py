"""Tests for derived ledger figures, report windows and formatting."""

import pytest
from datetime import date, datetime, timezone

from finledger.errors import ValidationError
from finledger.ledger import (
    breakdown_by_category,
    compute_totals,
    custom_range_label,
    format_currency,
    format_date_br,
    kind_distribution,
    month_range,
    sort_for_display,
    timeline_buckets,
    top_categories,
    week_range,
    windowed_report,
)
from finledger.models import TransactionKind

from conftest import TODAY, make_transaction


@pytest.fixture
def transactions():
    return [
        make_transaction("inc", TransactionKind.INCOME, 1000, category="Salary"),
        make_transaction("exp", TransactionKind.EXPENSE, 200, category="Food"),
        make_transaction("open", TransactionKind.DEBT, 300, due_on=date(2026, 10, 25)),
    ]


class TestTotals:
    """Tests for the dashboard totals."""

    def test_scenario_totals(self, transactions):
        """Test income, expenses and open debt kept apart."""
        totals = compute_totals(transactions)
        assert totals.total_income == 1000
        assert totals.total_expenses == 200
        assert totals.total_debt == 300
        assert totals.current_balance == 800
        assert totals.balance_with_debt == 500

    def test_paid_debt_counts_as_expense(self, transactions):
        """Test that paying a debt moves it from debt to expenses."""
        paid = make_transaction(
            "open", TransactionKind.DEBT, 300,
            due_on=date(2026, 10, 25), paid_on=date(2026, 10, 19),
        )
        totals = compute_totals(transactions[:2] + [paid], initial_balance=100)
        assert totals.total_expenses == 500
        assert totals.total_debt == 0
        assert totals.current_balance == 600

    def test_empty_ledger(self):
        totals = compute_totals([], initial_balance=-50)
        assert totals.current_balance == -50
        assert totals.is_positive is False


class TestCategories:
    """Tests for the category breakdown and ranking."""

    def test_breakdown_counts_expense_like_only(self, transactions):
        paid = make_transaction(
            "paid", TransactionKind.DEBT, 40, category="Loan", paid_on=TODAY,
        )
        breakdown = breakdown_by_category(transactions + [paid])
        assert breakdown == {"Food": 200, "Loan": 40}

    def test_ties_keep_first_seen_order(self):
        """Test that equal amounts rank in first-seen order."""
        ranked = top_categories({"B": 10.0, "A": 10.0, "C": 30.0}, limit=3)
        assert [item.category for item in ranked] == ["C", "B", "A"]

    def test_limit(self):
        ranked = top_categories({"A": 1.0, "B": 2.0, "C": 3.0}, limit=2)
        assert [item.category for item in ranked] == ["C", "B"]


class TestWindowedReport:
    """Tests for period reports."""

    def test_paid_debt_reported_by_payment_date(self):
        """Test that a debt paid inside the window counts even if dated earlier."""
        debt = make_transaction(
            "d", TransactionKind.DEBT, 120, category="Loan",
            occurred_on=date(2026, 8, 1), paid_on=date(2026, 10, 20),
        )
        income = make_transaction("i", TransactionKind.INCOME, 500, occurred_on=date(2026, 10, 18))
        outside = make_transaction("o", TransactionKind.EXPENSE, 99, occurred_on=date(2026, 9, 30))

        start, end, label = week_range(TODAY)
        report = windowed_report([debt, income, outside], start, end, label)

        assert report.total_income == 500
        assert report.total_expenses == 120
        assert report.balance == 380
        assert report.transaction_count == 2
        assert [c.category for c in report.top_categories] == ["Loan"]
        assert report.category_share(report.top_categories[0]) == 100

    def test_window_is_inclusive(self):
        edge = make_transaction("e", TransactionKind.EXPENSE, 10, occurred_on=date(2026, 10, 31))
        report = windowed_report([edge], date(2026, 10, 1), date(2026, 10, 31), "Oct")
        assert report.transaction_count == 1

    def test_start_after_end_is_rejected(self):
        with pytest.raises(ValidationError):
            windowed_report([], date(2026, 10, 20), date(2026, 10, 19), "bad")

    def test_open_debt_is_counted_but_not_added_to_expenses(self, transactions):
        report = windowed_report(transactions, TODAY, TODAY, "today")
        assert report.total_expenses == 200
        assert report.transaction_count == 3


class TestRanges:
    """Tests for the report windows."""

    def test_week_starts_on_sunday(self):
        start, end, label = week_range(date(2026, 10, 19))
        assert start == date(2026, 10, 18)
        assert end == date(2026, 10, 24)
        assert label == "Week (18/10/2026 to 24/10/2026)"

    def test_week_of_a_sunday(self):
        start, _, _ = week_range(date(2026, 10, 18))
        assert start == date(2026, 10, 18)

    def test_month_range(self):
        start, end, label = month_range(date(2026, 2, 10))
        assert (start, end) == (date(2026, 2, 1), date(2026, 2, 28))
        assert label == "Month (February 2026)"

    def test_custom_label(self):
        assert custom_range_label(date(2026, 1, 5), date(2026, 2, 1)) == "Period (05/01/2026 to 01/02/2026)"


class TestChartData:
    """Tests for the dashboard chart series."""

    def test_timeline_has_one_bucket_per_day(self):
        income = make_transaction("i", TransactionKind.INCOME, 100, occurred_on=TODAY)
        expense = make_transaction("e", TransactionKind.EXPENSE, 40, occurred_on=date(2026, 10, 13))
        buckets = timeline_buckets([income, expense], days=7, today=TODAY)

        assert len(buckets) == 7
        assert buckets[0].day == date(2026, 10, 13)
        assert buckets[0].expenses == 40
        assert buckets[-1].day == TODAY
        assert buckets[-1].income == 100

    def test_timeline_ignores_debts(self):
        paid = make_transaction("d", TransactionKind.DEBT, 50, paid_on=TODAY)
        buckets = timeline_buckets([paid], days=1, today=TODAY)
        assert buckets[0].expenses == 0

    def test_kind_distribution_omits_empty_slices(self):
        income = make_transaction("i", TransactionKind.INCOME, 100)
        shares = kind_distribution([income])
        assert [(s.name, s.amount) for s in shares] == [("Income", 100)]

    def test_sort_for_display(self):
        """Test newest date first, then newest creation time."""
        early = datetime(2026, 10, 19, 8, tzinfo=timezone.utc)
        late = datetime(2026, 10, 19, 9, tzinfo=timezone.utc)
        a = make_transaction("a", TransactionKind.EXPENSE, 1, occurred_on=TODAY, created_at=early)
        b = make_transaction("b", TransactionKind.EXPENSE, 1, occurred_on=TODAY, created_at=late)
        c = make_transaction("c", TransactionKind.EXPENSE, 1, occurred_on=date(2026, 10, 1), created_at=late)
        assert [t.id for t in sort_for_display([c, a, b])] == ["b", "a", "c"]


class TestFormatting:
    """Tests for Brazilian display formats."""

    @pytest.mark.parametrize("value,expected", [
        (1234.5, "R$ 1.234,50"),
        (-80, "-R$ 80,00"),
        (0, "R$ 0,00"),
        (1234567.891, "R$ 1.234.567,89"),
    ])
    def test_format_currency(self, value, expected):
        assert format_currency(value) == expected

    def test_format_date_br(self):
        assert format_date_br(date(2026, 3, 7)) == "07/03/2026"
