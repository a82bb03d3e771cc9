"""
Ledger Aggregator

Pure functions deriving summary figures from a sequence of transactions.

Nothing here is persisted or cached. The dashboard recomputes every
view from the current state on each render; the working set is one
person's ledger, so a linear pass is all it takes.

Composition rule used everywhere money "went out":
    expenses = Expense + Paid Debt
Open debt is tracked separately and never counted as spent.
"""

import calendar
from collections.abc import Callable, Iterable, Sequence
from datetime import date, timedelta
from typing import Optional

from finledger.errors import ValidationError
from finledger.ledger.formatting import format_date_br
from finledger.models.ledger import (
    DEFAULT_CATEGORY,
    CategoryAmount,
    KindShare,
    LedgerReport,
    LedgerTotals,
    TimelineBucket,
    Transaction,
    TransactionKind,
)


MONTH_NAMES = [
    "", "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def _is_expense_like(transaction: Transaction) -> bool:
    return transaction.is_expense_like


def compute_totals(
    transactions: Iterable[Transaction],
    initial_balance: float = 0.0,
) -> LedgerTotals:
    """
    Summary totals for the dashboard cards.

    current_balance = initial_balance + income - expenses
    (open debt is NOT subtracted; see LedgerTotals.balance_with_debt)
    """
    total_income = 0.0
    total_expenses = 0.0
    total_debt = 0.0

    for transaction in transactions:
        if transaction.kind == TransactionKind.INCOME:
            total_income += transaction.amount
        elif transaction.is_expense_like:
            total_expenses += transaction.amount
        elif transaction.is_open_debt:
            total_debt += transaction.amount

    return LedgerTotals(
        total_income=total_income,
        total_expenses=total_expenses,
        total_debt=total_debt,
        current_balance=initial_balance + total_income - total_expenses,
    )


def breakdown_by_category(
    transactions: Iterable[Transaction],
    predicate: Callable[[Transaction], bool] = _is_expense_like,
) -> dict[str, float]:
    """
    Sum amounts per category for the transactions matching ``predicate``.

    Keys keep first-seen order, which is what breaks ties when ranking.
    """
    totals: dict[str, float] = {}
    for transaction in transactions:
        if not predicate(transaction):
            continue
        category = transaction.category or DEFAULT_CATEGORY
        totals[category] = totals.get(category, 0.0) + transaction.amount
    return totals


def top_categories(breakdown: dict[str, float], limit: int) -> list[CategoryAmount]:
    """Categories by descending amount; equal amounts keep first-seen order."""
    ranked = sorted(breakdown.items(), key=lambda item: item[1], reverse=True)
    return [
        CategoryAmount(category=category, amount=amount)
        for category, amount in ranked[:limit]
    ]


def windowed_report(
    transactions: Iterable[Transaction],
    start_date: date,
    end_date: date,
    label: str,
    top_n: int = 5,
) -> LedgerReport:
    """
    Totals for transactions whose relevant date is in [start_date, end_date].

    The relevant date of a paid debt is its payment date; for everything
    else it is the transaction date.

    Raises:
        ValidationError: If start_date is after end_date
    """
    if start_date > end_date:
        raise ValidationError.single(
            "start_date",
            "invalid_range",
            "Start date must be on or before the end date.",
        )

    in_window = [
        t for t in transactions
        if t.relevant_date is not None and start_date <= t.relevant_date <= end_date
    ]

    total_income = sum(t.amount for t in in_window if t.kind == TransactionKind.INCOME)
    total_expenses = sum(t.amount for t in in_window if t.is_expense_like)

    return LedgerReport(
        label=label,
        start_date=start_date,
        end_date=end_date,
        total_income=total_income,
        total_expenses=total_expenses,
        balance=total_income - total_expenses,
        top_categories=top_categories(breakdown_by_category(in_window), top_n),
        transaction_count=len(in_window),
    )


# =============================================================================
# REPORT WINDOWS
# =============================================================================

def week_range(today: date) -> tuple[date, date, str]:
    """The Sunday-to-Saturday week containing ``today``."""
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    end = start + timedelta(days=6)
    return start, end, f"Week ({format_date_br(start)} to {format_date_br(end)})"


def month_range(today: date) -> tuple[date, date, str]:
    """First to last day of the month containing ``today``."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    start = today.replace(day=1)
    end = today.replace(day=last_day)
    return start, end, f"Month ({MONTH_NAMES[today.month]} {today.year})"


def custom_range_label(start: date, end: date) -> str:
    return f"Period ({format_date_br(start)} to {format_date_br(end)})"


# =============================================================================
# CHART DATA
# =============================================================================

def timeline_buckets(
    transactions: Sequence[Transaction],
    days: int = 7,
    today: Optional[date] = None,
) -> list[TimelineBucket]:
    """
    One bucket per calendar day, oldest first, ending today.

    Only raw Income and raw Expense count here, by transaction date.
    Paid debts stay out of this view.
    """
    today = today or date.today()
    buckets = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        same_day = [t for t in transactions if t.occurred_on == day]
        buckets.append(TimelineBucket(
            day=day,
            income=sum(t.amount for t in same_day if t.kind == TransactionKind.INCOME),
            expenses=sum(t.amount for t in same_day if t.kind == TransactionKind.EXPENSE),
        ))
    return buckets


def kind_distribution(transactions: Sequence[Transaction]) -> list[KindShare]:
    """Income / expenses / open debt slices; empty slices are left out."""
    totals = compute_totals(transactions)
    shares = [
        KindShare(name="Income", amount=totals.total_income),
        KindShare(name="Expenses", amount=totals.total_expenses),
        KindShare(name="Open debts", amount=totals.total_debt),
    ]
    return [share for share in shares if share.amount > 0]


def sort_for_display(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Newest transaction date first; creation time breaks ties."""
    return sorted(
        transactions,
        key=lambda t: (t.occurred_on, t.created_at),
        reverse=True,
    )
