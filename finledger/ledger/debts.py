"""
Debt Scheduler

Classifies open debts by how close their due date is. Everything is a
pure function of the due date and "today"; nothing is stored.

    days_until_due < 0         -> OVERDUE (by abs(days) days)
    0 <= days <= due_soon_days -> DUE_SOON
    days > due_soon_days       -> SCHEDULED
"""

from collections.abc import Iterable
from datetime import date
from typing import Optional

from finledger.models.ledger import (
    DebtUrgency,
    Transaction,
    UpcomingDebt,
    UrgencyBucket,
)


DUE_SOON_DAYS = 7
UPCOMING_LIMIT = 6


def days_until_due(due_on: date, today: Optional[date] = None) -> int:
    """Whole days from today to the due date; negative means overdue."""
    today = today or date.today()
    return (due_on - today).days


def classify_urgency(
    due_on: date,
    today: Optional[date] = None,
    due_soon_days: int = DUE_SOON_DAYS,
) -> DebtUrgency:
    days = days_until_due(due_on, today)
    if days < 0:
        bucket = UrgencyBucket.OVERDUE
    elif days <= due_soon_days:
        bucket = UrgencyBucket.DUE_SOON
    else:
        bucket = UrgencyBucket.SCHEDULED
    return DebtUrgency(bucket=bucket, days_until_due=days)


def upcoming_debts(
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
    limit: int = UPCOMING_LIMIT,
    due_soon_days: int = DUE_SOON_DAYS,
) -> list[UpcomingDebt]:
    """
    Open debts, earliest due date first, truncated to ``limit``.

    Debts without a due date sort before everything else. The
    truncation is for display only; the ledger keeps every debt.
    """
    open_debts = [t for t in transactions if t.is_open_debt]
    open_debts.sort(key=lambda t: (t.due_on is not None, t.due_on or date.min))

    return [
        UpcomingDebt(
            transaction=debt,
            urgency=(
                classify_urgency(debt.due_on, today, due_soon_days)
                if debt.due_on is not None
                else None
            ),
        )
        for debt in open_debts[:limit]
    ]


def due_label(urgency: Optional[DebtUrgency]) -> str:
    """Short text shown next to a debt."""
    if urgency is None:
        return "No due date"

    days = urgency.magnitude
    unit = "day" if days == 1 else "days"
    if urgency.bucket == UrgencyBucket.OVERDUE:
        return f"Overdue by {days} {unit}"
    if days == 0:
        return "Due today"
    return f"Due in {days} {unit}"
