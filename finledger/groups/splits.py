"""
Expense Splitting

Divides a shared expense between group members.

DESIGN DECISION: Every split is rounded to cents and the parts always
add back up to exactly the expense amount. Whatever rounding leaves
over is handed out one cent at a time, so 100.00 between three people
is 33.34 + 33.33 + 33.33, never 99.99.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from finledger.errors import ValidationError
from finledger.models.groups import ExpenseSplit, SharedExpense, SplitType, utcnow


CENT = Decimal("0.01")
HUNDRED = Decimal("100")
SUM_TOLERANCE = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round to cents, half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _spread_cents(total: Decimal, weights: list[Decimal]) -> list[Decimal]:
    """
    Split ``total`` proportionally to ``weights`` in whole cents.

    Leftover cents go to the first parts, one each.
    """
    total_cents = int(to_money(total) * 100)
    weight_sum = sum(weights)
    raw = [Decimal(total_cents) * w / weight_sum for w in weights]
    cents = [int(part) for part in raw]
    leftover = total_cents - sum(cents)
    for idx in range(leftover):
        cents[idx % len(cents)] += 1
    return [Decimal(c) / 100 for c in cents]


def equal_shares(amount: Decimal, member_ids: list[UUID]) -> dict[UUID, Decimal]:
    """Same share for every member; remainder cents to the first members."""
    parts = _spread_cents(amount, [Decimal(1)] * len(member_ids))
    return dict(zip(member_ids, parts))


def percentage_shares(
    amount: Decimal,
    percentages: dict[UUID, Decimal],
) -> dict[UUID, Decimal]:
    """
    Amounts from percentages that sum to 100.

    Raises:
        ValidationError: If the percentages don't sum to 100 (±0.01)
    """
    if any(p < 0 for p in percentages.values()):
        raise ValidationError.single("shares", "invalid_value", "Percentages cannot be negative.")
    total = sum(percentages.values(), Decimal("0"))
    if abs(total - HUNDRED) > SUM_TOLERANCE:
        raise ValidationError.single(
            "shares",
            "invalid_sum",
            f"Percentages must add up to 100% (got {total}%).",
        )
    parts = _spread_cents(amount, list(percentages.values()))
    return dict(zip(percentages.keys(), parts))


def custom_shares(
    amount: Decimal,
    amounts: dict[UUID, Decimal],
) -> dict[UUID, Decimal]:
    """
    Explicit amounts that sum to the expense amount.

    Raises:
        ValidationError: If the amounts don't sum to the total (±0.01)
    """
    rounded = {user_id: to_money(value) for user_id, value in amounts.items()}
    if any(value < 0 for value in rounded.values()):
        raise ValidationError.single("shares", "invalid_value", "Amounts cannot be negative.")
    total = sum(rounded.values(), Decimal("0"))
    if abs(total - to_money(amount)) > SUM_TOLERANCE:
        raise ValidationError.single(
            "shares",
            "invalid_sum",
            f"Amounts must add up to {to_money(amount)} (got {total}).",
        )
    return rounded


def build_splits(
    expense: SharedExpense,
    member_ids: list[UUID],
    shares: Optional[dict[UUID, Decimal]] = None,
    now: Optional[datetime] = None,
) -> list[ExpenseSplit]:
    """
    Create the split rows for a new shared expense.

    ``shares`` holds percentages for PERCENTAGE and amounts for CUSTOM;
    it is ignored for EQUAL. The payer's own share is created already
    paid, since they paid the whole thing.

    Raises:
        ValidationError: If there is nobody to split with, shares are
            missing or name non-members, or they don't add up
    """
    if not member_ids:
        raise ValidationError.single("members", "missing", "The group has no members to split with.")

    if expense.split_type == SplitType.EQUAL:
        amounts = equal_shares(expense.amount, member_ids)
    else:
        if not shares:
            raise ValidationError.single("shares", "missing", "Enter each member's share.")
        strangers = [user_id for user_id in shares if user_id not in member_ids]
        if strangers:
            raise ValidationError.single(
                "shares", "invalid_value", "Shares can only be assigned to group members."
            )
        if expense.split_type == SplitType.PERCENTAGE:
            amounts = percentage_shares(expense.amount, shares)
        else:
            amounts = custom_shares(expense.amount, shares)

    paid_at = now or utcnow()
    splits = []
    for user_id, share in amounts.items():
        is_payer = user_id == expense.paid_by
        splits.append(ExpenseSplit(
            expense_id=expense.id,
            user_id=user_id,
            amount=share,
            percentage=(share / expense.amount * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP),
            is_paid=is_payer,
            paid_at=paid_at if is_payer else None,
        ))
    return splits
