"""Group totals and who-owes-whom, derived from expenses and their splits."""

from collections.abc import Iterable
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finledger.models.groups import (
    ExpenseSplit,
    GroupTotals,
    MemberBalance,
    SharedExpense,
)


def group_totals(expenses: Iterable[SharedExpense], user_id: UUID) -> GroupTotals:
    """Total spent by the group, the part ``user_id`` paid, and the count."""
    total_spent = Decimal("0")
    my_total = Decimal("0")
    count = 0
    for expense in expenses:
        total_spent += expense.amount
        if expense.paid_by == user_id:
            my_total += expense.amount
        count += 1
    return GroupTotals(total_spent=total_spent, my_total=my_total, expense_count=count)


def member_balances(
    expenses: Iterable[SharedExpense],
    splits: Iterable[ExpenseSplit],
    member_ids: Optional[list[UUID]] = None,
) -> list[MemberBalance]:
    """
    Outstanding balances from unpaid splits.

    An unpaid split means its member owes the expense's payer that
    amount. Paid splits and the payer's own share are settled.
    Members are listed in ``member_ids`` order, then anyone else that
    appears in the splits.
    """
    payer_of = {expense.id: expense.paid_by for expense in expenses}
    to_receive: dict[UUID, Decimal] = {}
    owes: dict[UUID, Decimal] = {}

    for split in splits:
        payer = payer_of.get(split.expense_id)
        if payer is None or split.is_paid or split.user_id == payer:
            continue
        owes[split.user_id] = owes.get(split.user_id, Decimal("0")) + split.amount
        to_receive[payer] = to_receive.get(payer, Decimal("0")) + split.amount

    ordered = list(member_ids or [])
    for user_id in list(owes) + list(to_receive):
        if user_id not in ordered:
            ordered.append(user_id)

    return [
        MemberBalance(
            user_id=user_id,
            to_receive=to_receive.get(user_id, Decimal("0")),
            owes=owes.get(user_id, Decimal("0")),
        )
        for user_id in ordered
    ]
