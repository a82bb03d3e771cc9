"""
Ledger Package

The single-user ledger: the store and its reducers, the aggregator,
the debt scheduler and autosave.
"""

from finledger.ledger.aggregator import (
    breakdown_by_category,
    compute_totals,
    custom_range_label,
    kind_distribution,
    month_range,
    sort_for_display,
    timeline_buckets,
    top_categories,
    week_range,
    windowed_report,
)
from finledger.ledger.autosave import AutoSaver, FormDraftStore
from finledger.ledger.debts import (
    classify_urgency,
    days_until_due,
    due_label,
    upcoming_debts,
)
from finledger.ledger.formatting import format_currency, format_date_br, format_day_month
from finledger.ledger.store import (
    STATE_KEY,
    LedgerStore,
    add_transaction,
    decode_state,
    encode_state,
    mark_debt_paid,
    remove_transaction,
    set_initial_balance,
    update_amount,
)

__all__ = [
    # Store
    "STATE_KEY",
    "LedgerStore",
    "add_transaction",
    "decode_state",
    "encode_state",
    "mark_debt_paid",
    "remove_transaction",
    "set_initial_balance",
    "update_amount",
    # Aggregator
    "breakdown_by_category",
    "compute_totals",
    "custom_range_label",
    "kind_distribution",
    "month_range",
    "sort_for_display",
    "timeline_buckets",
    "top_categories",
    "week_range",
    "windowed_report",
    # Debts
    "classify_urgency",
    "days_until_due",
    "due_label",
    "upcoming_debts",
    # Autosave
    "AutoSaver",
    "FormDraftStore",
    # Formatting
    "format_currency",
    "format_date_br",
    "format_day_month",
]
