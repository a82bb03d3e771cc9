"""
Core Ledger Models for finledger

These models define the strict schemas for the single-user ledger.
They are designed to:
1. Enforce the transaction invariants at runtime
2. Provide clear validation error messages
3. Round-trip through the persisted JSON blob unchanged
4. Stay immutable, so every change produces a new value

DESIGN DECISION: Field aliases match the keys of the persisted blob
(``type``, ``date``, ``dueDate``, ``createdAt``, ``paidDate``,
``initialBalance``). Python code uses the snake_case names; the blob
keeps the keys older versions of the app already wrote.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


DEFAULT_CATEGORY = "Other"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Kind of ledger entry."""
    INCOME = "income"
    EXPENSE = "expense"
    DEBT = "debt"


class DebtStatus(str, Enum):
    """
    Lifecycle of a debt.

    A debt is created OPEN and only the pay-debt operation moves it to PAID.
    """
    OPEN = "open"
    PAID = "paid"


class UrgencyBucket(str, Enum):
    """How pressing an open debt is, relative to today."""
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    SCHEDULED = "scheduled"


class ActionStatus(str, Enum):
    """Outcome of a user-triggered ledger operation."""
    APPLIED = "applied"
    CANCELLED = "cancelled"  # User dismissed the prompt
    REJECTED = "rejected"    # Bad input or unknown id; nothing changed


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger entry.

    CRITICAL: ``due_on`` and ``status`` exist only on debts, and
    ``paid_on`` exists only on paid debts. The model refuses any other
    combination.

    ``amount`` is checked for ``> 0`` at intake and edit time. The schema
    itself accepts 0 because legacy blobs with a missing amount are
    decoded as 0 rather than discarded.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier"
    )
    kind: TransactionKind = Field(
        ...,
        alias="type",
        description="Income, expense or debt"
    )
    amount: float = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Positive amount in the ledger currency"
    )
    occurred_on: date = Field(
        ...,
        alias="date",
        description="Calendar date the transaction is dated"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    category: str = Field(
        default=DEFAULT_CATEGORY,
        min_length=1,
        max_length=100,
    )
    due_on: Optional[date] = Field(
        default=None,
        alias="dueDate",
        description="Due date (debts only)"
    )
    status: Optional[DebtStatus] = Field(
        default=None,
        description="Open/paid (debts only)"
    )
    created_at: datetime = Field(
        ...,
        alias="createdAt",
        description="Creation timestamp, used as a tie-break sort key"
    )
    paid_on: Optional[date] = Field(
        default=None,
        alias="paidDate",
        description="Payment date (paid debts only)"
    )

    @model_validator(mode='after')
    def validate_debt_fields(self) -> 'Transaction':
        """Keep debt-only fields on debts."""
        if self.kind != TransactionKind.DEBT:
            if self.due_on is not None or self.status is not None:
                raise ValueError("Only debts can have a due date or status")
            if self.paid_on is not None:
                raise ValueError("Only debts can have a paid date")
            return self

        if self.status is None:
            raise ValueError("Debts must have a status")
        if (self.status == DebtStatus.PAID) != (self.paid_on is not None):
            raise ValueError("Paid date must be set exactly when the debt is paid")
        return self

    @property
    def is_open_debt(self) -> bool:
        return self.kind == TransactionKind.DEBT and self.status == DebtStatus.OPEN

    @property
    def is_paid_debt(self) -> bool:
        return self.kind == TransactionKind.DEBT and self.status == DebtStatus.PAID

    @property
    def is_expense_like(self) -> bool:
        """Expenses and paid debts both took money out of the balance."""
        return self.kind == TransactionKind.EXPENSE or self.is_paid_debt

    @property
    def relevant_date(self) -> Optional[date]:
        """Date used for period reports: payment date for paid debts."""
        if self.is_paid_debt:
            return self.paid_on
        return self.occurred_on


class LedgerState(BaseModel):
    """
    The complete ledger for one user session.

    ``transactions`` keeps insertion order; it is not a sort order.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transactions: tuple[Transaction, ...] = Field(default=())
    initial_balance: float = Field(
        default=0.0,
        alias="initialBalance",
        allow_inf_nan=False,
        description="User-configured starting balance (may be negative)"
    )

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'LedgerState':
        """Transaction ids must be unique within the ledger."""
        seen = set()
        for transaction in self.transactions:
            if transaction.id in seen:
                raise ValueError(f"Duplicate transaction id: {transaction.id}")
            seen.add(transaction.id)
        return self

    def find(self, transaction_id: str) -> Optional[Transaction]:
        """Return the transaction with this id, if any."""
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None


# =============================================================================
# INTAKE MODELS
# =============================================================================

class TransactionInput(BaseModel):
    """
    Raw values from the add-transaction form.

    Everything is text, exactly as typed. Nothing here is trusted until
    the validator turns it into a Transaction.
    """

    kind: TransactionKind = TransactionKind.EXPENSE
    amount: str = ""
    occurred_on: str = ""
    description: str = ""
    category: str = ""
    due_on: str = ""


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ActionResult(BaseModel):
    """What happened when the user triggered an operation."""

    status: ActionStatus
    message: str = ""
    transaction_id: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == ActionStatus.APPLIED


# =============================================================================
# DERIVED VIEWS (recomputed on every read, never persisted)
# =============================================================================

class LedgerTotals(BaseModel):
    """
    Summary figures for the dashboard.

    ``current_balance`` ignores open debt. ``balance_with_debt`` is the
    figure used to flag the user's standing as positive or negative.
    """

    total_income: float
    total_expenses: float
    total_debt: float
    current_balance: float

    @property
    def balance_with_debt(self) -> float:
        return self.current_balance - self.total_debt

    @property
    def is_positive(self) -> bool:
        return self.balance_with_debt >= 0


class CategoryAmount(BaseModel):
    """Amount aggregated for a given category."""

    category: str
    amount: float


class LedgerReport(BaseModel):
    """Totals and category ranking for an inclusive date window."""

    label: str
    start_date: date
    end_date: date
    total_income: float
    total_expenses: float
    balance: float
    top_categories: list[CategoryAmount] = Field(default_factory=list)
    transaction_count: int = Field(ge=0)

    def category_share(self, item: CategoryAmount) -> float:
        """Percentage of the period's expenses taken by one category."""
        if self.total_expenses <= 0:
            return 0.0
        return item.amount / self.total_expenses * 100


class TimelineBucket(BaseModel):
    """Income and expense totals for a single day."""

    day: date
    income: float = 0.0
    expenses: float = 0.0


class KindShare(BaseModel):
    """One slice of the income / expenses / open debt distribution."""

    name: str
    amount: float


class DebtUrgency(BaseModel):
    """Urgency classification of an open debt."""

    bucket: UrgencyBucket
    days_until_due: int

    @property
    def magnitude(self) -> int:
        """Days overdue for overdue debts, days left otherwise."""
        return abs(self.days_until_due)


class UpcomingDebt(BaseModel):
    """An open debt paired with its urgency (None when it has no due date)."""

    transaction: Transaction
    urgency: Optional[DebtUrgency] = None
