"""
Data Models Package

This package contains all Pydantic models used in finledger.
All data flowing through the system must conform to these schemas.
"""

from finledger.models.ledger import (
    DEFAULT_CATEGORY,
    ActionResult,
    ActionStatus,
    CategoryAmount,
    DebtStatus,
    DebtUrgency,
    KindShare,
    LedgerReport,
    LedgerState,
    LedgerTotals,
    TimelineBucket,
    Transaction,
    TransactionInput,
    TransactionKind,
    UpcomingDebt,
    UrgencyBucket,
    ValidationIssue,
)
from finledger.models.groups import (
    ContributionStatus,
    ExpenseGroup,
    ExpenseSplit,
    GroupMember,
    GroupOverview,
    GroupPool,
    GroupTotals,
    GroupType,
    MemberBalance,
    MemberRole,
    Notification,
    NotificationType,
    PixPayment,
    PixPaymentStatus,
    PoolContribution,
    Profile,
    SharedExpense,
    SplitType,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORY",
    "ActionResult",
    "ActionStatus",
    "CategoryAmount",
    "DebtStatus",
    "DebtUrgency",
    "KindShare",
    "LedgerReport",
    "LedgerState",
    "LedgerTotals",
    "TimelineBucket",
    "Transaction",
    "TransactionInput",
    "TransactionKind",
    "UpcomingDebt",
    "UrgencyBucket",
    "ValidationIssue",
    # Group models
    "ContributionStatus",
    "ExpenseGroup",
    "ExpenseSplit",
    "GroupMember",
    "GroupOverview",
    "GroupPool",
    "GroupTotals",
    "GroupType",
    "MemberBalance",
    "MemberRole",
    "Notification",
    "NotificationType",
    "PixPayment",
    "PixPaymentStatus",
    "PoolContribution",
    "Profile",
    "SharedExpense",
    "SplitType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
