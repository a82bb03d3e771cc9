"""
Audit Models for finledger

Every ledger mutation, rejected operation and group action is recorded.
This provides:
1. Traceability of every change to the ledger
2. Debugging information when persistence or the remote store fails
3. A history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finledger.models.groups import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Ledger mutations
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    DEBT_PAID = "debt_paid"
    INITIAL_BALANCE_SET = "initial_balance_set"
    OPERATION_REJECTED = "operation_rejected"

    # Persistence
    STATE_LOADED = "state_loaded"
    SAVE_FAILED = "save_failed"

    # Reports
    REPORT_GENERATED = "report_generated"

    # Groups
    GROUP_CREATED = "group_created"
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"
    SHARED_EXPENSE_ADDED = "shared_expense_added"
    SPLIT_PAID = "split_paid"
    POOL_CREATED = "pool_created"
    POOL_CONTRIBUTION = "pool_contribution"
    CONTRIBUTION_CONFIRMED = "contribution_confirmed"
    CONTRIBUTION_CANCELLED = "contribution_cancelled"
    PIX_PAYMENT_REQUESTED = "pix_payment_requested"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - ledger ids are opaque strings, group ids are UUIDs
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'group', 'split')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(transaction_id, "expense", 120.0)
        event = AuditEventBuilder.operation_rejected("pay_debt", transaction_id, reason)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        kind: str,
        amount: float,
        category: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{kind.capitalize()} added: {amount:.2f} ({category})",
            details={
                "kind": kind,
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        old_amount: float,
        new_amount: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Amount changed from {old_amount:.2f} to {new_amount:.2f}",
            details={
                "old_amount": old_amount,
                "new_amount": new_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        existed: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted" if existed else "Delete of unknown transaction ignored",
            details={"existed": existed},
            is_user_action=True,
        )

    @staticmethod
    def debt_paid(
        transaction_id: str,
        amount: float,
        paid_on: str,
        repaid: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAID,
            severity=AuditSeverity.WARNING if repaid else AuditSeverity.INFO,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Debt of {amount:.2f} marked paid on {paid_on}",
            details={
                "amount": amount,
                "paid_on": paid_on,
                "was_already_paid": repaid,
            },
            is_user_action=True,
        )

    @staticmethod
    def initial_balance_set(
        old_balance: float,
        new_balance: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INITIAL_BALANCE_SET,
            entity_type="ledger",
            description=f"Initial balance changed from {old_balance:.2f} to {new_balance:.2f}",
            details={
                "old_balance": old_balance,
                "new_balance": new_balance,
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        entity_id: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=entity_id,
            description=f"Operation '{operation}' rejected",
            details={
                "operation": operation,
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def state_loaded(
        transaction_count: int,
        dropped_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            severity=AuditSeverity.WARNING if dropped_count else AuditSeverity.INFO,
            entity_type="ledger",
            description=f"Ledger loaded with {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
                "dropped_count": dropped_count,
            },
        )

    @staticmethod
    def save_failed(
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            description="Ledger could not be persisted; in-memory state kept",
            error_message=error_message,
        )

    @staticmethod
    def report_generated(
        label: str,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            entity_type="report",
            description=f"Report generated: {label}",
            details={
                "label": label,
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def group_created(
        group_id: UUID,
        name: str,
        created_by: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=str(group_id),
            description=f"Group created: {name}",
            details={"created_by": str(created_by)},
            is_user_action=True,
        )

    @staticmethod
    def member_joined(
        group_id: UUID,
        user_id: UUID,
        role: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_JOINED,
            entity_type="group",
            entity_id=str(group_id),
            description=f"User joined group as {role}",
            details={"user_id": str(user_id), "role": role},
            is_user_action=True,
        )

    @staticmethod
    def member_left(
        group_id: UUID,
        user_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_LEFT,
            entity_type="group",
            entity_id=str(group_id),
            description="User left group",
            details={"user_id": str(user_id)},
            is_user_action=True,
        )

    @staticmethod
    def shared_expense_added(
        expense_id: UUID,
        group_id: UUID,
        amount: str,
        split_type: str,
        split_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARED_EXPENSE_ADDED,
            entity_type="shared_expense",
            entity_id=str(expense_id),
            description=f"Shared expense of {amount} split {split_type} between {split_count}",
            details={
                "group_id": str(group_id),
                "amount": amount,
                "split_type": split_type,
                "split_count": split_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def split_paid(
        split_id: UUID,
        user_id: UUID,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_PAID,
            entity_type="split",
            entity_id=str(split_id),
            description=f"Split of {amount} marked paid",
            details={"user_id": str(user_id), "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def pool_created(
        pool_id: UUID,
        group_id: UUID,
        name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POOL_CREATED,
            entity_type="pool",
            entity_id=str(pool_id),
            description=f"Pool created: {name}",
            details={"group_id": str(group_id)},
            is_user_action=True,
        )

    @staticmethod
    def pool_contribution(
        contribution_id: UUID,
        pool_id: UUID,
        amount: str,
        status: str,
    ) -> AuditEvent:
        event_type = {
            "confirmed": AuditEventType.CONTRIBUTION_CONFIRMED,
            "cancelled": AuditEventType.CONTRIBUTION_CANCELLED,
        }.get(status, AuditEventType.POOL_CONTRIBUTION)
        return AuditEvent(
            event_type=event_type,
            entity_type="pool_contribution",
            entity_id=str(contribution_id),
            description=f"Pool contribution of {amount} is {status}",
            details={"pool_id": str(pool_id), "amount": amount, "status": status},
            is_user_action=True,
        )

    @staticmethod
    def pix_payment_requested(
        payment_id: UUID,
        payer_id: UUID,
        receiver_id: UUID,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PIX_PAYMENT_REQUESTED,
            entity_type="pix_payment",
            entity_id=str(payment_id),
            description=f"PIX payment of {amount} requested",
            details={
                "payer_id": str(payer_id),
                "receiver_id": str(receiver_id),
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
        )
