"""
Shared Group Models for finledger

These models mirror the tables of the remote group store:
profiles, groups, members, shared expenses, splits, pools,
pool contributions, PIX payments and notifications.

DESIGN DECISION: Money in the group domain is Decimal, always rounded
to cents. Splitting 100.00 three ways must add back up to exactly 100.00,
which floats cannot promise.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from finledger.models.ledger import DEFAULT_CATEGORY


def utcnow() -> datetime:
    """Timezone-aware current time (UTC)."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class GroupType(str, Enum):
    """What the group is for."""
    TRAVEL = "travel"
    PARTY = "party"
    GATHERING = "gathering"
    HOUSE = "house"
    OTHER = "other"


class MemberRole(str, Enum):
    """Role of a user inside a group."""
    ADMIN = "admin"
    MEMBER = "member"


class SplitType(str, Enum):
    """
    How a shared expense is divided.

    EQUAL: same share for every member
    PERCENTAGE: each member gets a percentage (must sum to 100)
    CUSTOM: each member gets an explicit amount (must sum to the total)
    """
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    CUSTOM = "custom"


class ContributionStatus(str, Enum):
    """Pool contribution status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PixPaymentStatus(str, Enum):
    """PIX payment status."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    """Kinds of notifications sent to group members."""
    EXPENSE_ADDED = "expense_added"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    GROUP_INVITE = "group_invite"
    POOL_CONTRIBUTION = "pool_contribution"


# =============================================================================
# TABLE MODELS
# =============================================================================

class Profile(BaseModel):
    """Public profile of a user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=30)
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ExpenseGroup(BaseModel):
    """A group of people sharing expenses."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    created_by: UUID
    group_type: GroupType = GroupType.OTHER
    total_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class GroupMember(BaseModel):
    """Membership of a user in a group."""

    id: UUID = Field(default_factory=uuid4)
    group_id: UUID
    user_id: UUID
    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime = Field(default_factory=utcnow)


class SharedExpense(BaseModel):
    """An expense paid by one member on behalf of the group."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    group_id: UUID
    paid_by: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    expense_date: date
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1, max_length=100)
    receipt_url: Optional[str] = None
    split_type: SplitType = SplitType.EQUAL
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ExpenseSplit(BaseModel):
    """One member's share of a shared expense."""

    id: UUID = Field(default_factory=uuid4)
    expense_id: UUID
    user_id: UUID
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    is_paid: bool = False
    paid_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_paid_at(self) -> 'ExpenseSplit':
        """A payment time only makes sense on a paid split."""
        if self.paid_at is not None and not self.is_paid:
            raise ValueError("Unpaid split cannot have a payment time")
        return self


class GroupPool(BaseModel):
    """A money box the group contributes to."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    group_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    target_amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def progress(self) -> Optional[float]:
        """Fraction of the target reached (None without a target)."""
        if not self.target_amount:
            return None
        return float(self.current_amount / self.target_amount)


class PoolContribution(BaseModel):
    """Money a member put (or promised to put) into a pool."""

    id: UUID = Field(default_factory=uuid4)
    pool_id: UUID
    user_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    contribution_date: date
    payment_method: str = Field(default="pix", min_length=1, max_length=30)
    pix_key: Optional[str] = Field(default=None, max_length=77)
    status: ContributionStatus = ContributionStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)


class PixPayment(BaseModel):
    """A PIX transfer settling a split or funding a contribution."""

    id: UUID = Field(default_factory=uuid4)
    expense_split_id: Optional[UUID] = None
    pool_contribution_id: Optional[UUID] = None
    payer_id: UUID
    receiver_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    pix_key: str = Field(..., min_length=1, max_length=77)
    payment_status: PixPaymentStatus = PixPaymentStatus.PENDING
    transaction_id: Optional[str] = Field(default=None, max_length=25)
    payment_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_target(self) -> 'PixPayment':
        """A payment must settle something."""
        if self.expense_split_id is None and self.pool_contribution_id is None:
            raise ValueError("PIX payment must reference a split or a contribution")
        return self


class Notification(BaseModel):
    """An in-app notification for a user."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., max_length=1000)
    is_read: bool = False
    related_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class GroupTotals(BaseModel):
    """Spending figures for a group, from one member's point of view."""

    total_spent: Decimal
    my_total: Decimal
    expense_count: int = Field(ge=0)


class MemberBalance(BaseModel):
    """
    Outstanding money for one member, counting only unpaid splits.

    Positive ``net`` means the group owes this member money.
    """

    user_id: UUID
    to_receive: Decimal = Decimal("0")
    owes: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.to_receive - self.owes


class GroupOverview(BaseModel):
    """Everything the group detail page needs."""

    group: ExpenseGroup
    members: list[GroupMember] = Field(default_factory=list)
    expenses: list[SharedExpense] = Field(default_factory=list)
    totals: GroupTotals
    balances: list[MemberBalance] = Field(default_factory=list)
    is_admin: bool = False
