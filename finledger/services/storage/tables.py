"""
Table-Backed Group Storage

The group store is a handful of flat tables with foreign keys between
them. Every backend we support can do four things with a table:
insert a row, replace a row by id, delete a row by id, read all rows.

DESIGN DECISION: The group operations (membership checks, ordering,
filtering) are written once here on top of those four primitives.
Backends only implement the primitives, so the in-memory store used in
tests behaves exactly like the Google Sheets store.

TRADEOFFS:
- Reads scan the whole table (fine for a group of friends)
- Filtering happens in Python, not in the backend
"""

from abc import abstractmethod
from typing import Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from finledger.models.groups import (
    ExpenseGroup,
    ExpenseSplit,
    GroupMember,
    GroupPool,
    Notification,
    PixPayment,
    PoolContribution,
    Profile,
    SharedExpense,
    utcnow,
)
from finledger.services.storage.interface import (
    DuplicateError,
    GroupStorageInterface,
    RecordNotFoundError,
)


Record = TypeVar("Record", bound=BaseModel)

# Table name -> row model. Order is the order worksheets get created in.
GROUP_TABLES: dict[str, type[BaseModel]] = {
    "profiles": Profile,
    "expense_groups": ExpenseGroup,
    "group_members": GroupMember,
    "shared_expenses": SharedExpense,
    "expense_splits": ExpenseSplit,
    "group_pools": GroupPool,
    "pool_contributions": PoolContribution,
    "pix_payments": PixPayment,
    "notifications": Notification,
}


class TableBackedGroupStorage(GroupStorageInterface):
    """Group storage written against four table primitives."""

    # -- primitives ------------------------------------------------------------

    @abstractmethod
    def _insert(self, table: str, record: BaseModel) -> None:
        pass

    @abstractmethod
    def _replace(self, table: str, record: BaseModel) -> bool:
        """Replace the row with the record's id. Returns False if absent."""
        pass

    @abstractmethod
    def _delete(self, table: str, record_id: UUID) -> bool:
        pass

    @abstractmethod
    def _rows(self, table: str, model: type[Record]) -> list[Record]:
        """All rows of a table, in insertion order."""
        pass

    # -- helpers ---------------------------------------------------------------

    def _find(self, table: str, model: type[Record], record_id: UUID) -> Optional[Record]:
        for row in self._rows(table, model):
            if row.id == record_id:
                return row
        return None

    def _update(self, table: str, record: Record) -> Record:
        if not self._replace(table, record):
            raise RecordNotFoundError(f"{table} row not found: {record.id}")
        return record

    # -- profiles --------------------------------------------------------------

    async def upsert_profile(self, profile: Profile) -> Profile:
        existing = await self.get_profile(profile.user_id)
        if existing is None:
            self._insert("profiles", profile)
            return profile

        updated = profile.model_copy(update={"id": existing.id, "updated_at": utcnow()})
        self._replace("profiles", updated)
        return updated

    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        for profile in self._rows("profiles", Profile):
            if profile.user_id == user_id:
                return profile
        return None

    # -- groups ----------------------------------------------------------------

    async def create_group(self, group: ExpenseGroup) -> ExpenseGroup:
        if self._find("expense_groups", ExpenseGroup, group.id) is not None:
            raise DuplicateError(f"Group already exists: {group.id}")
        self._insert("expense_groups", group)
        return group

    async def get_group(self, group_id: UUID) -> Optional[ExpenseGroup]:
        return self._find("expense_groups", ExpenseGroup, group_id)

    async def update_group(self, group: ExpenseGroup) -> ExpenseGroup:
        return self._update(
            "expense_groups",
            group.model_copy(update={"updated_at": utcnow()}),
        )

    async def list_groups_for_user(
        self,
        user_id: UUID,
        active_only: bool = True,
    ) -> list[ExpenseGroup]:
        group_ids = {
            member.group_id
            for member in self._rows("group_members", GroupMember)
            if member.user_id == user_id
        }
        groups = [
            group
            for group in self._rows("expense_groups", ExpenseGroup)
            if group.id in group_ids and (group.is_active or not active_only)
        ]
        groups.sort(key=lambda g: g.created_at, reverse=True)
        return groups

    # -- members ---------------------------------------------------------------

    async def add_member(self, member: GroupMember) -> GroupMember:
        for existing in await self.list_members(member.group_id):
            if existing.user_id == member.user_id:
                raise DuplicateError(
                    f"User {member.user_id} is already a member of group {member.group_id}"
                )
        self._insert("group_members", member)
        return member

    async def remove_member(self, group_id: UUID, user_id: UUID) -> bool:
        for member in await self.list_members(group_id):
            if member.user_id == user_id:
                return self._delete("group_members", member.id)
        return False

    async def list_members(self, group_id: UUID) -> list[GroupMember]:
        return [
            member
            for member in self._rows("group_members", GroupMember)
            if member.group_id == group_id
        ]

    # -- shared expenses and splits ------------------------------------------

    async def create_expense(self, expense: SharedExpense) -> SharedExpense:
        self._insert("shared_expenses", expense)
        return expense

    async def get_expense(self, expense_id: UUID) -> Optional[SharedExpense]:
        return self._find("shared_expenses", SharedExpense, expense_id)

    async def list_expenses(self, group_id: UUID) -> list[SharedExpense]:
        expenses = [
            expense
            for expense in self._rows("shared_expenses", SharedExpense)
            if expense.group_id == group_id
        ]
        expenses.sort(key=lambda e: (e.expense_date, e.created_at), reverse=True)
        return expenses

    async def create_splits(self, splits: list[ExpenseSplit]) -> list[ExpenseSplit]:
        for split in splits:
            self._insert("expense_splits", split)
        return splits

    async def get_split(self, split_id: UUID) -> Optional[ExpenseSplit]:
        return self._find("expense_splits", ExpenseSplit, split_id)

    async def update_split(self, split: ExpenseSplit) -> ExpenseSplit:
        return self._update("expense_splits", split)

    async def list_splits(self, expense_id: UUID) -> list[ExpenseSplit]:
        return [
            split
            for split in self._rows("expense_splits", ExpenseSplit)
            if split.expense_id == expense_id
        ]

    # -- pools -----------------------------------------------------------------

    async def create_pool(self, pool: GroupPool) -> GroupPool:
        self._insert("group_pools", pool)
        return pool

    async def get_pool(self, pool_id: UUID) -> Optional[GroupPool]:
        return self._find("group_pools", GroupPool, pool_id)

    async def update_pool(self, pool: GroupPool) -> GroupPool:
        return self._update(
            "group_pools",
            pool.model_copy(update={"updated_at": utcnow()}),
        )

    async def list_pools(self, group_id: UUID) -> list[GroupPool]:
        return [
            pool
            for pool in self._rows("group_pools", GroupPool)
            if pool.group_id == group_id
        ]

    async def create_contribution(
        self,
        contribution: PoolContribution,
    ) -> PoolContribution:
        self._insert("pool_contributions", contribution)
        return contribution

    async def get_contribution(
        self,
        contribution_id: UUID,
    ) -> Optional[PoolContribution]:
        return self._find("pool_contributions", PoolContribution, contribution_id)

    async def update_contribution(
        self,
        contribution: PoolContribution,
    ) -> PoolContribution:
        return self._update("pool_contributions", contribution)

    async def list_contributions(self, pool_id: UUID) -> list[PoolContribution]:
        contributions = [
            contribution
            for contribution in self._rows("pool_contributions", PoolContribution)
            if contribution.pool_id == pool_id
        ]
        contributions.sort(key=lambda c: c.created_at, reverse=True)
        return contributions

    # -- payments and notifications -------------------------------------------

    async def create_pix_payment(self, payment: PixPayment) -> PixPayment:
        self._insert("pix_payments", payment)
        return payment

    async def update_pix_payment(self, payment: PixPayment) -> PixPayment:
        return self._update("pix_payments", payment)

    async def create_notification(self, notification: Notification) -> Notification:
        self._insert("notifications", notification)
        return notification

    async def list_notifications(
        self,
        user_id: UUID,
        unread_only: bool = False,
    ) -> list[Notification]:
        notifications = [
            notification
            for notification in self._rows("notifications", Notification)
            if notification.user_id == user_id
            and not (unread_only and notification.is_read)
        ]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications

    async def mark_notification_read(self, notification_id: UUID) -> bool:
        notification = self._find("notifications", Notification, notification_id)
        if notification is None:
            return False
        return self._replace(
            "notifications",
            notification.model_copy(update={"is_read": True}),
        )
