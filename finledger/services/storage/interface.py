"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep the ledger on local disk and the groups in a remote store
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later
4. Keep business logic decoupled from storage implementation

The ledger needs only a key-value store holding one JSON blob.
The group feature needs a small set of table operations.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finledger.models.audit import AuditEvent
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
)


class KeyValueStore(ABC):
    """
    Abstract string key-value store (the local blob storage).

    Implementations are synchronous: ledger operations run to completion
    before the next user event is handled.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored text, or None if the key is absent

        Raises:
            PersistenceError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing whatever was there (no merge).

        Raises:
            PersistenceError: If the backend cannot be written
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class GroupStorageInterface(ABC):
    """
    Abstract interface for the remote group store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. They are async because the real
    backends sit behind a network.
    """

    # -- profiles ------------------------------------------------------------

    @abstractmethod
    async def upsert_profile(self, profile: Profile) -> Profile:
        """Create the user's profile or replace the existing one."""
        pass

    @abstractmethod
    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        pass

    # -- groups ----------------------------------------------------------------

    @abstractmethod
    async def create_group(self, group: ExpenseGroup) -> ExpenseGroup:
        pass

    @abstractmethod
    async def get_group(self, group_id: UUID) -> Optional[ExpenseGroup]:
        pass

    @abstractmethod
    async def update_group(self, group: ExpenseGroup) -> ExpenseGroup:
        """
        Raises:
            RecordNotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def list_groups_for_user(
        self,
        user_id: UUID,
        active_only: bool = True,
    ) -> list[ExpenseGroup]:
        """
        List groups the user is a member of.

        Returns:
            Groups ordered newest first
        """
        pass

    # -- members ---------------------------------------------------------------

    @abstractmethod
    async def add_member(self, member: GroupMember) -> GroupMember:
        """
        Raises:
            DuplicateError: If the user is already in the group
        """
        pass

    @abstractmethod
    async def remove_member(self, group_id: UUID, user_id: UUID) -> bool:
        """
        Returns:
            True if a membership was removed
        """
        pass

    @abstractmethod
    async def list_members(self, group_id: UUID) -> list[GroupMember]:
        pass

    # -- shared expenses and splits ------------------------------------------

    @abstractmethod
    async def create_expense(self, expense: SharedExpense) -> SharedExpense:
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[SharedExpense]:
        pass

    @abstractmethod
    async def list_expenses(self, group_id: UUID) -> list[SharedExpense]:
        """
        Returns:
            Expenses ordered by expense date, newest first
        """
        pass

    @abstractmethod
    async def create_splits(self, splits: list[ExpenseSplit]) -> list[ExpenseSplit]:
        pass

    @abstractmethod
    async def get_split(self, split_id: UUID) -> Optional[ExpenseSplit]:
        pass

    @abstractmethod
    async def update_split(self, split: ExpenseSplit) -> ExpenseSplit:
        """
        Raises:
            RecordNotFoundError: If the split doesn't exist
        """
        pass

    @abstractmethod
    async def list_splits(self, expense_id: UUID) -> list[ExpenseSplit]:
        pass

    # -- pools -----------------------------------------------------------------

    @abstractmethod
    async def create_pool(self, pool: GroupPool) -> GroupPool:
        pass

    @abstractmethod
    async def get_pool(self, pool_id: UUID) -> Optional[GroupPool]:
        pass

    @abstractmethod
    async def update_pool(self, pool: GroupPool) -> GroupPool:
        pass

    @abstractmethod
    async def list_pools(self, group_id: UUID) -> list[GroupPool]:
        pass

    @abstractmethod
    async def create_contribution(
        self,
        contribution: PoolContribution,
    ) -> PoolContribution:
        pass

    @abstractmethod
    async def get_contribution(
        self,
        contribution_id: UUID,
    ) -> Optional[PoolContribution]:
        pass

    @abstractmethod
    async def update_contribution(
        self,
        contribution: PoolContribution,
    ) -> PoolContribution:
        pass

    @abstractmethod
    async def list_contributions(self, pool_id: UUID) -> list[PoolContribution]:
        pass

    # -- payments and notifications -------------------------------------------

    @abstractmethod
    async def create_pix_payment(self, payment: PixPayment) -> PixPayment:
        pass

    @abstractmethod
    async def update_pix_payment(self, payment: PixPayment) -> PixPayment:
        pass

    @abstractmethod
    async def create_notification(self, notification: Notification) -> Notification:
        pass

    @abstractmethod
    async def list_notifications(
        self,
        user_id: UUID,
        unread_only: bool = False,
    ) -> list[Notification]:
        """
        Returns:
            Notifications ordered newest first
        """
        pass

    @abstractmethod
    async def mark_notification_read(self, notification_id: UUID) -> bool:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class PersistenceError(StorageError):
    """Reading or writing the local blob store failed."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
