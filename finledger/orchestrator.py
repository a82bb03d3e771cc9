"""
Main Orchestrator for finledger

This module ties together all the components and defines the
end-to-end flows for:
1. The personal ledger (form/prompt → validate → reduce → persist → audit)
2. Shared groups (request → validate → remote store → notify → audit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Bad input and unknown ids never change the ledger
- Every mutation is written through to storage
- A failed save never fails the operation (the session state stays)
- Every step is audited

The ledger flow owns the session state explicitly. The UI holds one
LedgerFlow and reads every view from it; nothing else keeps a copy.
"""

import functools
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from finledger.audit import AuditLogger
from finledger.config import LedgerSettings, get_settings
from finledger.errors import LedgerError, ValidationError
from finledger.groups import (
    build_pix_payload,
    build_splits,
    group_totals,
    member_balances,
    to_money,
)
from finledger.ledger import (
    AutoSaver,
    FormDraftStore,
    LedgerStore,
    add_transaction,
    breakdown_by_category,
    compute_totals,
    custom_range_label,
    kind_distribution,
    mark_debt_paid,
    month_range,
    remove_transaction,
    set_initial_balance,
    sort_for_display,
    timeline_buckets,
    top_categories,
    update_amount,
    upcoming_debts,
    week_range,
    windowed_report,
)
from finledger.models.audit import AuditEventBuilder
from finledger.models.groups import (
    ContributionStatus,
    ExpenseGroup,
    ExpenseSplit,
    GroupMember,
    GroupOverview,
    GroupPool,
    GroupType,
    MemberRole,
    Notification,
    NotificationType,
    PixPayment,
    PoolContribution,
    Profile,
    SharedExpense,
    SplitType,
    utcnow,
)
from finledger.models.ledger import (
    ActionResult,
    ActionStatus,
    CategoryAmount,
    KindShare,
    LedgerReport,
    LedgerState,
    LedgerTotals,
    TimelineBucket,
    Transaction,
    TransactionInput,
    UpcomingDebt,
)
from finledger.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStorage,
    GroupStorageInterface,
    InMemoryGroupStorage,
    JsonFileKeyValueStore,
    RecordNotFoundError,
    StorageError,
)
from finledger.validation import TransactionValidator, parse_iso_date


logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates the single-user ledger.

    Every mutation returns an ActionResult:
    - APPLIED: state replaced and written through
    - CANCELLED: the user dismissed the prompt, nothing happened
    - REJECTED: bad input or unknown id, nothing changed

    Prompt values arrive as text (or None for "cancelled"); how they
    were collected is the UI's business.
    """

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        autosaver: Optional[AutoSaver] = None,
        drafts: Optional[FormDraftStore] = None,
        today: Callable[[], date] = date.today,
    ):
        self._settings = settings or get_settings().ledger
        self._store = store
        self._validator = validator or TransactionValidator(self._settings)
        self._audit_logger = audit_logger or AuditLogger()
        self._autosaver = autosaver or AutoSaver(store, interval_seconds=0)
        self._drafts = drafts
        self._today = today
        self._state = LedgerState()

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def autosaver(self) -> AutoSaver:
        return self._autosaver

    @property
    def drafts(self) -> Optional[FormDraftStore]:
        return self._drafts

    # -- lifecycle ---------------------------------------------------------------

    def load(self) -> LedgerState:
        """Load the persisted ledger (empty on any failure) and start tracking it."""
        self._state = self._store.load(today=self._today())
        self._autosaver.mark_clean(self._state)
        self._audit_logger.log(AuditEventBuilder.state_loaded(
            transaction_count=len(self._state.transactions),
            dropped_count=self._store.last_dropped_count,
        ))
        return self._state

    def _commit(self, state: LedgerState) -> None:
        """Replace the session state and write it through."""
        self._state = state
        if not self._autosaver.track(state):
            self._audit_logger.log(AuditEventBuilder.save_failed(
                self._autosaver.last_error or "unknown error"
            ))

    def _reject(
        self,
        operation: str,
        error: LedgerError,
        transaction_id: Optional[str] = None,
    ) -> ActionResult:
        self._audit_logger.log(AuditEventBuilder.operation_rejected(
            operation=operation,
            entity_id=transaction_id,
            reason=error.user_message,
        ))
        return ActionResult(
            status=ActionStatus.REJECTED,
            message=error.user_message,
            transaction_id=transaction_id,
            issues=getattr(error, "issues", []),
        )

    # -- mutations ---------------------------------------------------------------

    def add_transaction(self, data: TransactionInput) -> ActionResult:
        """Validate the form and append a new transaction."""
        try:
            state = add_transaction(self._state, data, validator=self._validator)
        except ValidationError as e:
            return self._reject("add_transaction", e)

        transaction = state.transactions[-1]
        self._commit(state)
        if self._drafts is not None:
            self._drafts.clear_draft()

        self._audit_logger.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction.id,
            kind=transaction.kind.value,
            amount=transaction.amount,
            category=transaction.category,
        ))
        return ActionResult(
            status=ActionStatus.APPLIED,
            message=f"{transaction.kind.value.capitalize()} added.",
            transaction_id=transaction.id,
        )

    def pay_debt(self, transaction_id: str, raw_paid_on: Optional[str]) -> ActionResult:
        """
        Mark a debt paid on the date the user typed.

        ``raw_paid_on`` is the prompt answer; None means cancelled.
        """
        try:
            paid_on = self._validator.parse_payment_date(raw_paid_on)
            if paid_on is None:
                return ActionResult(status=ActionStatus.CANCELLED, transaction_id=transaction_id)
            previous = self._state.find(transaction_id)
            state = mark_debt_paid(self._state, transaction_id, paid_on)
        except LedgerError as e:
            return self._reject("pay_debt", e, transaction_id)

        self._commit(state)
        self._audit_logger.log(AuditEventBuilder.debt_paid(
            transaction_id=transaction_id,
            amount=previous.amount,
            paid_on=paid_on.isoformat(),
            repaid=previous.is_paid_debt,
        ))
        return ActionResult(
            status=ActionStatus.APPLIED,
            message="Debt marked as paid.",
            transaction_id=transaction_id,
        )

    def edit_amount(self, transaction_id: str, raw_amount: Optional[str]) -> ActionResult:
        """
        Replace a transaction's amount with the value the user typed.

        ``raw_amount`` is the prompt answer; None means cancelled.
        """
        try:
            new_amount = self._validator.parse_amount_prompt(raw_amount)
            if new_amount is None:
                return ActionResult(status=ActionStatus.CANCELLED, transaction_id=transaction_id)
            previous = self._state.find(transaction_id)
            state = update_amount(self._state, transaction_id, new_amount)
        except LedgerError as e:
            return self._reject("edit_amount", e, transaction_id)

        self._commit(state)
        self._audit_logger.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            old_amount=previous.amount,
            new_amount=new_amount,
        ))
        return ActionResult(
            status=ActionStatus.APPLIED,
            message="Amount updated.",
            transaction_id=transaction_id,
        )

    def delete_transaction(self, transaction_id: str) -> ActionResult:
        """Remove a transaction. Deleting an unknown id is a harmless no-op."""
        existed = self._state.find(transaction_id) is not None
        self._commit(remove_transaction(self._state, transaction_id))
        self._audit_logger.log(AuditEventBuilder.transaction_deleted(transaction_id, existed))
        return ActionResult(
            status=ActionStatus.APPLIED,
            message="Transaction deleted." if existed else "Nothing to delete.",
            transaction_id=transaction_id,
        )

    def set_initial_balance(self, amount: float) -> ActionResult:
        old_balance = self._state.initial_balance
        try:
            state = set_initial_balance(self._state, amount)
        except ValidationError as e:
            return self._reject("set_initial_balance", e)

        self._commit(state)
        self._audit_logger.log(AuditEventBuilder.initial_balance_set(old_balance, state.initial_balance))
        return ActionResult(status=ActionStatus.APPLIED, message="Initial balance updated.")

    # -- views -------------------------------------------------------------------

    def totals(self) -> LedgerTotals:
        return compute_totals(self._state.transactions, self._state.initial_balance)

    def transactions_for_display(self) -> list[Transaction]:
        return sort_for_display(self._state.transactions)

    def upcoming_debts(self) -> list[UpcomingDebt]:
        return upcoming_debts(
            self._state.transactions,
            today=self._today(),
            limit=self._settings.upcoming_debts_limit,
            due_soon_days=self._settings.due_soon_days,
        )

    def timeline(self) -> list[TimelineBucket]:
        return timeline_buckets(
            self._state.transactions,
            days=self._settings.timeline_days,
            today=self._today(),
        )

    def category_chart(self) -> list[CategoryAmount]:
        return top_categories(
            breakdown_by_category(self._state.transactions),
            self._settings.chart_top_categories,
        )

    def kind_distribution(self) -> list[KindShare]:
        return kind_distribution(self._state.transactions)

    def _report(self, start: date, end: date, label: str) -> LedgerReport:
        report = windowed_report(
            self._state.transactions,
            start,
            end,
            label,
            top_n=self._settings.report_top_categories,
        )
        self._audit_logger.log(AuditEventBuilder.report_generated(label, report.transaction_count))
        return report

    def report_week(self) -> LedgerReport:
        return self._report(*week_range(self._today()))

    def report_month(self) -> LedgerReport:
        return self._report(*month_range(self._today()))

    def report_custom(
        self,
        raw_start: str,
        raw_end: str,
    ) -> tuple[Optional[LedgerReport], ActionResult]:
        """
        Report for a user-chosen window.

        Returns: (report or None, result). A start after the end is
        rejected and produces no report.
        """
        try:
            start = parse_iso_date(raw_start, "start_date")
            end = parse_iso_date(raw_end, "end_date")
            report = self._report(start, end, custom_range_label(start, end))
        except ValidationError as e:
            return None, self._reject("report_custom", e)
        return report, ActionResult(status=ActionStatus.APPLIED, message=report.label)


def _audit_storage_failures(method):
    """Record remote store outages before letting them propagate."""
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except (RecordNotFoundError, DuplicateError):
            raise
        except StorageError as e:
            self._audit_logger.log_external_service_error("group_storage", str(e))
            raise
    return wrapper


class GroupFlow:
    """
    Orchestrates shared groups over a GroupStorageInterface.

    Raises ValidationError for bad input, RecordNotFoundError for unknown
    ids and DuplicateError for repeated joins; ``describe_error`` turns
    any of them into the message the UI shows.
    """

    def __init__(
        self,
        storage: GroupStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        merchant_name: Optional[str] = None,
        merchant_city: Optional[str] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        if merchant_name is None or merchant_city is None:
            app_settings = get_settings().app
            merchant_name = merchant_name or app_settings.merchant_name
            merchant_city = merchant_city or app_settings.merchant_city
        self._merchant_name = merchant_name
        self._merchant_city = merchant_city

    @staticmethod
    def describe_error(error: Exception) -> str:
        """User-facing message for an error raised by this flow."""
        if isinstance(error, LedgerError):
            return error.user_message
        if isinstance(error, DuplicateError):
            return "You are already a member of this group."
        if isinstance(error, RecordNotFoundError):
            return "That item no longer exists."
        if isinstance(error, StorageError):
            return "The shared store is unavailable right now. Please try again."
        return "Something went wrong."

    async def _require_group(self, group_id: UUID) -> ExpenseGroup:
        group = await self._storage.get_group(group_id)
        if group is None:
            raise RecordNotFoundError(f"Group not found: {group_id}")
        return group

    async def _notify(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[UUID] = None,
    ) -> None:
        await self._storage.create_notification(Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            related_id=related_id,
        ))

    # -- profiles and groups -----------------------------------------------------

    @_audit_storage_failures
    async def ensure_profile(
        self,
        user_id: UUID,
        full_name: str,
        phone: Optional[str] = None,
    ) -> Profile:
        if not full_name.strip():
            raise ValidationError.single("full_name", "missing", "Enter your name.")
        return await self._storage.upsert_profile(
            Profile(user_id=user_id, full_name=full_name, phone=phone)
        )

    @_audit_storage_failures
    async def create_group(
        self,
        creator_id: UUID,
        name: str,
        description: Optional[str] = None,
        group_type: GroupType = GroupType.OTHER,
    ) -> ExpenseGroup:
        """Create a group; the creator joins it as admin."""
        if not name.strip():
            raise ValidationError.single("name", "missing", "Enter a group name.")

        group = await self._storage.create_group(ExpenseGroup(
            name=name,
            description=(description or "").strip() or None,
            created_by=creator_id,
            group_type=group_type,
        ))
        await self._storage.add_member(GroupMember(
            group_id=group.id,
            user_id=creator_id,
            role=MemberRole.ADMIN,
        ))

        self._audit_logger.log(AuditEventBuilder.group_created(group.id, group.name, creator_id))
        self._audit_logger.log(AuditEventBuilder.member_joined(group.id, creator_id, MemberRole.ADMIN.value))
        return group

    @_audit_storage_failures
    async def join_group(self, group_id: UUID, user_id: UUID) -> GroupMember:
        """
        Raises:
            RecordNotFoundError: Unknown group
            DuplicateError: Already a member
        """
        await self._require_group(group_id)
        member = await self._storage.add_member(GroupMember(group_id=group_id, user_id=user_id))
        self._audit_logger.log(AuditEventBuilder.member_joined(group_id, user_id, member.role.value))
        return member

    @_audit_storage_failures
    async def leave_group(self, group_id: UUID, user_id: UUID) -> bool:
        removed = await self._storage.remove_member(group_id, user_id)
        if removed:
            self._audit_logger.log(AuditEventBuilder.member_left(group_id, user_id))
        return removed

    @_audit_storage_failures
    async def list_groups(self, user_id: UUID) -> list[ExpenseGroup]:
        return await self._storage.list_groups_for_user(user_id)

    @_audit_storage_failures
    async def group_overview(self, group_id: UUID, user_id: UUID) -> GroupOverview:
        group = await self._require_group(group_id)
        members = await self._storage.list_members(group_id)
        expenses = await self._storage.list_expenses(group_id)

        splits: list[ExpenseSplit] = []
        for expense in expenses:
            splits.extend(await self._storage.list_splits(expense.id))

        return GroupOverview(
            group=group,
            members=members,
            expenses=expenses,
            totals=group_totals(expenses, user_id),
            balances=member_balances(expenses, splits, [m.user_id for m in members]),
            is_admin=any(
                m.user_id == user_id and m.role == MemberRole.ADMIN for m in members
            ),
        )

    # -- shared expenses ---------------------------------------------------------

    @_audit_storage_failures
    async def expense_splits(self, expense_id: UUID) -> list[ExpenseSplit]:
        return await self._storage.list_splits(expense_id)

    @_audit_storage_failures
    async def add_shared_expense(
        self,
        group_id: UUID,
        payer_id: UUID,
        title: str,
        amount: Decimal,
        expense_date: date,
        category: str = "",
        split_type: SplitType = SplitType.EQUAL,
        shares: Optional[dict[UUID, Decimal]] = None,
        description: Optional[str] = None,
    ) -> tuple[SharedExpense, list[ExpenseSplit]]:
        """
        Record an expense the payer covered for the group and split it.

        Every other member in the split is notified.
        """
        group = await self._require_group(group_id)
        members = await self._storage.list_members(group_id)
        member_ids = [m.user_id for m in members]

        if payer_id not in member_ids:
            raise ValidationError.single("paid_by", "invalid_value", "Only group members can add expenses.")
        if not title.strip():
            raise ValidationError.single("title", "missing", "Enter a title.")
        if amount is None or amount <= 0:
            raise ValidationError.single("amount", "invalid_value", "Amount must be greater than zero.")

        expense = SharedExpense(
            group_id=group_id,
            paid_by=payer_id,
            title=title,
            description=(description or "").strip() or None,
            amount=to_money(amount),
            expense_date=expense_date,
            category=category.strip() or get_settings().ledger.default_category,
            split_type=split_type,
        )
        splits = build_splits(expense, member_ids, shares)

        await self._storage.create_expense(expense)
        await self._storage.create_splits(splits)
        await self._storage.update_group(
            group.model_copy(update={"total_amount": group.total_amount + expense.amount})
        )

        for split in splits:
            if split.user_id != payer_id:
                await self._notify(
                    split.user_id,
                    NotificationType.EXPENSE_ADDED,
                    f"New expense in {group.name}",
                    f"{expense.title}: your share is {split.amount}",
                    related_id=split.id,
                )

        self._audit_logger.log(AuditEventBuilder.shared_expense_added(
            expense_id=expense.id,
            group_id=group_id,
            amount=str(expense.amount),
            split_type=split_type.value,
            split_count=len(splits),
        ))
        return expense, splits

    @_audit_storage_failures
    async def mark_split_paid(self, split_id: UUID) -> ExpenseSplit:
        """Settle a split and tell the payer. Settling twice changes nothing."""
        split = await self._storage.get_split(split_id)
        if split is None:
            raise RecordNotFoundError(f"Split not found: {split_id}")
        if split.is_paid:
            return split

        paid = await self._storage.update_split(
            split.model_copy(update={"is_paid": True, "paid_at": utcnow()})
        )

        expense = await self._storage.get_expense(split.expense_id)
        if expense is not None:
            await self._notify(
                expense.paid_by,
                NotificationType.PAYMENT_CONFIRMED,
                "Payment confirmed",
                f"{expense.title}: {split.amount} was paid",
                related_id=split.id,
            )

        self._audit_logger.log(AuditEventBuilder.split_paid(split.id, split.user_id, str(split.amount)))
        return paid

    @_audit_storage_failures
    async def request_split_payment(
        self,
        split_id: UUID,
        pix_key: str,
    ) -> tuple[PixPayment, str]:
        """
        Create a pending PIX payment for an unpaid split.

        Returns: (payment, BR Code payload to show as QR / copy-paste)
        """
        split = await self._storage.get_split(split_id)
        if split is None:
            raise RecordNotFoundError(f"Split not found: {split_id}")
        if split.is_paid:
            raise ValidationError.single("split", "already_paid", "This share is already paid.")
        expense = await self._storage.get_expense(split.expense_id)
        if expense is None:
            raise RecordNotFoundError(f"Expense not found: {split.expense_id}")

        if not pix_key.strip():
            raise ValidationError.single("pix_key", "missing", "Enter a PIX key.")

        payment = PixPayment(
            expense_split_id=split.id,
            payer_id=split.user_id,
            receiver_id=expense.paid_by,
            amount=split.amount,
            pix_key=pix_key.strip(),
        )
        payment = payment.model_copy(update={"transaction_id": payment.id.hex[:25]})
        payload = build_pix_payload(
            pix_key=pix_key,
            merchant_name=self._merchant_name,
            merchant_city=self._merchant_city,
            amount=split.amount,
            txid=payment.transaction_id,
            description=expense.title[:40],
        )

        await self._storage.create_pix_payment(payment)
        await self._notify(
            split.user_id,
            NotificationType.PAYMENT_PENDING,
            "Payment pending",
            f"{expense.title}: pay {split.amount} via PIX",
            related_id=split.id,
        )
        self._audit_logger.log(AuditEventBuilder.pix_payment_requested(
            payment.id, payment.payer_id, payment.receiver_id, str(payment.amount)
        ))
        return payment, payload

    # -- pools -------------------------------------------------------------------

    @_audit_storage_failures
    async def pools(self, group_id: UUID) -> list[tuple[GroupPool, list[PoolContribution]]]:
        """Each pool of the group with its contributions."""
        result = []
        for pool in await self._storage.list_pools(group_id):
            result.append((pool, await self._storage.list_contributions(pool.id)))
        return result

    @_audit_storage_failures
    async def create_pool(
        self,
        group_id: UUID,
        name: str,
        target_amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> GroupPool:
        await self._require_group(group_id)
        if not name.strip():
            raise ValidationError.single("name", "missing", "Enter a pool name.")
        if target_amount is not None and target_amount <= 0:
            raise ValidationError.single("target_amount", "invalid_value", "Target must be greater than zero.")

        pool = await self._storage.create_pool(GroupPool(
            group_id=group_id,
            name=name,
            description=(description or "").strip() or None,
            target_amount=to_money(target_amount) if target_amount is not None else None,
        ))
        self._audit_logger.log(AuditEventBuilder.pool_created(pool.id, group_id, pool.name))
        return pool

    @_audit_storage_failures
    async def contribute(
        self,
        pool_id: UUID,
        user_id: UUID,
        amount: Decimal,
        payment_method: str = "pix",
        pix_key: Optional[str] = None,
        contribution_date: Optional[date] = None,
    ) -> PoolContribution:
        """Record a pending contribution; the pool total moves on confirmation."""
        pool = await self._storage.get_pool(pool_id)
        if pool is None:
            raise RecordNotFoundError(f"Pool not found: {pool_id}")
        if not pool.is_active:
            raise ValidationError.single("pool", "inactive", "This pool is closed.")
        if amount is None or amount <= 0:
            raise ValidationError.single("amount", "invalid_value", "Amount must be greater than zero.")

        contribution = await self._storage.create_contribution(PoolContribution(
            pool_id=pool_id,
            user_id=user_id,
            amount=to_money(amount),
            contribution_date=contribution_date or date.today(),
            payment_method=payment_method,
            pix_key=pix_key or None,
        ))
        self._audit_logger.log(AuditEventBuilder.pool_contribution(
            contribution.id, pool_id, str(contribution.amount), contribution.status.value
        ))
        return contribution

    async def _settle_contribution(
        self,
        contribution_id: UUID,
        status: ContributionStatus,
    ) -> PoolContribution:
        contribution = await self._storage.get_contribution(contribution_id)
        if contribution is None:
            raise RecordNotFoundError(f"Contribution not found: {contribution_id}")
        if contribution.status != ContributionStatus.PENDING:
            raise ValidationError.single(
                "status",
                "invalid_transition",
                f"Contribution is already {contribution.status.value}.",
            )

        if status == ContributionStatus.CONFIRMED:
            pool = await self._storage.get_pool(contribution.pool_id)
            if pool is None:
                raise RecordNotFoundError(f"Pool not found: {contribution.pool_id}")
            await self._storage.update_pool(pool.model_copy(update={
                "current_amount": pool.current_amount + contribution.amount
            }))

        settled = await self._storage.update_contribution(
            contribution.model_copy(update={"status": status})
        )
        self._audit_logger.log(AuditEventBuilder.pool_contribution(
            settled.id, settled.pool_id, str(settled.amount), status.value
        ))
        return settled

    @_audit_storage_failures
    async def confirm_contribution(self, contribution_id: UUID) -> PoolContribution:
        return await self._settle_contribution(contribution_id, ContributionStatus.CONFIRMED)

    @_audit_storage_failures
    async def cancel_contribution(self, contribution_id: UUID) -> PoolContribution:
        return await self._settle_contribution(contribution_id, ContributionStatus.CANCELLED)

    # -- notifications -----------------------------------------------------------

    @_audit_storage_failures
    async def notifications(self, user_id: UUID, unread_only: bool = False) -> list[Notification]:
        return await self._storage.list_notifications(user_id, unread_only)

    @_audit_storage_failures
    async def mark_notification_read(self, notification_id: UUID) -> bool:
        return await self._storage.mark_notification_read(notification_id)


def create_app_components(
    use_remote_storage: bool = True,
) -> tuple[LedgerFlow, GroupFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_remote_storage: Whether to use Google Sheets for groups and
                    the audit log. Falls back to in-memory groups and
                    local-only audit logging when it is not configured.

    Returns:
        (ledger_flow, group_flow, sheets_client)
    """
    settings = get_settings()
    ledger_settings = settings.ledger

    sheets_client = None
    group_storage: GroupStorageInterface = InMemoryGroupStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_remote_storage:
        try:
            sheets_client = GoogleSheetsClient()
            group_storage = GoogleSheetsGroupStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("remote_storage_not_configured", error=str(e))
            sheets_client = None
            group_storage = InMemoryGroupStorage()
            audit_logger = AuditLogger()

    kv = JsonFileKeyValueStore(ledger_settings.data_dir)
    store = LedgerStore(kv, ledger_settings.state_key)

    ledger_flow = LedgerFlow(
        store=store,
        audit_logger=audit_logger,
        settings=ledger_settings,
        autosaver=AutoSaver(store, ledger_settings.autosave_interval_seconds),
        drafts=FormDraftStore(kv, "transaction"),
    )

    app_settings = settings.app
    group_flow = GroupFlow(
        storage=group_storage,
        audit_logger=audit_logger,
        merchant_name=app_settings.merchant_name,
        merchant_city=app_settings.merchant_city,
    )

    return ledger_flow, group_flow, sheets_client
