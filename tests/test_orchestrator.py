"""
Integration tests for the ledger and group flows.

Everything runs against in-memory storage; group flows are driven with
asyncio.run the same way the UI drives them.
"""

import asyncio
import json

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from finledger.audit import AuditLogger
from finledger.errors import ValidationError
from finledger.ledger import AutoSaver, LedgerStore
from finledger.models import (
    ActionStatus,
    AuditEventType,
    ContributionStatus,
    DebtStatus,
    MemberRole,
    NotificationType,
    SplitType,
    TransactionInput,
    TransactionKind,
)
from finledger.orchestrator import GroupFlow, LedgerFlow
from finledger.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    RecordNotFoundError,
    StorageError,
)

from conftest import TODAY, CountingKeyValueStore


def event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


def add(flow, kind=TransactionKind.EXPENSE, amount="100", **kwargs):
    data = TransactionInput(kind=kind, amount=amount, occurred_on="2026-10-19", **kwargs)
    return flow.add_transaction(data)


class TestLedgerFlow:
    """Tests for the single-user ledger flow."""

    def test_add_persists_and_audits(self, ledger_flow, kv, audit_storage):
        result = add(ledger_flow, category="Food")

        assert result.status == ActionStatus.APPLIED
        assert result.ok is True
        saved = json.loads(kv.get("financeState_v3"))
        assert saved["transactions"][0]["id"] == result.transaction_id
        assert saved["transactions"][0]["category"] == "Food"
        assert AuditEventType.TRANSACTION_ADDED in event_types(audit_storage)

    def test_invalid_add_changes_nothing(self, ledger_flow, kv, audit_storage):
        result = add(ledger_flow, amount="abc")

        assert result.status == ActionStatus.REJECTED
        assert [issue.field for issue in result.issues] == ["amount"]
        assert ledger_flow.state.transactions == ()
        assert kv.writes == 0
        assert AuditEventType.OPERATION_REJECTED in event_types(audit_storage)

    def test_add_clears_form_draft(self, ledger_flow):
        ledger_flow.drafts.save_draft({"amount": "100"})
        add(ledger_flow)
        assert ledger_flow.drafts.has_draft() is False

    def test_pay_debt(self, ledger_flow):
        debt_id = add(ledger_flow, TransactionKind.DEBT, "300", due_on="2026-10-25").transaction_id

        result = ledger_flow.pay_debt(debt_id, "2026-10-20")

        assert result.status == ActionStatus.APPLIED
        paid = ledger_flow.state.find(debt_id)
        assert paid.status == DebtStatus.PAID
        assert paid.paid_on == date(2026, 10, 20)
        assert ledger_flow.totals().total_expenses == 300

    def test_cancelled_prompt_does_nothing(self, ledger_flow, kv):
        debt_id = add(ledger_flow, TransactionKind.DEBT, "300", due_on="2026-10-25").transaction_id
        writes = kv.writes
        before = ledger_flow.state

        assert ledger_flow.pay_debt(debt_id, None).status == ActionStatus.CANCELLED
        assert ledger_flow.edit_amount(debt_id, None).status == ActionStatus.CANCELLED
        assert ledger_flow.state is before
        assert kv.writes == writes

    def test_bad_payment_date_is_rejected(self, ledger_flow):
        debt_id = add(ledger_flow, TransactionKind.DEBT, "300", due_on="2026-10-25").transaction_id
        result = ledger_flow.pay_debt(debt_id, "20/10/2026")
        assert result.status == ActionStatus.REJECTED
        assert ledger_flow.state.find(debt_id).is_open_debt is True

    def test_paying_a_non_debt_is_rejected(self, ledger_flow):
        expense_id = add(ledger_flow).transaction_id
        result = ledger_flow.pay_debt(expense_id, "2026-10-20")
        assert result.status == ActionStatus.REJECTED
        assert result.message == f"Debt not found: {expense_id}"

    def test_repaying_is_audited_as_warning(self, ledger_flow, audit_storage):
        debt_id = add(ledger_flow, TransactionKind.DEBT, "300", due_on="2026-10-25").transaction_id
        ledger_flow.pay_debt(debt_id, "2026-10-20")
        ledger_flow.pay_debt(debt_id, "2026-10-21")

        payments = [e for e in audit_storage.events if e.event_type == AuditEventType.DEBT_PAID]
        assert [e.details["was_already_paid"] for e in payments] == [False, True]
        assert ledger_flow.state.find(debt_id).paid_on == date(2026, 10, 21)

    def test_edit_amount(self, ledger_flow):
        expense_id = add(ledger_flow).transaction_id
        assert ledger_flow.edit_amount(expense_id, "1.250,00").ok
        assert ledger_flow.state.find(expense_id).amount == 1250.0

    def test_edit_unknown_id(self, ledger_flow):
        result = ledger_flow.edit_amount("missing", "10")
        assert result.status == ActionStatus.REJECTED
        assert result.message == "Transaction not found: missing"

    def test_delete(self, ledger_flow):
        expense_id = add(ledger_flow).transaction_id
        assert ledger_flow.delete_transaction(expense_id).message == "Transaction deleted."
        assert ledger_flow.state.transactions == ()
        assert ledger_flow.delete_transaction(expense_id).message == "Nothing to delete."

    def test_initial_balance(self, ledger_flow, kv):
        assert ledger_flow.set_initial_balance(-200).ok
        assert ledger_flow.totals().current_balance == -200
        assert json.loads(kv.get("financeState_v3"))["initialBalance"] == -200

    def test_failed_save_keeps_session_state(self, ledger_flow, kv, audit_storage):
        """Test that a write failure is logged, not shown as a failed operation."""
        kv.fail_writes = True
        result = add(ledger_flow)

        assert result.ok
        assert len(ledger_flow.state.transactions) == 1
        assert AuditEventType.SAVE_FAILED in event_types(audit_storage)

        kv.fail_writes = False
        assert ledger_flow.autosaver.flush() is True
        assert json.loads(kv.get("financeState_v3"))["transactions"]

    def test_views(self, ledger_flow):
        add(ledger_flow, TransactionKind.INCOME, "1000", category="Salary")
        add(ledger_flow, TransactionKind.EXPENSE, "200", category="Food")
        add(ledger_flow, TransactionKind.DEBT, "300", due_on="2026-10-20")

        totals = ledger_flow.totals()
        assert (totals.current_balance, totals.balance_with_debt) == (800, 500)
        assert [c.category for c in ledger_flow.category_chart()] == ["Food"]
        assert len(ledger_flow.timeline()) == 7
        assert ledger_flow.upcoming_debts()[0].urgency.days_until_due == 1
        assert [s.name for s in ledger_flow.kind_distribution()] == ["Income", "Expenses", "Open debts"]
        assert len(ledger_flow.transactions_for_display()) == 3

    def test_reports(self, ledger_flow, audit_storage):
        add(ledger_flow, TransactionKind.INCOME, "1000")

        assert ledger_flow.report_week().label == "Week (18/10/2026 to 24/10/2026)"
        assert ledger_flow.report_month().total_income == 1000
        report, result = ledger_flow.report_custom("2026-10-01", "2026-10-31")
        assert result.ok
        assert report.transaction_count == 1
        assert AuditEventType.REPORT_GENERATED in event_types(audit_storage)

    def test_custom_report_rejects_reversed_window(self, ledger_flow):
        report, result = ledger_flow.report_custom("2026-10-31", "2026-10-01")
        assert report is None
        assert result.status == ActionStatus.REJECTED

    def test_load_reports_dropped_records(self, ledger_settings, audit_storage):
        kv = CountingKeyValueStore({"financeState_v3": json.dumps({
            "transactions": [
                {"id": "a", "type": "income", "amount": 10, "date": "2026-10-01"},
                {"id": "b", "type": "refund", "amount": 10, "date": "2026-10-01"},
            ],
            "initialBalance": 5,
        })})
        store = LedgerStore(kv)
        flow = LedgerFlow(
            store=store,
            audit_logger=AuditLogger(audit_storage),
            settings=ledger_settings,
            autosaver=AutoSaver(store, interval_seconds=0),
            today=lambda: TODAY,
        )
        state = flow.load()

        assert [t.id for t in state.transactions] == ["a"]
        assert state.initial_balance == 5
        loaded = audit_storage.events[-1]
        assert loaded.event_type == AuditEventType.STATE_LOADED
        assert loaded.details["dropped_count"] == 1
        assert kv.writes == 0


class FailingGroupStorage(InMemoryGroupStorage):
    async def list_groups_for_user(self, user_id, active_only=True):
        raise StorageError("sheets down")


class TestGroupFlow:
    """Tests for shared groups."""

    def make_group(self, flow, creator, *others):
        group = asyncio.run(flow.create_group(creator, "Beach trip"))
        for user_id in others:
            asyncio.run(flow.join_group(group.id, user_id))
        return group

    def test_creator_is_admin(self, group_flow, group_storage):
        creator = uuid4()
        group = self.make_group(group_flow, creator)

        members = asyncio.run(group_storage.list_members(group.id))
        assert [(m.user_id, m.role) for m in members] == [(creator, MemberRole.ADMIN)]
        assert asyncio.run(group_flow.list_groups(creator)) == [group]

    def test_group_name_required(self, group_flow):
        with pytest.raises(ValidationError):
            asyncio.run(group_flow.create_group(uuid4(), "  "))

    def test_join_twice(self, group_flow):
        creator, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, creator, friend)
        with pytest.raises(DuplicateError):
            asyncio.run(group_flow.join_group(group.id, friend))

    def test_join_unknown_group(self, group_flow):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(group_flow.join_group(uuid4(), uuid4()))

    def test_leave_group(self, group_flow):
        creator, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, creator, friend)
        assert asyncio.run(group_flow.leave_group(group.id, friend)) is True
        assert asyncio.run(group_flow.list_groups(friend)) == []

    def test_add_shared_expense(self, group_flow, group_storage):
        payer, a, b = uuid4(), uuid4(), uuid4()
        group = self.make_group(group_flow, payer, a, b)

        expense, splits = asyncio.run(group_flow.add_shared_expense(
            group.id, payer, "Dinner", Decimal("100"), date(2026, 10, 19),
        ))

        assert sum(s.amount for s in splits) == Decimal("100.00")
        assert expense.category == "Other"
        stored_group = asyncio.run(group_storage.get_group(group.id))
        assert stored_group.total_amount == Decimal("100.00")

        notified = asyncio.run(group_flow.notifications(a))
        assert [n.type for n in notified] == [NotificationType.EXPENSE_ADDED]
        assert asyncio.run(group_flow.notifications(payer)) == []

    def test_only_members_add_expenses(self, group_flow):
        group = self.make_group(group_flow, uuid4())
        with pytest.raises(ValidationError):
            asyncio.run(group_flow.add_shared_expense(
                group.id, uuid4(), "Dinner", Decimal("10"), date(2026, 10, 19),
            ))

    def test_percentage_expense(self, group_flow):
        payer, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, payer, friend)
        _, splits = asyncio.run(group_flow.add_shared_expense(
            group.id, payer, "Rent", Decimal("1000"), date(2026, 10, 1),
            split_type=SplitType.PERCENTAGE,
            shares={payer: Decimal("60"), friend: Decimal("40")},
        ))
        assert {s.user_id: s.amount for s in splits} == {
            payer: Decimal("600.00"),
            friend: Decimal("400.00"),
        }

    def test_mark_split_paid_notifies_payer(self, group_flow):
        payer, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, payer, friend)
        _, splits = asyncio.run(group_flow.add_shared_expense(
            group.id, payer, "Taxi", Decimal("30"), date(2026, 10, 19),
        ))
        friend_split = next(s for s in splits if s.user_id == friend)

        paid = asyncio.run(group_flow.mark_split_paid(friend_split.id))
        again = asyncio.run(group_flow.mark_split_paid(friend_split.id))

        assert paid.is_paid is True
        assert again.paid_at == paid.paid_at
        payer_notes = asyncio.run(group_flow.notifications(payer))
        assert [n.type for n in payer_notes] == [NotificationType.PAYMENT_CONFIRMED]

    def test_overview_balances(self, group_flow):
        payer, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, payer, friend)
        asyncio.run(group_flow.add_shared_expense(
            group.id, payer, "Taxi", Decimal("30"), date(2026, 10, 19),
        ))

        overview = asyncio.run(group_flow.group_overview(group.id, payer))
        balances = {b.user_id: b for b in overview.balances}
        assert overview.is_admin is True
        assert overview.totals.my_total == Decimal("30.00")
        assert balances[payer].to_receive == Decimal("15.00")
        assert balances[friend].owes == Decimal("15.00")

    def test_request_split_payment(self, group_flow):
        payer, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, payer, friend)
        _, splits = asyncio.run(group_flow.add_shared_expense(
            group.id, payer, "Taxi", Decimal("30"), date(2026, 10, 19),
        ))
        friend_split = next(s for s in splits if s.user_id == friend)

        payment, payload = asyncio.run(group_flow.request_split_payment(friend_split.id, "maria@example.com"))

        assert payment.payer_id == friend
        assert payment.receiver_id == payer
        assert payment.amount == Decimal("15.00")
        assert len(payment.transaction_id) == 25
        assert payment.transaction_id in payload
        assert "MARIA SOUZA" in payload
        friend_notes = asyncio.run(group_flow.notifications(friend))
        assert {n.type for n in friend_notes} == {
            NotificationType.EXPENSE_ADDED,
            NotificationType.PAYMENT_PENDING,
        }

    def test_request_payment_validation(self, group_flow):
        payer, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, payer, friend)
        _, splits = asyncio.run(group_flow.add_shared_expense(
            group.id, payer, "Taxi", Decimal("30"), date(2026, 10, 19),
        ))
        payer_split = next(s for s in splits if s.user_id == payer)
        friend_split = next(s for s in splits if s.user_id == friend)

        with pytest.raises(ValidationError, match="already paid"):
            asyncio.run(group_flow.request_split_payment(payer_split.id, "key"))
        with pytest.raises(ValidationError, match="PIX key"):
            asyncio.run(group_flow.request_split_payment(friend_split.id, "  "))

    def test_pool_contributions(self, group_flow):
        creator = uuid4()
        group = self.make_group(group_flow, creator)
        pool = asyncio.run(group_flow.create_pool(group.id, "Fuel", Decimal("200")))

        first = asyncio.run(group_flow.contribute(pool.id, creator, Decimal("50")))
        second = asyncio.run(group_flow.contribute(pool.id, creator, Decimal("20")))
        assert first.status == ContributionStatus.PENDING

        asyncio.run(group_flow.confirm_contribution(first.id))
        asyncio.run(group_flow.cancel_contribution(second.id))

        [(stored_pool, contributions)] = asyncio.run(group_flow.pools(group.id))
        assert stored_pool.current_amount == Decimal("50.00")
        assert stored_pool.progress == 0.25
        assert {c.status for c in contributions} == {
            ContributionStatus.CONFIRMED,
            ContributionStatus.CANCELLED,
        }

        with pytest.raises(ValidationError, match="already confirmed"):
            asyncio.run(group_flow.confirm_contribution(first.id))

    def test_notifications_can_be_read(self, group_flow):
        payer, friend = uuid4(), uuid4()
        group = self.make_group(group_flow, payer, friend)
        asyncio.run(group_flow.add_shared_expense(
            group.id, payer, "Taxi", Decimal("30"), date(2026, 10, 19),
        ))
        [note] = asyncio.run(group_flow.notifications(friend, unread_only=True))

        assert asyncio.run(group_flow.mark_notification_read(note.id)) is True
        assert asyncio.run(group_flow.notifications(friend, unread_only=True)) == []

    def test_storage_outage_is_audited(self):
        audit_storage = InMemoryAuditStorage()
        flow = GroupFlow(
            storage=FailingGroupStorage(),
            audit_logger=AuditLogger(audit_storage),
            merchant_name="Maria",
            merchant_city="Rio",
        )
        with pytest.raises(StorageError):
            asyncio.run(flow.list_groups(uuid4()))
        assert event_types(audit_storage) == [AuditEventType.EXTERNAL_SERVICE_ERROR]

    @pytest.mark.parametrize("error,message", [
        (ValidationError.single("name", "missing", "Enter a group name."), "Enter a group name."),
        (DuplicateError("dup"), "You are already a member of this group."),
        (RecordNotFoundError("gone"), "That item no longer exists."),
        (StorageError("down"), "The shared store is unavailable right now. Please try again."),
    ])
    def test_describe_error(self, error, message):
        assert GroupFlow.describe_error(error) == message
