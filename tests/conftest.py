"""Shared fixtures for the finledger test suite."""

from datetime import date, datetime, timezone
from typing import Optional

import pytest

from finledger.audit import AuditLogger
from finledger.config import LedgerSettings
from finledger.ledger import AutoSaver, FormDraftStore, LedgerStore
from finledger.models import DebtStatus, Transaction, TransactionKind
from finledger.orchestrator import GroupFlow, LedgerFlow
from finledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryKeyValueStore,
    PersistenceError,
)


TODAY = date(2026, 10, 19)  # a Monday


def make_transaction(
    transaction_id: str,
    kind: TransactionKind,
    amount: float,
    occurred_on: date = TODAY,
    category: str = "Other",
    due_on: Optional[date] = None,
    paid_on: Optional[date] = None,
    created_at: Optional[datetime] = None,
    description: str = "",
) -> Transaction:
    status = None
    if kind == TransactionKind.DEBT:
        status = DebtStatus.PAID if paid_on else DebtStatus.OPEN
    return Transaction(
        id=transaction_id,
        kind=kind,
        amount=amount,
        occurred_on=occurred_on,
        description=description,
        category=category,
        due_on=due_on,
        status=status,
        paid_on=paid_on,
        created_at=created_at or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
    )


class CountingKeyValueStore(InMemoryKeyValueStore):
    """In-memory store that counts writes and can be told to fail."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes = 0
        self.fail_writes = False

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.writes += 1
        super().set(key, value)


@pytest.fixture
def ledger_settings(tmp_path):
    return LedgerSettings(
        data_dir=tmp_path,
        autosave_interval_seconds=0,
        due_soon_days=7,
        upcoming_debts_limit=6,
        default_category="Other",
    )


@pytest.fixture
def kv():
    return CountingKeyValueStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger_flow(kv, ledger_settings, audit_logger):
    store = LedgerStore(kv)
    flow = LedgerFlow(
        store=store,
        audit_logger=audit_logger,
        settings=ledger_settings,
        autosaver=AutoSaver(store, interval_seconds=0),
        drafts=FormDraftStore(kv, "transaction"),
        today=lambda: TODAY,
    )
    flow.load()
    return flow


@pytest.fixture
def group_storage():
    return InMemoryGroupStorage()


@pytest.fixture
def group_flow(group_storage, audit_logger):
    return GroupFlow(
        storage=group_storage,
        audit_logger=audit_logger,
        merchant_name="Maria Souza",
        merchant_city="Sao Paulo",
    )
