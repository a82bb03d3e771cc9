"""Tests for the ledger store: blob decoding, reducers and persistence."""

import itertools
import json

import pytest
from datetime import date, datetime, timezone

from finledger.errors import NotFoundError, ValidationError
from finledger.ledger import (
    LedgerStore,
    add_transaction,
    decode_state,
    encode_state,
    mark_debt_paid,
    remove_transaction,
    set_initial_balance,
    update_amount,
)
from finledger.models import (
    DebtStatus,
    LedgerState,
    TransactionInput,
    TransactionKind,
)
from finledger.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    PersistenceError,
)

from conftest import TODAY, CountingKeyValueStore, make_transaction


NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


def id_sequence(*ids):
    pool = iter(ids)
    return lambda: next(pool)


def counter_ids():
    counter = itertools.count(1)
    return lambda: f"gen-{next(counter)}"


@pytest.fixture
def state():
    return LedgerState(
        transactions=(
            make_transaction("inc", TransactionKind.INCOME, 1000, category="Salary"),
            make_transaction("exp", TransactionKind.EXPENSE, 200, category="Food"),
            make_transaction("debt", TransactionKind.DEBT, 300, due_on=date(2026, 10, 25)),
        ),
        initial_balance=50,
    )


class TestEncodeDecode:
    """Tests for the persisted JSON blob."""

    def test_round_trip(self, state):
        """Test that a saved state loads back unchanged."""
        decoded, dropped = decode_state(encode_state(state), today=TODAY, now=NOW)
        assert decoded == state
        assert dropped == 0

    def test_uses_persisted_key_names(self, state):
        """Test the key names written to the blob."""
        data = json.loads(encode_state(state))
        assert data["initialBalance"] == 50
        debt = data["transactions"][2]
        assert debt["type"] == "debt"
        assert debt["dueDate"] == "2026-10-25"
        assert debt["status"] == "open"
        assert "paidDate" not in debt
        assert "dueDate" not in data["transactions"][0]

    def test_legacy_records_are_coerced(self):
        """Test that loosely typed old records get defaults."""
        payload = json.dumps({
            "transactions": [
                {"id": 7, "type": "Expense", "amount": "50", "date": "2026-10-01T10:00:00"},
                {"type": "income", "amount": None, "date": "not a date"},
            ],
        })
        decoded, dropped = decode_state(payload, today=TODAY, now=NOW, id_factory=counter_ids())

        assert dropped == 0
        expense, income = decoded.transactions
        assert expense.id == "7"
        assert expense.amount == 50.0
        assert expense.occurred_on == date(2026, 10, 1)
        assert expense.category == "Other"
        assert expense.created_at == NOW
        assert income.id == "gen-1"
        assert income.amount == 0.0
        assert income.occurred_on == TODAY
        assert decoded.initial_balance == 0.0

    def test_untypable_records_are_dropped(self):
        """Test that unknown kinds, negative amounts and non-objects are skipped."""
        payload = json.dumps({
            "transactions": [
                {"id": "a", "type": "transfer", "amount": 10, "date": "2026-10-01"},
                {"id": "b", "type": "expense", "amount": -10, "date": "2026-10-01"},
                "garbage",
                {"id": "c", "type": "income", "amount": 10, "date": "2026-10-01"},
            ],
        })
        decoded, dropped = decode_state(payload, today=TODAY, now=NOW)
        assert dropped == 3
        assert [t.id for t in decoded.transactions] == ["c"]

    def test_debt_defaults(self):
        """Test debt status defaulting and paid debts without a payment date."""
        payload = json.dumps({
            "transactions": [
                {"id": "a", "type": "debt", "amount": 10, "date": "2026-10-01"},
                {"id": "b", "type": "debt", "amount": 10, "date": "2026-10-02", "status": "paid"},
            ],
        })
        decoded, _ = decode_state(payload, today=TODAY, now=NOW)
        open_debt, paid_debt = decoded.transactions
        assert open_debt.status == DebtStatus.OPEN
        assert open_debt.due_on is None
        assert paid_debt.status == DebtStatus.PAID
        assert paid_debt.paid_on == date(2026, 10, 2)

    def test_duplicate_ids_are_regenerated(self):
        payload = json.dumps({
            "transactions": [
                {"id": "x", "type": "income", "amount": 1, "date": "2026-10-01"},
                {"id": "x", "type": "income", "amount": 2, "date": "2026-10-01"},
            ],
        })
        decoded, _ = decode_state(payload, today=TODAY, now=NOW, id_factory=id_sequence("y"))
        assert [t.id for t in decoded.transactions] == ["x", "y"]

    def test_naive_created_at_is_utc(self):
        payload = json.dumps({
            "transactions": [
                {"id": "a", "type": "income", "amount": 1, "date": "2026-10-01",
                 "createdAt": "2026-10-01T08:00:00"},
            ],
        })
        decoded, _ = decode_state(payload, today=TODAY, now=NOW)
        assert decoded.transactions[0].created_at == datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)

    def test_non_object_blob_raises(self):
        with pytest.raises(ValueError):
            decode_state("[]", today=TODAY, now=NOW)


class TestReducers:
    """Tests for the pure state reducers."""

    def test_add_appends_without_touching_input(self, state):
        """Test that adding returns a new state."""
        new_state = add_transaction(
            state,
            TransactionInput(kind=TransactionKind.INCOME, amount="10", occurred_on="2026-10-19"),
            now=NOW,
            id_factory=id_sequence("new"),
        )
        assert len(state.transactions) == 3
        assert len(new_state.transactions) == 4
        assert new_state.transactions[-1].id == "new"
        assert new_state.transactions[-1].created_at == NOW

    def test_add_avoids_id_collisions(self, state):
        new_state = add_transaction(
            state,
            TransactionInput(kind=TransactionKind.INCOME, amount="10", occurred_on="2026-10-19"),
            id_factory=id_sequence("inc", "fresh"),
        )
        assert new_state.transactions[-1].id == "fresh"

    def test_add_rejects_bad_input(self, state):
        with pytest.raises(ValidationError):
            add_transaction(state, TransactionInput(amount="0", occurred_on="2026-10-19"))

    def test_update_amount_changes_only_amount(self, state):
        new_state = update_amount(state, "exp", 250)
        updated = new_state.find("exp")
        assert updated.amount == 250
        assert updated.category == "Food"
        assert new_state.find("inc") == state.find("inc")

    def test_update_amount_validates_before_lookup(self, state):
        """Test that a bad amount wins over an unknown id."""
        with pytest.raises(ValidationError):
            update_amount(state, "missing", 0)
        with pytest.raises(NotFoundError):
            update_amount(state, "missing", 10)

    def test_remove_unknown_id_is_a_no_op(self, state):
        assert remove_transaction(state, "missing") is state
        assert remove_transaction(state, "exp").find("exp") is None

    def test_mark_debt_paid(self, state):
        paid = mark_debt_paid(state, "debt", date(2026, 10, 20)).find("debt")
        assert paid.status == DebtStatus.PAID
        assert paid.paid_on == date(2026, 10, 20)

    def test_paying_twice_overwrites_date(self, state):
        once = mark_debt_paid(state, "debt", date(2026, 10, 20))
        twice = mark_debt_paid(once, "debt", date(2026, 10, 22))
        assert twice.find("debt").paid_on == date(2026, 10, 22)

    def test_mark_paid_requires_a_debt(self, state):
        """Test that only debts can be paid."""
        with pytest.raises(NotFoundError, match="Debt not found"):
            mark_debt_paid(state, "exp", TODAY)

    def test_initial_balance_may_be_negative(self, state):
        assert set_initial_balance(state, -120.5).initial_balance == -120.5
        with pytest.raises(ValidationError):
            set_initial_balance(state, float("nan"))


class TestLedgerStore:
    """Tests for loading and saving through a key-value store."""

    def test_missing_blob_gives_empty_ledger(self):
        store = LedgerStore(InMemoryKeyValueStore())
        assert store.load() == LedgerState()

    @pytest.mark.parametrize("payload", [
        "{not json",
        "[" * 100_000 + "]" * 100_000,
    ], ids=["malformed", "deeply_nested"])
    def test_unreadable_blob_gives_empty_ledger(self, payload):
        store = LedgerStore(InMemoryKeyValueStore({"financeState_v3": payload}))
        assert store.load() == LedgerState()

    def test_undecodable_file_gives_empty_ledger(self, tmp_path):
        """Test that a ledger file that is not UTF-8 text loads as empty."""
        (tmp_path / "financeState_v3.json").write_bytes(b'{"transactions": [], "x": "\xff\xfe"}')
        store = LedgerStore(JsonFileKeyValueStore(tmp_path))
        assert store.load() == LedgerState()

    def test_save_then_load(self, state):
        kv = InMemoryKeyValueStore()
        store = LedgerStore(kv)
        store.save(state)
        assert store.load(today=TODAY, now=NOW) == state
        assert store.last_dropped_count == 0

    def test_dropped_count_is_reported(self):
        payload = json.dumps({"transactions": [{"type": "bogus"}]})
        store = LedgerStore(InMemoryKeyValueStore({"financeState_v3": payload}))
        store.load()
        assert store.last_dropped_count == 1

    def test_save_failure_raises(self, state):
        kv = CountingKeyValueStore()
        kv.fail_writes = True
        with pytest.raises(PersistenceError):
            LedgerStore(kv).save(state)


class TestJsonFileKeyValueStore:
    """Tests for the on-disk key-value store."""

    def test_set_get_remove(self, tmp_path):
        kv = JsonFileKeyValueStore(tmp_path / "data")
        assert kv.get("financeState_v3") is None
        kv.set("financeState_v3", '{"transactions": []}')
        assert (tmp_path / "data" / "financeState_v3.json").exists()
        assert kv.get("financeState_v3") == '{"transactions": []}'
        assert kv.contains("financeState_v3") is True
        kv.remove("financeState_v3")
        assert kv.contains("financeState_v3") is False

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        kv = JsonFileKeyValueStore(tmp_path)
        kv.set("k", "one")
        kv.set("k", "two")
        assert kv.get("k") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]

    def test_rejects_unsafe_keys(self, tmp_path):
        with pytest.raises(PersistenceError):
            JsonFileKeyValueStore(tmp_path).set("../escape", "x")
