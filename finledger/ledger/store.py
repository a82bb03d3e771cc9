"""
Ledger Store

The single source of truth for the transaction collection and the
initial balance, and the only code that talks to the blob store.

DESIGN DECISION: The state is an explicit, immutable value.
Every operation is a pure reducer: it takes a LedgerState and returns a
new one (or raises without touching anything). Whoever owns the session
holds the current state; there is no module-level ledger.

Loading is an explicit decode step. The persisted JSON is loosely typed
(older versions wrote whatever the browser had), so each record is first
coerced field by field to a well-defined default and then validated into
a Transaction. Records that still cannot be typed are dropped and logged,
never half-accepted.
"""

import json
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from finledger.errors import NotFoundError, ValidationError
from finledger.models.ledger import (
    DEFAULT_CATEGORY,
    DebtStatus,
    LedgerState,
    Transaction,
    TransactionInput,
    TransactionKind,
)
from finledger.services.storage import KeyValueStore, PersistenceError
from finledger.validation import TransactionValidator


logger = structlog.get_logger(__name__)

STATE_KEY = "financeState_v3"

DATE_PREFIX_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})")

_datetime_adapter = TypeAdapter(datetime)


def new_transaction_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# DECODE / ENCODE
# =============================================================================

def _coerce_number(value: Any) -> float:
    """Numbers and numeric strings become floats; anything else is 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _coerce_date(value: Any) -> Optional[date]:
    """Read a YYYY-MM-DD date (a trailing time part is ignored)."""
    if not isinstance(value, str):
        return None
    match = DATE_PREFIX_PATTERN.match(value.strip())
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except SchemaError:
        return None
    # Naive timestamps from old blobs are taken as UTC so they sort with new ones
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def decode_transaction(
    raw: Any,
    *,
    today: date,
    now: datetime,
    id_factory: Callable[[], str] = new_transaction_id,
) -> Optional[Transaction]:
    """
    Coerce one persisted record into a Transaction.

    Defaults: missing id -> generated, missing/non-numeric amount -> 0,
    missing/invalid date -> today, missing debt status -> open,
    missing createdAt -> now.

    Returns:
        The transaction, or None if the record cannot be typed
        (not an object, unknown kind, negative amount)
    """
    if not isinstance(raw, dict):
        logger.warning("dropping_record", reason="not an object")
        return None

    raw_id = raw.get("id")
    if isinstance(raw_id, (int, float)) and not isinstance(raw_id, bool):
        raw_id = str(raw_id)
    transaction_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else id_factory()

    try:
        kind = TransactionKind(_coerce_text(raw.get("type")).lower())
    except ValueError:
        logger.warning("dropping_record", transaction_id=transaction_id, reason="unknown type", type=raw.get("type"))
        return None

    amount = _coerce_number(raw.get("amount"))
    if amount < 0:
        logger.warning("dropping_record", transaction_id=transaction_id, reason="negative amount")
        return None

    record: dict[str, Any] = {
        "id": transaction_id,
        "type": kind,
        "amount": amount,
        "date": _coerce_date(raw.get("date")) or today,
        "description": _coerce_text(raw.get("description"))[:500],
        "category": _coerce_text(raw.get("category"))[:100] or DEFAULT_CATEGORY,
        "createdAt": _coerce_datetime(raw.get("createdAt")) or now,
    }

    if kind == TransactionKind.DEBT:
        try:
            status = DebtStatus(_coerce_text(raw.get("status")).lower())
        except ValueError:
            status = DebtStatus.OPEN
        record["status"] = status
        record["dueDate"] = _coerce_date(raw.get("dueDate"))

        if status == DebtStatus.PAID:
            paid_on = _coerce_date(raw.get("paidDate"))
            if paid_on is None:
                logger.warning("paid_debt_without_date", transaction_id=transaction_id)
                paid_on = record["date"]
            record["paidDate"] = paid_on

    try:
        return Transaction.model_validate(record)
    except SchemaError as e:
        logger.warning("dropping_record", transaction_id=transaction_id, reason=str(e))
        return None


def decode_state(
    payload: str,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    id_factory: Callable[[], str] = new_transaction_id,
) -> tuple[LedgerState, int]:
    """
    Decode a persisted blob into a LedgerState.

    Returns: (state, number_of_dropped_records)

    Raises:
        ValueError: If the payload is not JSON (the caller falls back to empty)
        RecursionError: If the payload nests deeper than the JSON decoder allows
    """
    today = today or date.today()
    now = now or _utcnow()

    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("Ledger blob is not a JSON object")

    raw_transactions = data.get("transactions")
    if not isinstance(raw_transactions, list):
        raw_transactions = []

    transactions: list[Transaction] = []
    seen_ids: set[str] = set()
    dropped = 0
    for raw in raw_transactions:
        transaction = decode_transaction(raw, today=today, now=now, id_factory=id_factory)
        if transaction is None:
            dropped += 1
            continue
        if transaction.id in seen_ids:
            fresh_id = id_factory()
            logger.warning("duplicate_transaction_id", transaction_id=transaction.id, new_id=fresh_id)
            transaction = transaction.model_copy(update={"id": fresh_id})
        seen_ids.add(transaction.id)
        transactions.append(transaction)

    state = LedgerState(
        transactions=tuple(transactions),
        initial_balance=_coerce_number(data.get("initialBalance")),
    )
    return state, dropped


def encode_state(state: LedgerState) -> str:
    """Serialize the full state with the persisted key names."""
    return json.dumps(
        state.model_dump(mode="json", by_alias=True, exclude_none=True),
        ensure_ascii=False,
    )


# =============================================================================
# REDUCERS
# =============================================================================

def add_transaction(
    state: LedgerState,
    data: TransactionInput,
    *,
    validator: Optional[TransactionValidator] = None,
    now: Optional[datetime] = None,
    id_factory: Callable[[], str] = new_transaction_id,
) -> LedgerState:
    """
    Validate form input and append the new transaction.

    Raises:
        ValidationError: With every issue found; state is untouched
    """
    validator = validator or TransactionValidator()

    transaction_id = id_factory()
    while state.find(transaction_id) is not None:
        transaction_id = id_factory()

    transaction = validator.build_transaction(
        data,
        transaction_id=transaction_id,
        created_at=now or _utcnow(),
    )
    return state.model_copy(update={"transactions": state.transactions + (transaction,)})


def update_amount(
    state: LedgerState,
    transaction_id: str,
    new_amount: float,
) -> LedgerState:
    """
    Replace one transaction's amount, nothing else.

    Raises:
        ValidationError: If new_amount is not a finite number > 0
        NotFoundError: If no transaction has that id
    """
    if not math.isfinite(new_amount) or new_amount <= 0:
        raise ValidationError.single(
            "amount", "invalid_value", "Amount must be greater than zero."
        )

    if state.find(transaction_id) is None:
        raise NotFoundError(transaction_id)

    return state.model_copy(update={
        "transactions": tuple(
            t.model_copy(update={"amount": float(new_amount)}) if t.id == transaction_id else t
            for t in state.transactions
        )
    })


def remove_transaction(state: LedgerState, transaction_id: str) -> LedgerState:
    """Drop the transaction with this id. Unknown ids leave the state as is."""
    if state.find(transaction_id) is None:
        return state
    return state.model_copy(update={
        "transactions": tuple(t for t in state.transactions if t.id != transaction_id)
    })


def mark_debt_paid(
    state: LedgerState,
    transaction_id: str,
    paid_on: date,
) -> LedgerState:
    """
    Move a debt to PAID on the given date.

    Paying an already-paid debt overwrites its payment date.

    Raises:
        NotFoundError: If no debt has that id
    """
    transaction = state.find(transaction_id)
    if transaction is None or transaction.kind != TransactionKind.DEBT:
        raise NotFoundError(transaction_id, f"Debt not found: {transaction_id}")

    paid = transaction.model_copy(update={"status": DebtStatus.PAID, "paid_on": paid_on})
    return state.model_copy(update={
        "transactions": tuple(
            paid if t.id == transaction_id else t for t in state.transactions
        )
    })


def set_initial_balance(state: LedgerState, amount: float) -> LedgerState:
    """
    Replace the baseline balance. Negative values are allowed.

    Raises:
        ValidationError: If amount is not a finite number
    """
    if not math.isfinite(amount):
        raise ValidationError.single(
            "initial_balance", "invalid_value", "Initial balance must be a number."
        )
    return state.model_copy(update={"initial_balance": float(amount)})


# =============================================================================
# STORE
# =============================================================================

class LedgerStore:
    """
    Loads and saves the ledger blob.

    ``load`` never raises: a missing or unreadable blob gives an empty
    ledger. ``save`` overwrites the whole blob and raises PersistenceError
    on failure; the caller decides whether that is worth more than a log line.
    """

    def __init__(self, kv: KeyValueStore, key: str = STATE_KEY):
        self._kv = kv
        self._key = key
        self.last_dropped_count = 0

    @property
    def key(self) -> str:
        return self._key

    def load(
        self,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> LedgerState:
        self.last_dropped_count = 0
        try:
            payload = self._kv.get(self._key)
        except PersistenceError as e:
            logger.error("ledger_load_failed", key=self._key, error=str(e))
            return LedgerState()

        if payload is None:
            logger.info("ledger_not_found", key=self._key)
            return LedgerState()

        try:
            state, dropped = decode_state(payload, today=today, now=now)
        except (ValueError, RecursionError) as e:
            logger.error("ledger_blob_unreadable", key=self._key, error=str(e))
            return LedgerState()

        self.last_dropped_count = dropped
        logger.info(
            "ledger_loaded",
            key=self._key,
            transaction_count=len(state.transactions),
            dropped_count=dropped,
        )
        return state

    def save(self, state: LedgerState) -> None:
        """
        Raises:
            PersistenceError: If the blob could not be written
        """
        self._kv.set(self._key, encode_state(state))
        logger.debug("ledger_saved", key=self._key, transaction_count=len(state.transactions))
