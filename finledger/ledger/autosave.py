"""
Autosave

Keeps the persisted blob in step with the session state.

DESIGN DECISION: Saving is idempotent. The saver remembers the last
payload it wrote and only touches storage when the serialized state has
changed, so the timer, the exit hook and write-through saves can all
fire freely without duplicate writes.

Failures are logged and swallowed: the in-memory state stays the source
of truth for the session and the next flush simply tries again. Two
processes sharing one data directory are not coordinated; the last
write wins.
"""

import atexit
import json
import threading
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from finledger.ledger.store import LedgerStore, encode_state
from finledger.models.ledger import LedgerState
from finledger.services.storage import KeyValueStore, PersistenceError


logger = structlog.get_logger(__name__)


class AutoSaver:
    """
    Interval- and exit-driven persistence for one LedgerStore.

    ``track`` is called with every new state; ``start`` arms a repeating
    timer; ``stop`` (also run at interpreter exit) cancels it and flushes.
    """

    def __init__(self, store: LedgerStore, interval_seconds: float = 30.0):
        self._store = store
        self._interval = interval_seconds
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False
        self._exit_hook_registered = False
        self._state: Optional[LedgerState] = None
        self._last_payload: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def mark_clean(self, state: LedgerState) -> None:
        """Record a state known to match what is already persisted."""
        with self._lock:
            self._state = state
            self._last_payload = encode_state(state)

    def track(self, state: LedgerState) -> bool:
        """Remember the latest state and write it if it changed."""
        with self._lock:
            self._state = state
        return self.flush()

    def flush(self) -> bool:
        """
        Write the tracked state if it differs from the last write.

        Returns:
            False only when a write was attempted and failed
        """
        with self._lock:
            if self._state is None:
                return True
            payload = encode_state(self._state)
            if payload == self._last_payload:
                return True
            try:
                self._store.save(self._state)
            except PersistenceError as e:
                self.last_error = str(e)
                logger.error("autosave_failed", key=self._store.key, error=str(e))
                return False
            self._last_payload = payload
            self.last_error = None
            return True

    def start(self) -> None:
        """Arm the repeating timer. An interval of 0 leaves it off."""
        if not self._exit_hook_registered:
            atexit.register(self.stop)
            self._exit_hook_registered = True
        if self._interval <= 0 or self._running:
            return
        self._running = True
        self._schedule()
        logger.info("autosave_started", interval_seconds=self._interval)

    def _schedule(self) -> None:
        self._timer = threading.Timer(self._interval, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self) -> None:
        self.flush()
        if self._running:
            self._schedule()

    def stop(self) -> None:
        """Cancel the timer and flush one last time."""
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.flush()


class FormDraftStore:
    """
    Drafts of a half-filled form, so a reload doesn't lose typing.

    Stored under ``formDraft_<form_key>`` with a ``savedAt`` timestamp.
    """

    def __init__(self, kv: KeyValueStore, form_key: str):
        self._kv = kv
        self.storage_key = f"formDraft_{form_key}"

    def save_draft(self, data: dict[str, Any], now: Optional[datetime] = None) -> bool:
        """
        Store the draft, or clear it when every field is empty.

        Returns:
            True if a draft is now stored
        """
        has_data = any(value not in ("", None) for value in data.values())
        try:
            if not has_data:
                self._kv.remove(self.storage_key)
                return False
            saved_at = (now or datetime.now(timezone.utc)).isoformat()
            self._kv.set(self.storage_key, json.dumps({**data, "savedAt": saved_at}))
            return True
        except PersistenceError as e:
            logger.error("draft_save_failed", key=self.storage_key, error=str(e))
            return False

    def load_draft(self) -> Optional[dict[str, Any]]:
        """The stored draft without its timestamp, or None."""
        try:
            payload = self._kv.get(self.storage_key)
        except PersistenceError as e:
            logger.error("draft_load_failed", key=self.storage_key, error=str(e))
            return None
        if payload is None:
            return None

        try:
            draft = json.loads(payload)
        except ValueError:
            logger.warning("draft_unreadable", key=self.storage_key)
            return None
        if not isinstance(draft, dict):
            return None
        draft.pop("savedAt", None)
        return draft

    def clear_draft(self) -> None:
        try:
            self._kv.remove(self.storage_key)
        except PersistenceError as e:
            logger.error("draft_clear_failed", key=self.storage_key, error=str(e))

    def has_draft(self) -> bool:
        try:
            return self._kv.contains(self.storage_key)
        except PersistenceError:
            return False
