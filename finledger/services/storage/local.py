"""
Local Storage Implementations

- JsonFileKeyValueStore: the ledger blob on local disk, one file per key
- InMemoryKeyValueStore: same contract, kept in a dict (tests, dry runs)
- InMemoryGroupStorage: the group tables kept in dicts
- InMemoryAuditStorage: append-only list of audit events

The local blob is written with a write-then-rename so a crash mid-write
never leaves a half-written ledger behind.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from finledger.models.audit import AuditEvent
from finledger.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStore,
    PersistenceError,
)
from finledger.services.storage.tables import (
    GROUP_TABLES,
    Record,
    TableBackedGroupStorage,
)


SAFE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")


class JsonFileKeyValueStore(KeyValueStore):
    """
    Key-value store backed by a directory of JSON files.

    ``financeState_v3`` lives in ``<data_dir>/financeState_v3.json``.
    """

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    def _path_for(self, key: str) -> Path:
        if not SAFE_KEY_PATTERN.match(key):
            raise PersistenceError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._data_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}")

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove {path}: {e}")


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed key-value store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class InMemoryGroupStorage(TableBackedGroupStorage):
    """Group tables kept in insertion-ordered dicts keyed by row id."""

    def __init__(self):
        self._tables: dict[str, dict[UUID, BaseModel]] = {
            name: {} for name in GROUP_TABLES
        }

    def _insert(self, table: str, record: BaseModel) -> None:
        self._tables[table][record.id] = record

    def _replace(self, table: str, record: BaseModel) -> bool:
        rows = self._tables[table]
        if record.id not in rows:
            return False
        rows[record.id] = record
        return True

    def _delete(self, table: str, record_id: UUID) -> bool:
        return self._tables[table].pop(record_id, None) is not None

    def _rows(self, table: str, model: type[Record]) -> list[Record]:
        return list(self._tables[table].values())


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events kept in a list, oldest first."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
