"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The ledger blob lives on local disk; shared groups live in Google Sheets.
In-memory implementations of both stand in during tests.
"""

from finledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GroupStorageInterface,
    KeyValueStore,
    PersistenceError,
    RecordNotFoundError,
    StorageError,
)
from finledger.services.storage.local import (
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from finledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "GroupStorageInterface",
    "KeyValueStore",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "PersistenceError",
    "RecordNotFoundError",
    "StorageError",
    # Local implementations
    "InMemoryAuditStorage",
    "InMemoryGroupStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGroupStorage",
]
