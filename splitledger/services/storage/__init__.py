"""
Storage Services Package

Provides abstract interfaces and the in-memory implementation of
ledger persistence, directory lookup and the event log.
"""

from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConcurrencyConflict,
    DirectoryInterface,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    StorageError,
)
from splitledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDirectory,
    InMemoryLedgerStorage,
    InMemoryTransaction,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DirectoryInterface",
    "LedgerStorageInterface",
    "LedgerTransaction",
    # Exceptions
    "ConcurrencyConflict",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDirectory",
    "InMemoryLedgerStorage",
    "InMemoryTransaction",
]
