"""Services package."""

from splitledger.services.storage import (
    AuditStorageInterface,
    ConcurrencyConflict,
    DirectoryInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryDirectory,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConcurrencyConflict",
    "DirectoryInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryDirectory",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "LedgerTransaction",
    "NotFoundError",
    "StorageError",
]
