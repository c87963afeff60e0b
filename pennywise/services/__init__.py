"""Services package."""

from pennywise.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GoogleSheetsUserStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    InMemoryUserStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "GoogleSheetsUserStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "InMemoryUserStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
    "UserStorageInterface",
]
