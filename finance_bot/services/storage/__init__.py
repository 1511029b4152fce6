"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the
subscriber directory and the per-user ledgers.
Google Sheets is the production backend; the in-memory one backs tests
and offline runs.
"""

from finance_bot.services.storage.interface import (
    SUBSCRIBER_FIELDS,
    AuditStorageInterface,
    ConnectionError,
    DirectoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    ProvisioningError,
    StorageError,
)
from finance_bot.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDirectoryStorage,
    GoogleSheetsLedgerStorage,
)
from finance_bot.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDirectoryStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    "SUBSCRIBER_FIELDS",
    # Interfaces
    "AuditStorageInterface",
    "DirectoryStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "ProvisioningError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDirectoryStorage",
    "GoogleSheetsLedgerStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDirectoryStorage",
    "InMemoryLedgerStorage",
]
