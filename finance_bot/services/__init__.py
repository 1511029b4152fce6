"""
Services package.

Ledger provisioning lives in finance_bot.services.provisioning and is
imported from there (it depends on the audit logger, which depends on
storage).
"""

from finance_bot.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DirectoryStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDirectoryStorage,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryDirectoryStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    ProvisioningError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DirectoryStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDirectoryStorage",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryDirectoryStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "ProvisioningError",
    "StorageError",
]
