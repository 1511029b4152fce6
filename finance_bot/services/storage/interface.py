"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep the conversation logic ignorant of spreadsheets, ranges and rows
2. Use in-memory storage for testing and offline runs
3. Swap Google Sheets for a real database later

Two stores are involved:
- The DIRECTORY: one shared table, one row per subscriber, keyed by phone
- The LEDGERS: one spreadsheet per subscriber (movements + categories)

No operation here is atomic across calls. A read-then-write (find a row,
then update it) can race with another writer; we accept that.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from finance_bot.models.audit import AuditEvent
from finance_bot.models.ledger import (
    ProvisionedLedger,
    Subscriber,
    Transaction,
    TransactionKind,
)


# Subscriber attributes that set_fields() may write
SUBSCRIBER_FIELDS = (
    "phone",
    "email",
    "authorized",
    "ledger_id",
    "ledger_url",
    "display_name",
    "note",
)


class DirectoryStorageInterface(ABC):
    """
    Abstract interface for the subscriber directory.

    Every method takes a phone in ANY format; implementations normalize
    it before matching rows.
    """

    @abstractmethod
    async def find_by_phone(self, phone: str) -> Optional[Subscriber]:
        """
        Look up a subscriber.

        Returns:
            The subscriber if a row matches, None otherwise

        Raises:
            StorageError: If the directory can't be read
        """
        pass

    @abstractmethod
    async def set_fields(self, phone: str, fields: dict[str, Any]) -> None:
        """
        Update some attributes of an existing subscriber.

        Args:
            phone: Row key
            fields: {attribute: value}, attributes from SUBSCRIBER_FIELDS

        Raises:
            NotFoundError: If no row matches the phone
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def set_authorized(self, phone: str, value: bool) -> None:
        """
        Flip the authorization flag.

        Raises:
            NotFoundError: If no row matches the phone
        """
        pass

    @abstractmethod
    async def append(self, phone: str) -> Subscriber:
        """
        Create a new authorized subscriber row.

        Returns:
            The created subscriber
        """
        pass


class LedgerStorageInterface(ABC):
    """
    Abstract interface for per-user ledgers.

    A ledger is addressed by its opaque ledger_id (the spreadsheet id
    for Google Sheets).
    """

    @abstractmethod
    async def append_transaction(self, ledger_id: str, transaction: Transaction) -> None:
        """
        Append a movement to the ledger.

        Raises:
            StorageError: If the append fails
        """
        pass

    @abstractmethod
    async def list_recent_transactions(
        self,
        ledger_id: str,
        limit: int = 5,
    ) -> list[Transaction]:
        """
        Most recent movements, newest first.

        Raises:
            StorageError: If the ledger can't be read
        """
        pass

    @abstractmethod
    async def list_categories(self, ledger_id: str, kind: TransactionKind) -> list[str]:
        """
        Categories for a kind, in sheet order.

        Never raises: falls back to DEFAULT_CATEGORIES on read failure.
        """
        pass

    @abstractmethod
    async def add_category(self, ledger_id: str, kind: TransactionKind, name: str) -> bool:
        """
        Add a category if missing.

        Returns:
            True if added, False if a case-insensitive duplicate already existed

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def provision_ledger(self, template_id: str, display_name: str) -> ProvisionedLedger:
        """
        Clone the template into a new ledger.

        Raises:
            ProvisioningError: If the copy fails
        """
        pass

    @abstractmethod
    async def share_ledger(self, ledger_id: str, email: str) -> None:
        """Grant read-only access to an email (no notification sent)."""
        pass

    @abstractmethod
    async def initialize_dashboard(self, ledger_id: str) -> None:
        """Write the income/expense/balance summary sheet."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations (any remote store failure)."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ProvisioningError(StorageError):
    """A new ledger could not be created or configured."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
