"""
In-Memory Storage Implementation

Same semantics as the Google Sheets stores, backed by dicts.
Used by the test-suite and by the console's --offline mode.

Nothing here survives a restart.
"""

from typing import Any, Callable, Optional

from finance_bot.models.audit import AuditEvent
from finance_bot.models.ledger import (
    DEFAULT_CATEGORIES,
    ProvisionedLedger,
    Subscriber,
    Transaction,
    TransactionKind,
)
from finance_bot.services.storage.interface import (
    SUBSCRIBER_FIELDS,
    AuditStorageInterface,
    DirectoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    ProvisioningError,
    StorageError,
)
from finance_bot.validation.normalizers import PhoneNormalizer


class InMemoryDirectoryStorage(DirectoryStorageInterface):
    """Directory kept in a dict keyed by normalized phone."""

    def __init__(
        self,
        subscribers: Optional[list[Subscriber]] = None,
        normalizer: Optional[Callable[[str], str]] = None,
    ):
        self._normalize = normalizer or PhoneNormalizer()
        self.rows: dict[str, Subscriber] = {}
        self.lookups = 0
        for subscriber in subscribers or []:
            self.rows[self._normalize(subscriber.phone)] = subscriber

    async def find_by_phone(self, phone: str) -> Optional[Subscriber]:
        self.lookups += 1
        subscriber = self.rows.get(self._normalize(phone))
        return subscriber.model_copy() if subscriber else None

    async def set_fields(self, phone: str, fields: dict[str, Any]) -> None:
        key = self._normalize(phone)
        if key not in self.rows:
            raise NotFoundError(f"Phone not found in directory: {phone}")
        unknown = set(fields) - set(SUBSCRIBER_FIELDS)
        if unknown:
            raise StorageError(f"Unknown subscriber fields: {sorted(unknown)}")
        self.rows[key] = self.rows[key].model_copy(update=fields)

    async def set_authorized(self, phone: str, value: bool) -> None:
        await self.set_fields(phone, {"authorized": value})

    async def append(self, phone: str) -> Subscriber:
        subscriber = Subscriber(phone=self._normalize(phone), authorized=True)
        self.rows[subscriber.phone] = subscriber
        return subscriber.model_copy()


class InMemoryLedger:
    """One user's ledger."""

    def __init__(self, title: str = ""):
        self.title = title
        self.transactions: list[Transaction] = []
        self.categories: dict[TransactionKind, list[str]] = {
            kind: list(names) for kind, names in DEFAULT_CATEGORIES.items()
        }
        self.shared_with: list[str] = []
        self.dashboard_ready = False


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledgers kept in a dict keyed by ledger id."""

    def __init__(self, templates: Optional[set[str]] = None):
        self.ledgers: dict[str, InMemoryLedger] = {}
        # None means "any template id is accepted"
        self._templates = templates
        self._counter = 0

    def _get(self, ledger_id: str) -> InMemoryLedger:
        try:
            return self.ledgers[ledger_id]
        except KeyError:
            raise NotFoundError(f"Ledger not found: {ledger_id}")

    async def append_transaction(self, ledger_id: str, transaction: Transaction) -> None:
        self._get(ledger_id).transactions.append(transaction)

    async def list_recent_transactions(
        self,
        ledger_id: str,
        limit: int = 5,
    ) -> list[Transaction]:
        return list(reversed(self._get(ledger_id).transactions[-limit:]))

    async def list_categories(self, ledger_id: str, kind: TransactionKind) -> list[str]:
        ledger = self.ledgers.get(ledger_id)
        if ledger is None:
            return list(DEFAULT_CATEGORIES[kind])
        return list(ledger.categories[kind])

    async def add_category(self, ledger_id: str, kind: TransactionKind, name: str) -> bool:
        names = self._get(ledger_id).categories[kind]
        wanted = name.strip().lower()
        if any(existing.lower() == wanted for existing in names):
            return False
        names.append(name.strip())
        return True

    async def provision_ledger(self, template_id: str, display_name: str) -> ProvisionedLedger:
        if self._templates is not None and template_id not in self._templates:
            raise ProvisioningError(f"Template not found: {template_id}")
        self._counter += 1
        ledger_id = f"ledger-{self._counter}"
        self.ledgers[ledger_id] = InMemoryLedger(title=display_name)
        return ProvisionedLedger.for_id(ledger_id)

    async def share_ledger(self, ledger_id: str, email: str) -> None:
        self._get(ledger_id).shared_with.append(email)

    async def initialize_dashboard(self, ledger_id: str) -> None:
        self._get(ledger_id).dashboard_ready = True


class InMemoryAuditStorage(AuditStorageInterface):
    """Collects audit events in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True
