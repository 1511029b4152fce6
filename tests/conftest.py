"""
Shared fixtures.

Every fixture wires in-memory stores; no test talks to Google.
"""

from datetime import date

import pytest

from finance_bot.audit import AuditLogger
from finance_bot.conversation import AdminFlow, Dispatcher, InboundMessage, SessionStore, UserFlow
from finance_bot.models.ledger import ProvisionedLedger, Subscriber
from finance_bot.services.provisioning import LedgerProvisioner
from finance_bot.services.storage import (
    InMemoryAuditStorage,
    InMemoryDirectoryStorage,
    InMemoryLedgerStorage,
)
from finance_bot.services.storage.memory import InMemoryLedger


ADMIN_PHONE = "+51900000000"
USER_PHONE = "+51999999999"
TEMPLATE_ID = "template-1"
USER_LEDGER_ID = "ledger-ana"
TODAY = date(2024, 9, 15)


class FakeMessage(InboundMessage):
    """Records replies instead of sending them."""

    def __init__(self, sender: str, text: str):
        self._sender = sender
        self._text = text
        self.replies: list[str] = []

    @property
    def sender(self) -> str:
        return self._sender

    @property
    def text(self) -> str:
        return self._text

    async def reply(self, text: str) -> None:
        self.replies.append(text)


@pytest.fixture()
def directory() -> InMemoryDirectoryStorage:
    return InMemoryDirectoryStorage()


@pytest.fixture()
def ledgers() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage(templates={TEMPLATE_ID})


@pytest.fixture()
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture()
def audit_logger(audit_storage: InMemoryAuditStorage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture()
def sessions() -> SessionStore:
    return SessionStore()


@pytest.fixture()
def provisioner(directory, ledgers, audit_logger) -> LedgerProvisioner:
    return LedgerProvisioner(directory, ledgers, TEMPLATE_ID, audit_logger=audit_logger)


@pytest.fixture()
def user_flow(directory, ledgers, sessions, provisioner, audit_logger) -> UserFlow:
    return UserFlow(
        directory,
        ledgers,
        sessions,
        provisioner,
        audit_logger=audit_logger,
        today=lambda: TODAY,
    )


@pytest.fixture()
def admin_flow(directory, audit_logger) -> AdminFlow:
    return AdminFlow(directory, ADMIN_PHONE, audit_logger=audit_logger)


@pytest.fixture()
def dispatcher(directory, user_flow, admin_flow, sessions, audit_logger) -> Dispatcher:
    return Dispatcher(
        directory,
        user_flow,
        admin_flow,
        sessions,
        audit_logger=audit_logger,
    )


@pytest.fixture()
def onboarded(directory, ledgers) -> Subscriber:
    """An authorized subscriber with email, name and a ledger."""
    ledgers.ledgers[USER_LEDGER_ID] = InMemoryLedger("Ana")
    ledger = ProvisionedLedger.for_id(USER_LEDGER_ID)
    subscriber = Subscriber(
        phone=USER_PHONE,
        email="ana@example.com",
        authorized=True,
        ledger_id=ledger.ledger_id,
        ledger_url=ledger.ledger_url,
        display_name="Ana",
    )
    directory.rows[USER_PHONE] = subscriber
    return subscriber
