"""
Tests for the message dispatcher (routing, authorization, error boundary).
"""

import asyncio

import pytest

from finance_bot.conversation import Dispatcher, SessionStore
from finance_bot.models.audit import AuditEventType
from finance_bot.models.ledger import TransactionKind
from finance_bot.services.storage import StorageError

from conftest import ADMIN_PHONE, USER_LEDGER_ID, USER_PHONE, FakeMessage


class ExplodingFlow:
    """Stands in for UserFlow and raises whatever it was given."""

    def __init__(self, error: Exception):
        self.error = error

    async def handle(self, subscriber, text):
        raise self.error


class TestRouting:
    """Tests for who reaches which flow."""

    @pytest.mark.asyncio
    async def test_unauthorized_is_silent_and_looked_up_once(self, dispatcher, directory, ledgers, audit_storage):
        message = FakeMessage("51911111111@c.us", "gasto 10 comida")
        replies = await dispatcher.handle(message)

        assert replies == []
        assert message.replies == []
        assert directory.lookups == 1
        assert all(not ledger.transactions for ledger in ledgers.ledgers.values())
        assert "+51911111111" not in dispatcher.sessions
        assert dispatcher.sessions.lock_count == 0
        assert audit_storage.events[-1].event_type == AuditEventType.UNAUTHORIZED_SENDER

    @pytest.mark.asyncio
    async def test_unauthorized_rejection_when_configured(self, directory, user_flow, admin_flow, sessions):
        dispatcher = Dispatcher(
            directory,
            user_flow,
            admin_flow,
            sessions,
            reply_to_unauthorized=True,
            unauthorized_message="Not allowed",
        )
        message = FakeMessage("51911111111@c.us", "hola")
        await dispatcher.handle(message)

        assert message.replies == ["Not allowed"]

    @pytest.mark.asyncio
    async def test_deauthorized_subscriber_is_unauthorized(self, dispatcher, directory, onboarded):
        directory.rows[USER_PHONE] = onboarded.model_copy(update={"authorized": False})
        message = FakeMessage("51999999999@c.us", "2")

        assert await dispatcher.handle(message) == []

    @pytest.mark.asyncio
    async def test_group_chat_is_ignored(self, dispatcher, directory):
        message = FakeMessage("120363025246125486@g.us", "hola")
        assert await dispatcher.handle(message) == []
        assert directory.lookups == 0

    @pytest.mark.asyncio
    async def test_authorized_reaches_user_flow(self, dispatcher, onboarded):
        message = FakeMessage("51999999999@c.us", "2")
        await dispatcher.handle(message)

        assert "99) Add new category" in message.replies[0]

    @pytest.mark.asyncio
    async def test_admin_scenario(self, dispatcher, directory):
        """authorize a new phone, then its status reports authorized."""
        first = FakeMessage("51900000000@c.us", "authorize +51999999999")
        await dispatcher.handle(first)
        assert directory.rows[USER_PHONE].authorized is True

        second = FakeMessage(ADMIN_PHONE, "status +51999999999")
        await dispatcher.handle(second)
        assert "Authorized: Yes" in second.replies[0]

    @pytest.mark.asyncio
    async def test_one_shot_through_dispatcher(self, dispatcher, ledgers, onboarded):
        await dispatcher.handle(FakeMessage("51999999999@c.us", "ingreso 1200 sueldo septiembre"))

        saved = ledgers.ledgers[USER_LEDGER_ID].transactions[0]
        assert saved.kind is TransactionKind.INCOME
        assert saved.category == "sueldo"
        assert saved.detail == "septiembre"

    @pytest.mark.asyncio
    async def test_messages_from_one_identity_are_serialized(self, dispatcher, ledgers, onboarded):
        texts = ["2", "1", "10", "1"]
        await asyncio.gather(*(
            dispatcher.handle(FakeMessage("51999999999@c.us", text)) for text in texts
        ))

        transactions = ledgers.ledgers[USER_LEDGER_ID].transactions
        assert len(transactions) == 1
        assert transactions[0].category == "Food"
        assert dispatcher.sessions.lock_count == 0


class TestErrorBoundary:
    """Tests that nothing escapes handle()."""

    @pytest.mark.asyncio
    async def test_store_failure_gets_apology(self, directory, admin_flow, sessions, audit_logger, audit_storage, onboarded):
        dispatcher = Dispatcher(
            directory, ExplodingFlow(StorageError("timeout")), admin_flow, sessions,
            audit_logger=audit_logger,
        )
        message = FakeMessage("51999999999@c.us", "2")
        await dispatcher.handle(message)

        assert "can't reach your data" in message.replies[0]
        assert audit_storage.events[-1].event_type == AuditEventType.STORE_FAILURE

    @pytest.mark.asyncio
    async def test_unexpected_error_gets_generic_reply(self, directory, admin_flow, sessions, audit_logger, audit_storage, onboarded):
        dispatcher = Dispatcher(
            directory, ExplodingFlow(KeyError("boom")), admin_flow, sessions,
            audit_logger=audit_logger,
        )
        message = FakeMessage("51999999999@c.us", "2")
        await dispatcher.handle(message)

        assert "unexpected error" in message.replies[0]
        assert audit_storage.events[-1].event_type == AuditEventType.SYSTEM_ERROR

    @pytest.mark.asyncio
    async def test_reply_failure_is_swallowed(self, dispatcher, onboarded):
        class DeadTransport(FakeMessage):
            async def reply(self, text):
                raise RuntimeError("socket closed")

        replies = await dispatcher.handle(DeadTransport("51999999999@c.us", "0"))
        assert replies


class TestSessionStore:
    """Tests for the in-memory session map."""

    def test_get_or_menu(self):
        store = SessionStore()
        assert store.get("+51999999999") is None
        assert store.get_or_menu("+51999999999").step.value == "MENU"
        assert len(store) == 0

    def test_lock_is_per_identity(self):
        store = SessionStore()
        assert store.lock("a") is store.lock("a")
        assert store.lock("a") is not store.lock("b")

    @pytest.mark.asyncio
    async def test_exclusive_serializes_and_forgets_idle_locks(self):
        store = SessionStore()
        order = []

        async def work(tag):
            async with store.exclusive("a"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0)
                order.append(f"{tag}-out")

        await asyncio.gather(work(1), work(2))

        assert order == ["1-in", "1-out", "2-in", "2-out"]
        assert store.lock_count == 0

    @pytest.mark.asyncio
    async def test_exclusive_releases_on_error(self):
        store = SessionStore()
        with pytest.raises(RuntimeError):
            async with store.exclusive("a"):
                raise RuntimeError("boom")
        assert store.lock_count == 0
