"""
Message Dispatcher

Entry point for every inbound chat message.

FLOW:
1. Drop group chats (configurable)
2. Normalize the sender to its canonical identity
3. Admin identity -> AdminFlow
4. Everyone else -> one directory lookup
   - unknown or unauthorized -> silence or rejection (audited)
   - authorized -> UserFlow, serialized per identity
5. Send the replies in order

DESIGN DECISION: This is the error boundary. Nothing raised while handling
one message escapes handle(); the sender gets a best-effort apology and
the failure is logged. One broken conversation never stops the process.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog

from finance_bot.audit import AuditLogger
from finance_bot.config import Settings, get_settings
from finance_bot.conversation import messages
from finance_bot.conversation.admin_flow import AdminFlow
from finance_bot.conversation.session_store import SessionStore
from finance_bot.conversation.user_flow import UserFlow
from finance_bot.services.provisioning import LedgerProvisioner
from finance_bot.services.storage import (
    DirectoryStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDirectoryStorage,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryDirectoryStorage,
    InMemoryLedgerStorage,
    StorageError,
)
from finance_bot.validation import PhoneNormalizer, is_group_chat


logger = structlog.get_logger(__name__)

OFFLINE_TEMPLATE_ID = "offline-template"


class InboundMessage(ABC):
    """
    One message as handed over by a transport.

    Transports wrap their own message type in a subclass; nothing past
    the dispatcher sees transport types.
    """

    @property
    @abstractmethod
    def sender(self) -> str:
        """Raw sender id, e.g. '51999999999@c.us'."""
        pass

    @property
    @abstractmethod
    def text(self) -> str:
        pass

    @abstractmethod
    async def reply(self, text: str) -> None:
        """Send a text back to the sender."""
        pass


class Dispatcher:
    """Routes inbound messages to the admin or user flow."""

    def __init__(
        self,
        directory: DirectoryStorageInterface,
        user_flow: UserFlow,
        admin_flow: AdminFlow,
        sessions: SessionStore,
        normalizer: Optional[Callable[[str], str]] = None,
        audit_logger: Optional[AuditLogger] = None,
        reply_to_unauthorized: bool = False,
        unauthorized_message: str = messages.not_authorized(),
        ignore_group_messages: bool = True,
    ):
        self._directory = directory
        self._user_flow = user_flow
        self._admin_flow = admin_flow
        self._sessions = sessions
        self._normalize = normalizer or PhoneNormalizer()
        self._audit = audit_logger or AuditLogger()
        self._reply_to_unauthorized = reply_to_unauthorized
        self._unauthorized_message = unauthorized_message
        self._ignore_groups = ignore_group_messages

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def handle(self, message: InboundMessage) -> list[str]:
        """
        Handle one inbound message.

        Returns the replies that were sent (empty when the message was
        dropped). Never raises.
        """
        if self._ignore_groups and is_group_chat(message.sender):
            logger.debug("group_message_ignored", sender=message.sender)
            return []

        identity = self._normalize(message.sender)
        text = (message.text or "").strip()
        if not identity or not text:
            return []

        try:
            if self._admin_flow.is_admin(identity):
                replies = await self._admin_flow.handle(identity, text)
            else:
                replies = await self._handle_subscriber(identity, text)
        except StorageError as e:
            logger.error("store_failure", phone=identity, error=str(e))
            await self._audit.log_store_failure("handle_message", str(e), actor=identity)
            replies = [messages.store_unavailable()]
        except Exception as e:
            logger.exception("message_handling_failed", phone=identity)
            await self._audit.log_error(type(e).__name__, str(e), actor=identity)
            replies = [messages.unexpected_error()]

        for reply in replies:
            await self._send(message, reply)
        return replies

    async def _handle_subscriber(self, identity: str, text: str) -> list[str]:
        # Lookup happens under the lock so it sees the previous message's writes
        async with self._sessions.exclusive(identity):
            subscriber = await self._directory.find_by_phone(identity)
            if subscriber is None or not subscriber.authorized:
                await self._audit.log_unauthorized_sender(identity, self._reply_to_unauthorized)
                if self._reply_to_unauthorized:
                    return [self._unauthorized_message]
                return []

            return await self._user_flow.handle(subscriber, text)

    async def _send(self, message: InboundMessage, text: str) -> None:
        try:
            await message.reply(text)
        except Exception as e:
            logger.error("reply_failed", sender=message.sender, error=str(e))


def build_dispatcher(
    settings: Optional[Settings] = None,
    offline: bool = False,
) -> Dispatcher:
    """
    Factory function to wire stores, audit logger and flows.

    Args:
        settings: Root settings. Defaults to get_settings().
        offline: Use in-memory stores instead of Google Sheets
                 (Google Sheets settings are not read at all).

    Returns:
        A ready Dispatcher
    """
    settings = settings or get_settings()
    bot = settings.bot
    app = settings.app
    normalizer = PhoneNormalizer.from_settings(bot)

    if offline:
        directory = InMemoryDirectoryStorage(normalizer=normalizer)
        ledgers = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
        provisioner = LedgerProvisioner(
            directory,
            ledgers,
            template_id=OFFLINE_TEMPLATE_ID,
            audit_logger=audit_logger,
        )
    else:
        sheets = settings.google_sheets
        client = GoogleSheetsClient(sheets)
        directory = GoogleSheetsDirectoryStorage(client, normalizer=normalizer)
        ledgers = GoogleSheetsLedgerStorage(client)
        audit_logger = AuditLogger(
            GoogleSheetsAuditStorage(client) if sheets.audit_enabled else None
        )
        provisioner = LedgerProvisioner(
            directory,
            ledgers,
            template_id=sheets.template_spreadsheet_id,
            share_with_subscriber=sheets.share_with_subscriber,
            initialize_dashboard=sheets.initialize_dashboard,
            audit_logger=audit_logger,
        )

    sessions = SessionStore()
    user_flow = UserFlow(
        directory,
        ledgers,
        sessions,
        provisioner,
        audit_logger=audit_logger,
        timezone=bot.timezone,
        recent_limit=app.recent_movements_limit,
    )
    admin_flow = AdminFlow(
        directory,
        admin_phone=bot.admin_phone,
        normalizer=normalizer,
        audit_logger=audit_logger,
    )

    logger.info("dispatcher_ready", offline=offline, environment=app.app_environment)
    return Dispatcher(
        directory,
        user_flow,
        admin_flow,
        sessions,
        normalizer=normalizer,
        audit_logger=audit_logger,
        reply_to_unauthorized=bot.reply_to_unauthorized,
        unauthorized_message=bot.unauthorized_message,
        ignore_group_messages=bot.ignore_group_messages,
    )
