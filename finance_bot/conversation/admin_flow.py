"""
Admin Command Flow

Single-line commands from the configured administrator:

    [admin] authorize|autorizar <phone>
    [admin] deauthorize|desautorizar <phone>
    [admin] status|estado <phone>

Anything else (including "0", "menu", "help") shows the command list.

GUARANTEES:
- Only the admin identity can change the directory
- Authorize is idempotent: append when absent, flip when present
- Deauthorize never creates rows
- Directory failures become a failure reply, never an exception
"""

import re
from typing import Callable, Optional

import structlog

from finance_bot.audit import AuditLogger
from finance_bot.conversation import messages
from finance_bot.services.storage import (
    DirectoryStorageInterface,
    NotFoundError,
    StorageError,
)
from finance_bot.validation import PhoneNormalizer


logger = structlog.get_logger(__name__)

_DIGIT = re.compile(r"\d")

AUTHORIZE = "authorize"
DEAUTHORIZE = "deauthorize"
STATUS = "status"

VERBS = {
    "authorize": AUTHORIZE,
    "autorizar": AUTHORIZE,
    "deauthorize": DEAUTHORIZE,
    "desautorizar": DEAUTHORIZE,
    "status": STATUS,
    "estado": STATUS,
}

FAILURE_LABELS = {
    AUTHORIZE: "authorize the phone",
    DEAUTHORIZE: "deauthorize the phone",
    STATUS: "read the status",
}


class AdminFlow:
    """Directory management for the single administrator."""

    def __init__(
        self,
        directory: DirectoryStorageInterface,
        admin_phone: str,
        normalizer: Optional[Callable[[str], str]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._directory = directory
        self._normalize = normalizer or PhoneNormalizer()
        self._admin = self._normalize(admin_phone)
        self._audit = audit_logger or AuditLogger()

    def is_admin(self, identity: str) -> bool:
        return bool(self._admin) and self._normalize(identity) == self._admin

    async def handle(self, identity: str, text: str) -> list[str]:
        if not self.is_admin(identity):
            logger.warning("admin_command_rejected", phone=identity)
            return [messages.admin_rejected()]

        tokens = text.split()
        if tokens and tokens[0].lower() == "admin":
            tokens = tokens[1:]
        if not tokens or tokens[0].lower() not in VERBS:
            return [messages.admin_help()]

        verb = VERBS[tokens[0].lower()]
        phone = self._normalize(" ".join(tokens[1:]))
        if not _DIGIT.search(phone):
            return [messages.admin_bad_phone()]

        try:
            if verb == AUTHORIZE:
                return [await self._authorize(phone)]
            if verb == DEAUTHORIZE:
                return [await self._deauthorize(phone)]
            return [await self._status(phone)]
        except StorageError as e:
            logger.error("admin_command_failed", verb=verb, phone=phone, error=str(e))
            await self._audit.log_store_failure(f"admin_{verb}", str(e), actor=self._admin)
            return [messages.admin_failed(FAILURE_LABELS[verb])]

    async def _authorize(self, phone: str) -> str:
        subscriber = await self._directory.find_by_phone(phone)
        created = subscriber is None
        if created:
            await self._directory.append(phone)
        elif not subscriber.authorized:
            await self._directory.set_authorized(phone, True)

        await self._audit.log_subscriber_authorized(self._admin, phone, created)
        return messages.admin_authorized(phone)

    async def _deauthorize(self, phone: str) -> str:
        try:
            await self._directory.set_authorized(phone, False)
        except NotFoundError:
            return messages.admin_not_found(phone)

        await self._audit.log_subscriber_deauthorized(self._admin, phone)
        return messages.admin_deauthorized(phone)

    async def _status(self, phone: str) -> str:
        subscriber = await self._directory.find_by_phone(phone)
        if subscriber is None:
            return messages.admin_not_found(phone)
        return messages.admin_status(subscriber)
