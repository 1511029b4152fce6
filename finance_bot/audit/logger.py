"""
Audit Logger

DESIGN DECISION: Every significant action in the bot is logged.
This provides:
1. Traceability of who authorized whom
2. Debugging capability when a conversation goes wrong
3. A record of what was written to each ledger

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't break a conversation if logging fails)
"""

from typing import Optional

import structlog

from finance_bot.models.audit import AuditEvent, AuditEventBuilder
from finance_bot.models.ledger import Transaction
from finance_bot.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Google Sheets audit sheet (when enabled)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_bot.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_subscriber_authorized(self, admin: str, phone: str, created: bool) -> None:
        await self.log(AuditEventBuilder.subscriber_authorized(admin, phone, created))

    async def log_subscriber_deauthorized(self, admin: str, phone: str) -> None:
        await self.log(AuditEventBuilder.subscriber_deauthorized(admin, phone))

    async def log_unauthorized_sender(self, phone: str, replied: bool) -> None:
        await self.log(AuditEventBuilder.unauthorized_sender(phone, replied))

    async def log_email_registered(self, phone: str, email: str) -> None:
        await self.log(AuditEventBuilder.email_registered(phone, email))

    async def log_name_registered(self, phone: str, display_name: str) -> None:
        await self.log(AuditEventBuilder.name_registered(phone, display_name))

    async def log_ledger_provisioned(self, phone: str, ledger_id: str, ledger_url: str) -> None:
        await self.log(AuditEventBuilder.ledger_provisioned(phone, ledger_id, ledger_url))

    async def log_ledger_provision_failed(self, phone: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.ledger_provision_failed(phone, error_message))

    async def log_ledger_shared(self, phone: str, ledger_id: str, email: str) -> None:
        await self.log(AuditEventBuilder.ledger_shared(phone, ledger_id, email))

    async def log_category_added(self, phone: str, kind: str, name: str) -> None:
        await self.log(AuditEventBuilder.category_added(phone, kind, name))

    async def log_transaction_saved(self, phone: str, transaction: Transaction) -> None:
        """Log a movement appended to a ledger."""
        await self.log(AuditEventBuilder.transaction_saved(
            phone=phone,
            transaction_id=transaction.id,
            kind=transaction.kind.value,
            category=transaction.category,
            amount=str(transaction.amount),
        ))

    async def log_transaction_cancelled(
        self,
        phone: str,
        kind: Optional[str],
        amount: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_cancelled(phone, kind, amount))

    async def log_store_failure(
        self,
        operation: str,
        error_message: str,
        actor: Optional[str] = None,
    ) -> None:
        """Log a failed Directory/Ledger call."""
        await self.log(AuditEventBuilder.store_failure(operation, error_message, actor))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        actor: Optional[str] = None,
    ) -> None:
        """Log an unexpected error."""
        await self.log(AuditEventBuilder.system_error(error_type, error_message, actor))
