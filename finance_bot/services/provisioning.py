"""
Ledger Provisioning

Creates a subscriber's personal ledger by cloning the template
spreadsheet, then records its handle in the directory.

GUARANTEES:
- Idempotent: a subscriber that already has a ledger_id is left alone
- The directory is only written after the copy succeeded
- Dashboard setup and sharing are best-effort: their failures are
  logged, never raised (the ledger exists and is usable without them)
"""

from typing import Optional

import structlog

from finance_bot.audit import AuditLogger
from finance_bot.models.ledger import Subscriber
from finance_bot.services.storage import (
    DirectoryStorageInterface,
    LedgerStorageInterface,
    ProvisioningError,
    StorageError,
)


logger = structlog.get_logger(__name__)

MAX_NOTE_LENGTH = 200


class LedgerProvisioner:
    """Clone-template-and-record, shared by onboarding and the user flow."""

    def __init__(
        self,
        directory: DirectoryStorageInterface,
        ledgers: LedgerStorageInterface,
        template_id: Optional[str],
        share_with_subscriber: bool = True,
        initialize_dashboard: bool = True,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._directory = directory
        self._ledgers = ledgers
        self._template_id = template_id
        self._share = share_with_subscriber
        self._dashboard = initialize_dashboard
        self._audit = audit_logger or AuditLogger()

    @staticmethod
    def _ledger_title(subscriber: Subscriber) -> str:
        return (subscriber.display_name or "").strip() or subscriber.phone.strip() or "User"

    async def ensure_provisioned(self, subscriber: Subscriber) -> tuple[Subscriber, bool]:
        """
        Make sure the subscriber has a ledger.

        Returns:
            (subscriber with ledger fields set, created)

        Raises:
            ProvisioningError: No template configured, or the copy failed
            StorageError: The directory could not be updated
        """
        if subscriber.has_ledger:
            return subscriber, False

        if not self._template_id:
            raise ProvisioningError("Ledger template id is not configured")

        provisioned = await self._ledgers.provision_ledger(
            self._template_id,
            self._ledger_title(subscriber),
        )
        await self._directory.set_fields(subscriber.phone, {
            "ledger_id": provisioned.ledger_id,
            "ledger_url": provisioned.ledger_url,
        })
        subscriber = subscriber.model_copy(update={
            "ledger_id": provisioned.ledger_id,
            "ledger_url": provisioned.ledger_url,
        })
        await self._audit.log_ledger_provisioned(
            subscriber.phone,
            provisioned.ledger_id,
            provisioned.ledger_url,
        )

        if self._dashboard:
            try:
                await self._ledgers.initialize_dashboard(provisioned.ledger_id)
            except StorageError as e:
                logger.warning(
                    "dashboard_init_failed",
                    ledger_id=provisioned.ledger_id,
                    error=str(e),
                )

        if self._share and subscriber.has_valid_email:
            try:
                await self._ledgers.share_ledger(provisioned.ledger_id, subscriber.email)
                await self._audit.log_ledger_shared(
                    subscriber.phone,
                    provisioned.ledger_id,
                    subscriber.email,
                )
            except StorageError as e:
                logger.warning(
                    "ledger_share_failed",
                    ledger_id=provisioned.ledger_id,
                    email=subscriber.email,
                    error=str(e),
                )

        return subscriber, True

    async def record_failure(self, subscriber: Subscriber, error: Exception) -> None:
        """
        Leave a trace of a failed provisioning where the admin looks.

        The note shows up in the admin's status command.
        """
        message = str(error)
        await self._audit.log_ledger_provision_failed(subscriber.phone, message)
        try:
            await self._directory.set_fields(subscriber.phone, {
                "note": f"Ledger provisioning failed: {message}"[:MAX_NOTE_LENGTH],
            })
        except StorageError as e:
            logger.warning("provision_note_failed", phone=subscriber.phone, error=str(e))
