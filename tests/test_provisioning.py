"""
Tests for ledger provisioning.
"""

import pytest

from finance_bot.models.audit import AuditEventType
from finance_bot.models.ledger import Subscriber
from finance_bot.services.provisioning import LedgerProvisioner
from finance_bot.services.storage import InMemoryLedgerStorage, ProvisioningError, StorageError

from conftest import TEMPLATE_ID, USER_PHONE


class UnshareableLedgers(InMemoryLedgerStorage):
    """Ledgers whose sharing and dashboard calls always fail."""

    async def share_ledger(self, ledger_id: str, email: str) -> None:
        raise StorageError("sharing disabled")

    async def initialize_dashboard(self, ledger_id: str) -> None:
        raise StorageError("dashboard locked")


@pytest.fixture()
def subscriber(directory) -> Subscriber:
    subscriber = Subscriber(phone=USER_PHONE, email="ana@example.com", authorized=True)
    directory.rows[USER_PHONE] = subscriber
    return subscriber


class TestLedgerProvisioner:
    """Tests for clone-and-record."""

    @pytest.mark.asyncio
    async def test_provisions_and_records(self, provisioner, directory, ledgers, audit_storage, subscriber):
        updated, created = await provisioner.ensure_provisioned(subscriber)

        assert created is True
        assert updated.ledger_id in ledgers.ledgers
        assert directory.rows[USER_PHONE].ledger_id == updated.ledger_id
        assert directory.rows[USER_PHONE].ledger_url == updated.ledger_url

        ledger = ledgers.ledgers[updated.ledger_id]
        assert ledger.shared_with == ["ana@example.com"]
        assert ledger.dashboard_ready is True

        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.LEDGER_PROVISIONED in types
        assert AuditEventType.LEDGER_SHARED in types

    @pytest.mark.asyncio
    async def test_idempotent(self, provisioner, ledgers, subscriber):
        first, _ = await provisioner.ensure_provisioned(subscriber)
        second, created = await provisioner.ensure_provisioned(first)

        assert created is False
        assert second.ledger_id == first.ledger_id
        assert len(ledgers.ledgers) == 1

    @pytest.mark.asyncio
    async def test_no_share_without_valid_email(self, provisioner, directory, ledgers):
        subscriber = Subscriber(phone=USER_PHONE, authorized=True)
        directory.rows[USER_PHONE] = subscriber

        updated, _ = await provisioner.ensure_provisioned(subscriber)
        assert ledgers.ledgers[updated.ledger_id].shared_with == []

    @pytest.mark.asyncio
    async def test_missing_template(self, directory, ledgers, subscriber):
        provisioner = LedgerProvisioner(directory, ledgers, template_id=None)
        with pytest.raises(ProvisioningError):
            await provisioner.ensure_provisioned(subscriber)
        assert directory.rows[USER_PHONE].ledger_id is None

    @pytest.mark.asyncio
    async def test_failed_copy_leaves_directory_untouched(self, directory, subscriber):
        provisioner = LedgerProvisioner(directory, InMemoryLedgerStorage(templates=set()), TEMPLATE_ID)
        with pytest.raises(ProvisioningError):
            await provisioner.ensure_provisioned(subscriber)
        assert directory.rows[USER_PHONE].ledger_id is None

    @pytest.mark.asyncio
    async def test_share_and_dashboard_are_best_effort(self, directory, subscriber):
        ledgers = UnshareableLedgers()
        provisioner = LedgerProvisioner(directory, ledgers, TEMPLATE_ID)

        updated, created = await provisioner.ensure_provisioned(subscriber)

        assert created is True
        assert directory.rows[USER_PHONE].ledger_id == updated.ledger_id

    @pytest.mark.asyncio
    async def test_record_failure_writes_note(self, provisioner, directory, audit_storage, subscriber):
        await provisioner.record_failure(subscriber, ProvisioningError("x" * 300))

        note = directory.rows[USER_PHONE].note
        assert note.startswith("Ledger provisioning failed")
        assert len(note) == 200
        assert audit_storage.events[-1].event_type == AuditEventType.LEDGER_PROVISION_FAILED

    @pytest.mark.asyncio
    async def test_record_failure_for_unknown_phone_does_not_raise(self, provisioner):
        stranger = Subscriber(phone="+51988888888")
        await provisioner.record_failure(stranger, ProvisioningError("boom"))
