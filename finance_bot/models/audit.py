"""
Audit Models for Finance Bot

Every significant action in the bot is logged for audit purposes:
1. Who was authorized or deauthorized, and when
2. Onboarding progress (email, name, ledger provisioning)
3. Every saved or cancelled transaction
4. Remote store failures and unexpected errors

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Administration
    SUBSCRIBER_AUTHORIZED = "subscriber_authorized"
    SUBSCRIBER_DEAUTHORIZED = "subscriber_deauthorized"
    UNAUTHORIZED_SENDER = "unauthorized_sender"

    # Onboarding
    EMAIL_REGISTERED = "email_registered"
    NAME_REGISTERED = "name_registered"
    LEDGER_PROVISIONED = "ledger_provisioned"
    LEDGER_PROVISION_FAILED = "ledger_provision_failed"
    LEDGER_SHARED = "ledger_shared"

    # Ledger activity
    CATEGORY_ADDED = "category_added"
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_CANCELLED = "transaction_cancelled"

    # System events
    STORE_FAILURE = "store_failure"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    `actor` is the canonical phone of whoever triggered the event
    (the admin for admin commands, the subscriber otherwise).
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    actor: Optional[str] = Field(
        default=None,
        description="Phone that triggered the event"
    )
    subject: Optional[str] = Field(
        default=None,
        description="Phone the event is about, when different from the actor"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor": self.actor,
            "subject": self.subject,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Columns: [event_id, timestamp, event_type, severity, actor,
                  subject, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.actor or "",
            self.subject or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "actor",
    "subject",
    "description",
    "details_json",
    "error_message",
]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.subscriber_authorized(admin, phone, created=True)
        event = AuditEventBuilder.transaction_saved(phone, transaction_id, ...)
    """

    @staticmethod
    def subscriber_authorized(actor: str, phone: str, created: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIBER_AUTHORIZED,
            actor=actor,
            subject=phone,
            description=f"Subscriber {'added and ' if created else ''}authorized: {phone}",
            details={"created": created},
        )

    @staticmethod
    def subscriber_deauthorized(actor: str, phone: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIBER_DEAUTHORIZED,
            actor=actor,
            subject=phone,
            description=f"Subscriber deauthorized: {phone}",
        )

    @staticmethod
    def unauthorized_sender(phone: str, replied: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHORIZED_SENDER,
            severity=AuditSeverity.WARNING,
            actor=phone,
            description="Message from unauthorized sender",
            details={"replied": replied},
        )

    @staticmethod
    def email_registered(phone: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMAIL_REGISTERED,
            actor=phone,
            description="Subscriber registered an email",
            details={"email": email},
        )

    @staticmethod
    def name_registered(phone: str, display_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NAME_REGISTERED,
            actor=phone,
            description=f"Subscriber registered display name: {display_name}",
        )

    @staticmethod
    def ledger_provisioned(phone: str, ledger_id: str, ledger_url: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_PROVISIONED,
            actor=phone,
            description="Ledger cloned from template",
            details={"ledger_id": ledger_id, "ledger_url": ledger_url},
        )

    @staticmethod
    def ledger_provision_failed(phone: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_PROVISION_FAILED,
            severity=AuditSeverity.ERROR,
            actor=phone,
            description="Ledger provisioning failed",
            error_message=error_message,
        )

    @staticmethod
    def ledger_shared(phone: str, ledger_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_SHARED,
            actor=phone,
            description="Ledger shared read-only with subscriber",
            details={"ledger_id": ledger_id, "email": email},
        )

    @staticmethod
    def category_added(phone: str, kind: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            actor=phone,
            description=f"Category added: {name} ({kind})",
            details={"kind": kind, "name": name},
        )

    @staticmethod
    def transaction_saved(
        phone: str,
        transaction_id: str,
        kind: str,
        category: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            actor=phone,
            description=f"Transaction saved: {kind} {amount} ({category})",
            details={
                "transaction_id": transaction_id,
                "kind": kind,
                "category": category,
                "amount": amount,
            },
        )

    @staticmethod
    def transaction_cancelled(phone: str, kind: Optional[str], amount: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CANCELLED,
            actor=phone,
            description="User cancelled a pending transaction",
            details={"kind": kind, "amount": amount},
        )

    @staticmethod
    def store_failure(
        operation: str,
        error_message: str,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_FAILURE,
            severity=AuditSeverity.ERROR,
            actor=actor,
            description=f"Remote store failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            actor=actor,
            description=f"System error: {error_type}",
            error_message=error_message,
        )
