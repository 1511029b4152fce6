"""
Data Models Package

This package contains all Pydantic models used by the Finance Bot.
All data flowing between the conversation and the stores conforms to these schemas.
"""

from finance_bot.models.ledger import (
    DEFAULT_CATEGORIES,
    DEFAULT_ONE_SHOT_CATEGORY,
    ProvisionedLedger,
    Subscriber,
    Transaction,
    TransactionKind,
    generate_transaction_id,
    ledger_url_for,
)
from finance_bot.models.session import Session, SessionStep
from finance_bot.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORIES",
    "DEFAULT_ONE_SHOT_CATEGORY",
    "ProvisionedLedger",
    "Subscriber",
    "Transaction",
    "TransactionKind",
    "generate_transaction_id",
    "ledger_url_for",
    # Session models
    "Session",
    "SessionStep",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
