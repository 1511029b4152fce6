"""
Core Data Models for Finance Bot

These models define the schemas for the data the bot reads and writes:
1. Subscriber - one row of the shared directory
2. Transaction - one movement appended to a user's ledger
3. ProvisionedLedger - handle + locator of a freshly cloned ledger

DESIGN DECISION: Spreadsheet encodings ("TRUE"/"FALSE", text amounts)
stay at the storage adapter boundary. Inside the bot, authorized is a real
bool and amounts are Decimals.
"""

import secrets
import time
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """
    Transaction classification.

    The kind alone decides the sign of the stored amount.
    """
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    @property
    def sign(self) -> int:
        return 1 if self is TransactionKind.INCOME else -1

    @property
    def label(self) -> str:
        return "Income" if self is TransactionKind.INCOME else "Expense"

    @classmethod
    def from_keyword(cls, keyword: str) -> Optional["TransactionKind"]:
        """Map a one-shot command keyword (es/en) to a kind."""
        return _KIND_KEYWORDS.get(keyword.strip().lower())


_KIND_KEYWORDS = {
    "ingreso": TransactionKind.INCOME,
    "income": TransactionKind.INCOME,
    "gasto": TransactionKind.EXPENSE,
    "expense": TransactionKind.EXPENSE,
}


# Seed list for new ledgers, and fallback when the category sheet can't be read
DEFAULT_CATEGORIES: dict[TransactionKind, list[str]] = {
    TransactionKind.EXPENSE: [
        "Food",
        "Transport",
        "Housing",
        "Utilities",
        "Health",
        "Entertainment",
        "Other",
    ],
    TransactionKind.INCOME: [
        "Salary",
        "Freelance",
        "Sales",
        "Other",
    ],
}

# Category used by one-shot commands when the user omits it
DEFAULT_ONE_SHOT_CATEGORY: dict[TransactionKind, str] = {
    TransactionKind.EXPENSE: "Expense",
    TransactionKind.INCOME: "Income",
}


# =============================================================================
# IDENTIFIERS
# =============================================================================

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def generate_transaction_id() -> str:
    """
    Short, time-ordered transaction id.

    Milliseconds since epoch in base36 followed by 4 random base36 chars.
    Ids sort chronologically and don't collide at chat volumes.
    """
    millis = time.time_ns() // 1_000_000
    suffix = _to_base36(secrets.randbelow(36 ** 4)).rjust(4, "0")
    return f"{_to_base36(millis)}{suffix}"


def ledger_url_for(ledger_id: str) -> str:
    """Human-facing locator derived from the ledger handle."""
    return f"https://docs.google.com/spreadsheets/d/{ledger_id}/edit"


# =============================================================================
# SUBSCRIBER
# =============================================================================

class Subscriber(BaseModel):
    """
    One row of the subscriber directory.

    phone is the canonical identity and the row key.
    ledger_id is written once, by provisioning.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    phone: str = Field(
        ...,
        min_length=1,
        description="Canonical phone identity (+<digits>)"
    )
    email: Optional[str] = None
    authorized: bool = False
    ledger_id: Optional[str] = Field(
        default=None,
        description="Handle of the user's ledger spreadsheet"
    )
    ledger_url: Optional[str] = None
    display_name: Optional[str] = Field(
        default=None,
        max_length=60
    )
    note: Optional[str] = None

    @property
    def has_valid_email(self) -> bool:
        # Imported lazily: validation depends on models
        from finance_bot.validation.normalizers import is_valid_email
        return is_valid_email(self.email)

    @property
    def has_ledger(self) -> bool:
        return bool(self.ledger_id)

    @property
    def has_display_name(self) -> bool:
        return bool(self.display_name and self.display_name.strip())


class ProvisionedLedger(BaseModel):
    """Result of cloning the ledger template."""

    ledger_id: str = Field(..., min_length=1)
    ledger_url: str

    @classmethod
    def for_id(cls, ledger_id: str) -> "ProvisionedLedger":
        return cls(ledger_id=ledger_id, ledger_url=ledger_url_for(ledger_id))


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A confirmed movement.

    CRITICAL: amount sign MUST match kind (expense < 0, income > 0).
    Use Transaction.create() so the sign is derived, never supplied.
    Transactions are immutable once appended.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=generate_transaction_id,
        min_length=1,
        description="Time-ordered transaction id"
    )
    date: date
    kind: TransactionKind
    category: str = Field(
        ...,
        min_length=1,
        max_length=60
    )
    amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Signed amount: negative for expenses"
    )
    detail: str = Field(
        default="",
        max_length=500
    )

    @model_validator(mode='after')
    def validate_sign(self) -> 'Transaction':
        """The amount's sign is dictated by the kind."""
        if self.amount == 0:
            raise ValueError("Amount must not be zero")
        if (self.amount > 0) != (self.kind is TransactionKind.INCOME):
            raise ValueError(
                f"Amount sign does not match kind {self.kind.value}: {self.amount}"
            )
        return self

    @classmethod
    def create(
        cls,
        kind: TransactionKind,
        category: str,
        magnitude: Decimal,
        today: date,
        detail: str = "",
    ) -> "Transaction":
        """Build a transaction with a fresh id and the sign derived from kind."""
        from finance_bot.validation.amount import signed_amount
        return cls(
            date=today,
            kind=kind,
            category=category,
            amount=signed_amount(magnitude, kind),
            detail=detail,
        )

    def to_sheets_row(self) -> list:
        """
        Columns: [id, date, kind, category, amount, detail]
        """
        return [
            self.id,
            self.date.isoformat(),
            self.kind.value,
            self.category,
            float(self.amount),
            self.detail,
        ]

    @classmethod
    def from_sheets_row(cls, row: list) -> "Transaction":
        def safe_get(index: int, default: str = "") -> str:
            try:
                value = row[index]
            except IndexError:
                return default
            return default if value is None or value == "" else str(value)

        return cls(
            id=safe_get(0),
            date=date.fromisoformat(safe_get(1)),
            kind=TransactionKind(safe_get(2).upper()),
            category=safe_get(3),
            amount=Decimal(safe_get(4).replace(",", "")).quantize(Decimal("0.01")),
            detail=safe_get(5),
        )
