"""
Tests for Finance Bot models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with in-memory stores)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal

from finance_bot.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_bot.models.ledger import (
    ProvisionedLedger,
    Subscriber,
    Transaction,
    TransactionKind,
    generate_transaction_id,
    ledger_url_for,
)
from finance_bot.models.session import Session, SessionStep


class TestTransactionKind:
    """Tests for the kind enum."""

    def test_sign(self):
        assert TransactionKind.INCOME.sign == 1
        assert TransactionKind.EXPENSE.sign == -1

    def test_from_keyword_is_bilingual(self):
        assert TransactionKind.from_keyword("gasto") is TransactionKind.EXPENSE
        assert TransactionKind.from_keyword("EXPENSE") is TransactionKind.EXPENSE
        assert TransactionKind.from_keyword("Ingreso") is TransactionKind.INCOME
        assert TransactionKind.from_keyword("income") is TransactionKind.INCOME

    def test_from_keyword_unknown(self):
        assert TransactionKind.from_keyword("transfer") is None


class TestTransaction:
    """Tests for the Transaction model."""

    def test_create_derives_negative_sign_for_expense(self):
        """Test that an expense is stored negative whatever the input sign."""
        t = Transaction.create(TransactionKind.EXPENSE, "Taxi", Decimal("25.50"), date(2024, 9, 1))
        assert t.amount == Decimal("-25.50")
        assert t.kind is TransactionKind.EXPENSE

    def test_create_derives_positive_sign_for_income(self):
        t = Transaction.create(TransactionKind.INCOME, "Salary", Decimal("-1200"), date(2024, 9, 1))
        assert t.amount == Decimal("1200.00")

    def test_rejects_sign_mismatch(self):
        """Test that an expense with a positive amount is rejected."""
        with pytest.raises(ValueError):
            Transaction(
                date=date(2024, 9, 1),
                kind=TransactionKind.EXPENSE,
                category="Food",
                amount=Decimal("10.00"),
            )

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            Transaction.create(TransactionKind.INCOME, "Salary", Decimal("0"), date(2024, 9, 1))

    def test_rejects_long_category(self):
        with pytest.raises(ValueError):
            Transaction.create(TransactionKind.INCOME, "x" * 61, Decimal("1"), date(2024, 9, 1))

    def test_is_immutable(self):
        t = Transaction.create(TransactionKind.INCOME, "Salary", Decimal("1"), date(2024, 9, 1))
        with pytest.raises(ValueError):
            t.category = "Other"

    def test_fresh_ids(self):
        ids = {generate_transaction_id() for _ in range(200)}
        assert len(ids) == 200

    def test_to_sheets_row(self):
        """Test conversion to sheets row."""
        t = Transaction.create(
            TransactionKind.EXPENSE, "Food", Decimal("12.5"), date(2024, 9, 1), detail="lunch"
        )
        row = t.to_sheets_row()
        assert row == [t.id, "2024-09-01", "EXPENSE", "Food", -12.5, "lunch"]

    def test_from_sheets_row(self):
        t = Transaction.from_sheets_row(["ABC", "2024-09-01", "income", "Salary", "1,200.00"])
        assert t.id == "ABC"
        assert t.kind is TransactionKind.INCOME
        assert t.amount == Decimal("1200.00")
        assert t.detail == ""

    def test_from_sheets_row_numeric_amount(self):
        t = Transaction.from_sheets_row(["ABC", "2024-09-01", "EXPENSE", "Food", -25.5, "taxi"])
        assert t.amount == Decimal("-25.50")
        assert t.detail == "taxi"


class TestSubscriber:
    """Tests for the directory row model."""

    def test_defaults(self):
        s = Subscriber(phone="+51999999999")
        assert s.authorized is False
        assert not s.has_ledger
        assert not s.has_display_name
        assert not s.has_valid_email

    def test_valid_email(self):
        assert Subscriber(phone="+51999999999", email="ana@example.com").has_valid_email
        assert not Subscriber(phone="+51999999999", email="ana@example").has_valid_email

    def test_blank_display_name(self):
        assert not Subscriber(phone="+51999999999", display_name="   ").has_display_name

    def test_ledger_url_is_derived(self):
        ledger = ProvisionedLedger.for_id("abc123")
        assert ledger.ledger_url == ledger_url_for("abc123")
        assert "abc123" in ledger.ledger_url


class TestSession:
    """Tests for session values."""

    def test_menu_clears_scratch(self):
        session = Session.menu()
        assert session.step is SessionStep.MENU
        assert session.kind is None
        assert session.category_list == []

    def test_advance_returns_new_session(self):
        start = Session.menu()
        moved = start.advance(SessionStep.CATEGORY_SELECT, kind=TransactionKind.EXPENSE)
        assert moved.step is SessionStep.CATEGORY_SELECT
        assert moved.kind is TransactionKind.EXPENSE
        assert start.step is SessionStep.MENU


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EMAIL_REGISTERED,
            description="Email registered",
        )
        assert event.event_type == AuditEventType.EMAIL_REGISTERED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Transaction saved",
            details={"category": "Food", "amount": "-10.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_saved"
        assert log_dict["details"]["category"] == "Food"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.subscriber_authorized("+51900000000", "+51999999999", created=True)
        row = event.to_sheets_row()
        assert len(row) == len(AUDIT_COLUMNS)
        assert row[2] == "subscriber_authorized"
        assert row[4] == "+51900000000"
        assert row[5] == "+51999999999"
        assert '"created": true' in row[7]

    def test_builder_unauthorized_sender_is_warning(self):
        event = AuditEventBuilder.unauthorized_sender("+51911111111", replied=False)
        assert event.severity == AuditSeverity.WARNING
        assert event.details == {"replied": False}

    def test_builder_transaction_saved(self):
        event = AuditEventBuilder.transaction_saved(
            phone="+51999999999",
            transaction_id="ABC",
            kind="EXPENSE",
            category="Taxi",
            amount="-25.50",
        )
        assert event.event_type == AuditEventType.TRANSACTION_SAVED
        assert event.actor == "+51999999999"
        assert event.details["transaction_id"] == "ABC"
