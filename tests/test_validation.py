"""
Tests for input normalizers and the amount parser.
"""

import pytest
from decimal import Decimal

from finance_bot.models.ledger import TransactionKind
from finance_bot.validation import (
    InvalidAmount,
    InvalidEmail,
    PhoneNormalizer,
    clean_category_name,
    clean_display_name,
    format_amount,
    is_group_chat,
    looks_like_one_shot,
    normalize_phone,
    parse_amount,
    signed_amount,
    validate_email,
)


class TestPhoneNormalizer:
    """Tests for canonical phone identities."""

    @pytest.mark.parametrize("local", ["999999999", "912345678", "100000000"])
    def test_local_number_gets_country_code(self, local):
        assert normalize_phone(local) == f"+51{local}"

    @pytest.mark.parametrize("full", ["51999999999", "51912345678"])
    def test_full_number_gets_plus(self, full):
        assert normalize_phone(full) == f"+{full}"

    @pytest.mark.parametrize("raw", [
        "999 999 999",
        "+51 999 999 999",
        "+51 (999) 999-999",
        "51999999999@c.us",
        "51999999999@s.whatsapp.net",
        "+51999999999",
    ])
    def test_human_and_transport_forms(self, raw):
        assert normalize_phone(raw) == "+51999999999"

    @pytest.mark.parametrize("raw", [
        "999999999",
        "51999999999",
        "+51 999 999 999",
        "51999999999@c.us",
        "12345",
        "+1 (555) 010-9999",
        "",
    ])
    def test_idempotent(self, raw):
        once = normalize_phone(raw)
        assert normalize_phone(once) == once

    def test_unrecognized_shape_keeps_digits(self):
        assert normalize_phone("12-345") == "12345"

    def test_empty(self):
        assert normalize_phone(None) == ""
        assert normalize_phone("   ") == ""

    def test_configured_country(self):
        normalize = PhoneNormalizer(country_code="34", local_length=9)
        assert normalize("612345678") == "+34612345678"
        assert normalize("34612345678") == "+34612345678"

    def test_same(self):
        normalize = PhoneNormalizer()
        assert normalize.same("999 999 999", "51999999999@c.us")
        assert not normalize.same("", "")

    def test_group_chat(self):
        assert is_group_chat("120363025246125486@g.us")
        assert not is_group_chat("51999999999@c.us")
        assert not is_group_chat(None)


class TestAmountParser:
    """Tests for user-typed amounts."""

    @pytest.mark.parametrize("text,expected", [
        ("10,50", Decimal("10.50")),
        ("10.50", Decimal("10.50")),
        ("120", Decimal("120.00")),
        ("1,234.56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("S/ 25.50", Decimal("25.50")),
        ("-25.50", Decimal("25.50")),
        ("0.005", Decimal("0.01")),
    ])
    def test_parses(self, text, expected):
        assert parse_amount(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "-", ".", ",", "1.2.3,4,5", "9" * 30, "1" * 40 + ",5"])
    def test_rejects(self, text):
        with pytest.raises(InvalidAmount):
            parse_amount(text)

    def test_invalid_amount_is_value_error(self):
        assert issubclass(InvalidAmount, ValueError)

    def test_signed_amount(self):
        assert signed_amount(Decimal("25.5"), TransactionKind.EXPENSE) == Decimal("-25.50")
        assert signed_amount(Decimal("-25.5"), TransactionKind.INCOME) == Decimal("25.50")

    def test_format_amount(self):
        assert format_amount(Decimal("-25.5")) == "-25.50"
        assert format_amount(Decimal("1200")) == "1200.00"


class TestTextInputs:
    """Tests for email, names and commands."""

    def test_validate_email(self):
        assert validate_email("  ana@example.com ") == "ana@example.com"

    @pytest.mark.parametrize("text", ["", "ana", "ana@example", "a b@example.com", None])
    def test_validate_email_rejects(self, text):
        with pytest.raises(InvalidEmail):
            validate_email(text)

    def test_one_shot_detection(self):
        assert looks_like_one_shot("gasto 10 comida")
        assert looks_like_one_shot("INGRESO 1200")
        assert looks_like_one_shot("expense 5")
        assert not looks_like_one_shot("gastos")
        assert not looks_like_one_shot("Ana")

    def test_display_name(self):
        assert clean_display_name("  Ana  ") == "Ana"
        assert clean_display_name("x" * 80) == "x" * 60
        assert clean_display_name("A") is None
        assert clean_display_name("gasto 10") is None

    def test_category_name(self):
        assert clean_category_name("  Taxi ") == "Taxi"
        assert clean_category_name("   ") is None
        assert len(clean_category_name("y" * 100)) == 60
