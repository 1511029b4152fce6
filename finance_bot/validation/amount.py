"""
Amount Parsing

Users type amounts the way their keyboard and habits dictate:
"25.50", "25,50", "S/ 1,234.56", "1.234,56".

The parser returns a NON-NEGATIVE Decimal rounded to 2 places.
The sign is never taken from the user - it is derived from the
transaction kind by signed_amount().
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from finance_bot.models.ledger import TransactionKind


CENTS = Decimal("0.01")

_AMOUNT_CHARS = re.compile(r"[^\d,.\-]")


class InvalidAmount(ValueError):
    """The text does not contain a usable amount."""
    pass


def _disambiguate_separators(s: str) -> str:
    has_comma = "," in s
    has_dot = "." in s

    if has_comma and has_dot:
        # Whichever comes first is the thousands separator
        if s.index(",") < s.index("."):
            return s.replace(",", "")
        return s.replace(".", "").replace(",", ".", 1)
    if has_comma:
        return s.replace(",", ".", 1)
    return s


def parse_amount(text: str) -> Decimal:
    """
    Parse free text into a non-negative amount.

    Raises:
        InvalidAmount: empty, non-numeric or otherwise unparsable input
    """
    cleaned = _AMOUNT_CHARS.sub("", str(text or ""))
    normalized = _disambiguate_separators(cleaned)

    try:
        value = Decimal(normalized)
        if value.is_finite():
            # Raises once the digits exceed the context precision
            return abs(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        pass

    raise InvalidAmount(f"Invalid amount: {text!r}")


def signed_amount(magnitude: Decimal, kind: TransactionKind) -> Decimal:
    """Expenses are stored negative, income positive."""
    return (abs(magnitude) * kind.sign).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal) -> str:
    return f"{amount.quantize(CENTS, rounding=ROUND_HALF_UP):.2f}"
