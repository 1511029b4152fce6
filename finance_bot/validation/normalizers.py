"""
Input Normalizers

Everything a user types (or the messaging client hands us) passes through
here before it reaches the stores:
- Phone identifiers are canonicalized to "+<digits>"
- Emails are shape-checked
- Display names and category names are trimmed and bounded

DESIGN DECISION: Phone equality is ONLY ever decided on the normalized form.
The directory, the admin check and the session store all key on it.
"""

import re
from typing import Optional

from finance_bot.config import BotSettings


MAX_NAME_LENGTH = 60

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ONE_SHOT_RE = re.compile(r"^(gasto|ingreso|expense|income)\b", re.IGNORECASE)
_NON_PHONE_CHARS = re.compile(r"[^\d+]")
_NON_DIGITS = re.compile(r"\D")


class InvalidEmail(ValueError):
    """The text does not look like local@domain.tld."""
    pass


def normalize_phone(
    raw: Optional[str],
    country_code: str = "51",
    local_length: int = 9,
) -> str:
    """
    Canonicalize a phone identifier.

    Accepts transport tags ("51999999999@c.us"), human input
    ("999 999 999", "+51 (999) 999-999") or already canonical values.
    Never raises: unrecognized shapes come back with punctuation stripped.
    """
    if not raw:
        return ""
    raw = str(raw).strip()

    # Transport tags always carry the full international number
    if "@" in raw:
        digits = _NON_DIGITS.sub("", raw.split("@", 1)[0])
        return f"+{digits}" if digits else ""

    cleaned = _NON_PHONE_CHARS.sub("", raw)
    if cleaned.startswith("+"):
        return "+" + cleaned[1:].replace("+", "")

    digits = cleaned.replace("+", "")
    if len(digits) == local_length:
        return f"+{country_code}{digits}"
    if len(digits) == len(country_code) + local_length and digits.startswith(country_code):
        return f"+{digits}"
    return digits


def is_group_chat(raw: Optional[str]) -> bool:
    """Group conversations are tagged '<id>@g.us' by the messaging client."""
    return bool(raw) and str(raw).endswith("@g.us")


class PhoneNormalizer:
    """
    normalize_phone bound to the configured numbering convention.

    Instances are plain callables so they can be injected anywhere a
    `Callable[[str], str]` is expected.
    """

    def __init__(self, country_code: str = "51", local_length: int = 9):
        self.country_code = country_code
        self.local_length = local_length

    @classmethod
    def from_settings(cls, settings: BotSettings) -> "PhoneNormalizer":
        return cls(
            country_code=settings.default_country_code,
            local_length=settings.local_number_length,
        )

    def __call__(self, raw: Optional[str]) -> str:
        return normalize_phone(raw, self.country_code, self.local_length)

    def same(self, a: Optional[str], b: Optional[str]) -> bool:
        """True when both identifiers normalize to the same non-empty value."""
        left = self(a)
        return bool(left) and left == self(b)


def is_valid_email(text: Optional[str]) -> bool:
    return bool(text) and bool(_EMAIL_RE.match(str(text).strip()))


def validate_email(text: Optional[str]) -> str:
    """Return the trimmed email or raise InvalidEmail."""
    if not is_valid_email(text):
        raise InvalidEmail(f"Not a valid email address: {text!r}")
    return str(text).strip()


def looks_like_one_shot(text: str) -> bool:
    """'gasto 25 comida' style commands start with a kind keyword."""
    return bool(_ONE_SHOT_RE.match(text.strip()))


def clean_display_name(text: str) -> Optional[str]:
    """
    Accept a display name.

    Returns None for inputs shorter than 2 characters or that look
    like a transaction command.
    """
    name = text.strip()
    if len(name) < 2 or looks_like_one_shot(name):
        return None
    return name[:MAX_NAME_LENGTH]


def clean_category_name(text: str) -> Optional[str]:
    name = text.strip()[:MAX_NAME_LENGTH].strip()
    return name or None
