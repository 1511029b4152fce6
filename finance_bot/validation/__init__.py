"""Input validation and normalization package."""

from finance_bot.validation.amount import (
    InvalidAmount,
    format_amount,
    parse_amount,
    signed_amount,
)
from finance_bot.validation.normalizers import (
    MAX_NAME_LENGTH,
    InvalidEmail,
    PhoneNormalizer,
    clean_category_name,
    clean_display_name,
    is_group_chat,
    is_valid_email,
    looks_like_one_shot,
    normalize_phone,
    validate_email,
)

__all__ = [
    "MAX_NAME_LENGTH",
    "InvalidAmount",
    "InvalidEmail",
    "PhoneNormalizer",
    "clean_category_name",
    "clean_display_name",
    "format_amount",
    "is_group_chat",
    "is_valid_email",
    "looks_like_one_shot",
    "normalize_phone",
    "parse_amount",
    "signed_amount",
    "validate_email",
]
