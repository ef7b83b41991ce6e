"""
Destination number normalization.
"""

from __future__ import annotations

import re

from wagate.common.exceptions import ValidationError

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str, country_code: str = "62", trunk_prefix: str = "0") -> str:
    """Normalize a user-supplied phone number into international digits.

    Non-digits are stripped, a leading trunk prefix is replaced by the country
    code, and the country code is prepended when missing.

    >>> normalize_phone("0812-3456-7890")
    '6281234567890'
    >>> normalize_phone("+62 812 3456 7890")
    '6281234567890'
    >>> normalize_phone("81234567890")
    '6281234567890'
    """
    digits = _NON_DIGITS.sub("", phone)
    if not digits:
        msg = f"Phone number has no digits: {phone!r}"
        raise ValidationError(msg)
    if trunk_prefix and digits.startswith(trunk_prefix):
        return country_code + digits[len(trunk_prefix) :]
    if not digits.startswith(country_code):
        return country_code + digits
    return digits


def to_address(phone: str, suffix: str = "@s.whatsapp.net") -> str:
    """Build the protocol address for already normalized digits."""
    return f"{phone}{suffix}"
