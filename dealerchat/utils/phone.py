"""
Phone number normalization for Mexican mobile numbers.
Leads store the bare 10-digit national number; a +52 / 52 prefix is stripped.

Handles:
- +52 8112345678   -> 8112345678
- 81-1234-5678     -> 8112345678
- 811.234.5678     -> 8112345678
- 528112345678     -> 8112345678
"""
import re
from typing import Optional

_DIGITS_ONLY = re.compile(r"\D")
COUNTRY_CODE = "52"
NATIONAL_LENGTH = 10


def digits_only(value: str) -> str:
    return _DIGITS_ONLY.sub("", value or "")


def normalize_mx_phone(phone: str) -> Optional[str]:
    """
    Normalize to exactly 10 digits.
    Returns None when the cleaned number is not 10 digits long.
    """
    digits = digits_only(phone)
    if len(digits) == NATIONAL_LENGTH + len(COUNTRY_CODE) and digits.startswith(COUNTRY_CODE):
        digits = digits[len(COUNTRY_CODE):]
    if len(digits) != NATIONAL_LENGTH:
        return None
    return digits


def last_ten_digits(phone: str) -> Optional[str]:
    """Keep the trailing 10 digits of anything with at least 10 digits."""
    digits = digits_only(phone)
    if len(digits) < NATIONAL_LENGTH:
        return None
    return digits[-NATIONAL_LENGTH:]


def mask_phone(phone: Optional[str]) -> str:
    """811234**** style mask for logs."""
    if not phone:
        return "unknown"
    return phone[:6] + "****"
