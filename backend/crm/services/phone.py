"""
Phone number parsing and E.164 normalisation.
"""

from typing import Optional

import phonenumbers

from ..core.config import settings


class InvalidPhoneNumber(ValueError):
    """Raised when a value cannot be read as a dialable phone number."""


def normalize_phone_number(value: str, region: Optional[str] = None) -> str:
    """
    Parse ``value`` and return it in E.164 form.

    Numbers without a country code are read in ``region`` (default
    ``settings.default_phone_region``). Only length plausibility is checked,
    so test ranges such as +1555 numbers are accepted.

    Raises:
        InvalidPhoneNumber: if the value is empty or not a possible number
    """
    raw = (value or "").strip()
    if not raw:
        raise InvalidPhoneNumber("Phone number is required")

    try:
        parsed = phonenumbers.parse(raw, region or settings.default_phone_region)
    except phonenumbers.NumberParseException as exc:
        raise InvalidPhoneNumber(f"Unparseable phone number: {exc}") from exc

    if not phonenumbers.is_possible_number(parsed):
        raise InvalidPhoneNumber("Not a possible phone number")

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def try_normalize_phone_number(value: Optional[str]) -> Optional[str]:
    """Like :func:`normalize_phone_number` but returns None instead of raising."""
    if not value:
        return None
    try:
        return normalize_phone_number(value)
    except InvalidPhoneNumber:
        return None
