"""
Phone number normalization for SMS delivery.
"""

import re

from domain.errors import InvalidPhoneNumber

_NON_DIALABLE = re.compile(r'[^0-9+]')
_CANONICAL = re.compile(r'^\+[0-9]{11,15}$')


def validate_phone_number(number: str) -> str:
    """
    Normalize a phone number to its canonical "+<digits>" form.

    All characters other than digits and "+" are removed; the result must
    be a "+" followed by 11 to 15 digits.

    Args:
        number: Raw phone number (e.g. "+1 (801) 555-0100")

    Returns:
        str: Canonical number (e.g. "+18015550100")

    Raises:
        InvalidPhoneNumber: If the number does not normalize to a valid form

    Example:
        >>> validate_phone_number("+1 (801) 555-0100")
        '+18015550100'
    """
    if not isinstance(number, str):
        raise InvalidPhoneNumber(number)

    cleaned = _NON_DIALABLE.sub('', number)
    if not _CANONICAL.match(cleaned):
        raise InvalidPhoneNumber(number)

    return cleaned
