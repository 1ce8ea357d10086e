"""Phone number normalization shared by every flow."""

import re

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_phone(phone: str) -> str:
    """
    Normalize a phone number for consistent storage and lookup.

    Applies: strip whitespace + drop common separators (space, dash, dot,
    parentheses). A leading "+" is kept.
    """
    return _SEPARATORS.sub("", phone.strip())
