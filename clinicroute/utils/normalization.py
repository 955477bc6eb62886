"""Data normalization utilities for consistent data quality."""

import re
from typing import Optional


NHS_NUMBER_LENGTH = 10


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Emails are compared case-insensitively everywhere (login, uniqueness).
    """
    if not email:
        return None
    return email.strip().lower()


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize name by stripping whitespace and collapsing multiple spaces.

    Returns:
        Cleaned name or None if empty
    """
    if not name:
        return None
    return " ".join(name.split()) or None


def normalize_nhs_number(value: Optional[str]) -> Optional[str]:
    """
    Normalize an NHS number to 10 bare digits and verify its check digit.

    Accepts spaced or dashed input ("943 476 5919", "943-476-5919").

    Raises:
        ValueError: If the value is not 10 digits or fails the modulus 11 check
    """
    if not value:
        return None
    digits = re.sub(r"[\s-]+", "", value)
    if len(digits) != NHS_NUMBER_LENGTH or not digits.isdigit():
        raise ValueError("NHS number must be 10 digits")

    total = sum(int(d) * (NHS_NUMBER_LENGTH - i) for i, d in enumerate(digits[:9]))
    check = 11 - (total % 11)
    if check == 11:
        check = 0
    if check == 10 or check != int(digits[9]):
        raise ValueError("NHS number check digit is invalid")
    return digits


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user search text is matched literally (escape char: \\)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
