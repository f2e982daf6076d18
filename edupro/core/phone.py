"""
Phone number helpers.

Phone numbers are compared digits-only everywhere: "+91 98765 43210",
"98765-43210" and "9876543210" must find each other. Stored numbers keep the
digits the user typed; matching additionally treats a national number and the
same number with a country-code prefix as equal (trailing-digit match).
"""
import re
from typing import Optional

_NON_DIGITS = re.compile(r"[^0-9]")
_PHONE_LIKE = re.compile(r"^\+?[0-9\s\-()]+$")

# Shortest national number we accept as a trailing match
NATIONAL_NUMBER_DIGITS = 10
# Longest country code that may precede it
MAX_COUNTRY_CODE_DIGITS = 3


def normalize_phone(value: Optional[str]) -> str:
    """Strip everything except digits. ``None`` becomes an empty string."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


def looks_like_phone(identifier: str) -> bool:
    return "@" not in identifier and bool(_PHONE_LIKE.match(identifier.strip()))


def phones_match(a: Optional[str], b: Optional[str]) -> bool:
    """Digits-only equality, tolerant to a 1-3 digit country code on one side."""
    left = normalize_phone(a)
    right = normalize_phone(b)
    if not left or not right:
        return False
    if left == right:
        return True
    shorter, longer = sorted((left, right), key=len)
    return (
        len(shorter) >= NATIONAL_NUMBER_DIGITS
        and len(longer) - len(shorter) <= MAX_COUNTRY_CODE_DIGITS
        and longer.endswith(shorter)
    )


def login_handle_for(identifier: str, domain: str) -> str:
    """Email identifiers are used as-is (lowercased); phones become <digits>@<domain>."""
    identifier = identifier.strip()
    if "@" in identifier:
        return identifier.lower()
    return f"{normalize_phone(identifier)}@{domain}"
