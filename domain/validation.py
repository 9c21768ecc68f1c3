"""
Domain: identity and contact number validation (pure).

National identity numbers use the 13-digit YYMMDDSSSSCAZ layout:
- digits 1-6 encode the date of birth (YYMMDD)
- digit 13 is a Luhn check digit over digits 1-12

Month and day are range-checked only (1-12, 1-31). Day counts per month and
leap years are not checked.

Local cell numbers are 10 digits starting with 0. Spaces and dashes are
ignored.
"""

from __future__ import annotations

import re

_NATIONAL_ID_PATTERN = re.compile(r"[0-9]{13}")
_LOCAL_PHONE_PATTERN = re.compile(r"0[0-9]{9}")
_SEPARATORS = re.compile(r"[\s-]")
_TEN_DIGITS = re.compile(r"[0-9]{10}")


def luhn_check_digit(digits: str) -> int:
    """
    Compute the check digit for a string of ASCII digits.

    Every second digit, starting at index 1, is doubled (minus 9 when the
    result exceeds 9) before summing.
    """

    total = 0
    for index, char in enumerate(digits):
        value = int(char)
        if index % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return (10 - total % 10) % 10


def validate_national_id(id_number: str) -> bool:
    if not id_number or not _NATIONAL_ID_PATTERN.fullmatch(id_number):
        return False

    month = int(id_number[2:4])
    day = int(id_number[4:6])
    if month < 1 or month > 12:
        return False
    if day < 1 or day > 31:
        return False

    return luhn_check_digit(id_number[:12]) == int(id_number[12])


def strip_phone_separators(number: str) -> str:
    return _SEPARATORS.sub("", number)


def validate_local_phone_number(number: str) -> bool:
    return bool(_LOCAL_PHONE_PATTERN.fullmatch(strip_phone_separators(number or "")))


def format_phone_number(number: str) -> str:
    """
    Render a local number as `XXX XXX XXXX`.

    Input that does not reduce to exactly 10 digits is returned unchanged.
    """

    cleaned = strip_phone_separators(number)
    if _TEN_DIGITS.fullmatch(cleaned):
        return f"{cleaned[:3]} {cleaned[3:6]} {cleaned[6:]}"
    return number


__all__ = [
    "format_phone_number",
    "luhn_check_digit",
    "strip_phone_separators",
    "validate_local_phone_number",
    "validate_national_id",
]
