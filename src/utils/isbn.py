"""
ScanFlow — ISBN Normalization & Validation

ISBN-10: weights 10..2 over the first nine digits, final character is a digit
or 'X' (= 10); the weighted sum including the check character is a multiple
of 11.

ISBN-13: 978/979 prefix, weights 1,3,1,3,... over the first twelve digits;
check digit = (10 - sum % 10) % 10.

Nothing in this module raises on bad input. Every returned identifier is in
canonical form: separators stripped, ISBN-10 check character upper-case.
"""

from __future__ import annotations

import re
from typing import NamedTuple

_SEPARATORS = re.compile(r"[-\s]")
_ISBN_CHARS = re.compile(r"^\d+X?$")
_ISBN13_PREFIXES = ("978", "979")


class IsbnValidation(NamedTuple):
    valid: bool
    error: str | None = None


def clean_isbn(raw: str) -> str:
    """Strip hyphens/whitespace and upper-case a trailing 'x'; "080442957x" -> "080442957X"."""
    return _SEPARATORS.sub("", raw or "").upper()


def compute_isbn10_check_digit(prefix: str) -> str:
    if len(prefix) != 9 or not prefix.isdigit():
        raise ValueError(f"ISBN-10 prefix must be 9 digits, received '{prefix}'")
    total = sum((10 - idx) * int(digit) for idx, digit in enumerate(prefix))
    check = (11 - total % 11) % 11
    return "X" if check == 10 else str(check)


def compute_isbn13_check_digit(prefix: str) -> str:
    if len(prefix) != 12 or not prefix.isdigit():
        raise ValueError(f"ISBN-13 prefix must be 12 digits, received '{prefix}'")
    total = sum((3 if idx % 2 else 1) * int(digit) for idx, digit in enumerate(prefix))
    return str((10 - total % 10) % 10)


def validate_isbn(raw: str) -> IsbnValidation:
    """
    Validate a 10- or 13-character ISBN.

    Returns:
        IsbnValidation(valid, error). ``error`` is None when valid.
    """
    clean = clean_isbn(raw)
    if not clean:
        return IsbnValidation(False, "ISBN is empty")
    if not _ISBN_CHARS.match(clean):
        return IsbnValidation(False, "ISBN must contain only digits (and X for ISBN-10)")

    if len(clean) == 10:
        total = sum((10 - idx) * int(digit) for idx, digit in enumerate(clean[:9]))
        total += 10 if clean[9] == "X" else int(clean[9])
        if total % 11 != 0:
            return IsbnValidation(False, "Invalid ISBN-10 checksum")
        return IsbnValidation(True)

    if len(clean) == 13:
        if not clean.isdigit():
            return IsbnValidation(False, "ISBN-13 must be numeric")
        if not clean.startswith(_ISBN13_PREFIXES):
            return IsbnValidation(False, "ISBN-13 must start with 978 or 979")
        if clean[12] != compute_isbn13_check_digit(clean[:12]):
            return IsbnValidation(False, "Invalid ISBN-13 checksum")
        return IsbnValidation(True)

    return IsbnValidation(False, f"ISBN must be 10 or 13 digits (got {len(clean)})")


def isbn10_to_isbn13(isbn10: str) -> str | None:
    """Convert a valid ISBN-10 (either case of 'X') to its 978-prefixed ISBN-13."""
    clean = clean_isbn(isbn10)
    if len(clean) != 10 or not validate_isbn(clean).valid:
        return None
    prefix = "978" + clean[:9]
    return prefix + compute_isbn13_check_digit(prefix)


def isbn13_to_isbn10(isbn13: str) -> str | None:
    """
    Convert a valid 978-prefixed ISBN-13 back to ISBN-10.

    A check character of 10 is always written as upper-case 'X', so a
    lower-case input does not survive a round trip unchanged.
    """
    clean = clean_isbn(isbn13)
    if len(clean) != 13 or not clean.startswith("978") or not validate_isbn(clean).valid:
        return None
    core = clean[3:12]
    return core + compute_isbn10_check_digit(core)


def normalize_isbn(raw: str) -> str | None:
    """Return the canonical ISBN-13 for any valid identifier, else None."""
    clean = clean_isbn(raw)
    if not validate_isbn(clean).valid:
        return None
    if len(clean) == 10:
        return isbn10_to_isbn13(clean)
    return clean
