# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Privacy transformations applied to the national id (Aadhaar) number.

The raw number is only ever held in memory while a claim is created. It is validated
with the Verhoeff checksum and then replaced by its salted sha256 hash.
https://en.wikipedia.org/wiki/Verhoeff_algorithm
"""

import hashlib
import re

NATIONAL_ID_LENGTH = 12

_WHITESPACE = re.compile(r"\s+")
_NATIONAL_ID = re.compile(rf"^\d{{{NATIONAL_ID_LENGTH}}}$")

# Multiplication table of the dihedral group D5
_MULTIPLICATION = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 2, 3, 4, 0, 6, 7, 8, 9, 5),
    (2, 3, 4, 0, 1, 7, 8, 9, 5, 6),
    (3, 4, 0, 1, 2, 8, 9, 5, 6, 7),
    (4, 0, 1, 2, 3, 9, 5, 6, 7, 8),
    (5, 9, 8, 7, 6, 0, 4, 3, 2, 1),
    (6, 5, 9, 8, 7, 1, 0, 4, 3, 2),
    (7, 6, 5, 9, 8, 2, 1, 0, 4, 3),
    (8, 7, 6, 5, 9, 3, 2, 1, 0, 4),
    (9, 8, 7, 6, 5, 4, 3, 2, 1, 0),
)

# Permutation applied to a digit depending on its position (cycles every 8 positions)
_PERMUTATION = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 5, 7, 6, 2, 8, 3, 0, 9, 4),
    (5, 8, 0, 3, 7, 9, 6, 1, 4, 2),
    (8, 9, 1, 6, 0, 4, 3, 5, 2, 7),
    (9, 4, 5, 3, 1, 2, 6, 8, 7, 0),
    (4, 2, 8, 6, 5, 7, 3, 9, 0, 1),
    (2, 7, 9, 3, 8, 0, 6, 4, 1, 5),
    (7, 0, 4, 6, 9, 1, 3, 2, 5, 8),
)


class InvalidNationalIdFormatError(ValueError):
    """The national id does not consist of exactly 12 digits."""


def normalize_national_id(raw: str) -> str:
    """Strips all whitespace. Raises `InvalidNationalIdFormatError` if the result is not exactly 12 digits."""
    cleaned = _WHITESPACE.sub("", raw or "")
    if not _NATIONAL_ID.match(cleaned):
        raise InvalidNationalIdFormatError(f"Invalid national id format. Must be {NATIONAL_ID_LENGTH} digits.")
    return cleaned


def validate_checksum(raw: str) -> bool:
    """
    Verhoeff checksum over the 12 digits. The last digit is the check digit.
    Returns False for anything that is not a well formed national id.
    """
    try:
        digits = normalize_national_id(raw)
    except InvalidNationalIdFormatError:
        return False
    check = 0
    for position, digit in enumerate(reversed(digits)):
        check = _MULTIPLICATION[check][_PERMUTATION[position % 8][int(digit)]]
    return check == 0


def hash_national_id(raw: str, salt: str) -> str:
    """
    Salted one way hash of the national id as hex string.
    Deterministic so duplicates can be detected without retaining the raw value.
    """
    digits = normalize_national_id(raw)
    return hashlib.sha256(f"{salt}{digits}".encode()).hexdigest()
