"""
auth/policy.py -- Password strength policy.

Pure function: same input, same verdict, no I/O. Used by signup, self-service
password change, and admin password reset before anything is hashed.

Character classes follow Unicode general categories rather than ASCII ranges,
so "Ä" counts as uppercase and "€" counts as a symbol.
"""

from __future__ import annotations

import unicodedata

from core.errors import PolicyError

MIN_LENGTH = 8

_CLASSES_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number, and one special character."
)


def validate_password(password: str) -> None:
    """Raise PolicyError unless password meets the strength policy.

    Rules:
      - at least MIN_LENGTH characters
      - at least one uppercase letter (Lu)
      - at least one lowercase letter (Ll)
      - at least one digit / numeric character (N*)
      - at least one punctuation or symbol character (P* or S*)
    """
    if len(password) < MIN_LENGTH:
        raise PolicyError(f"Password must be at least {MIN_LENGTH} characters long.")

    has_upper = has_lower = has_number = has_special = False
    for char in password:
        category = unicodedata.category(char)
        if category == "Lu":
            has_upper = True
        elif category == "Ll":
            has_lower = True
        elif category.startswith("N"):
            has_number = True
        elif category.startswith(("P", "S")):
            has_special = True

    if not (has_upper and has_lower and has_number and has_special):
        raise PolicyError(_CLASSES_MESSAGE)
