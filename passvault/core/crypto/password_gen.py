"""
Password Generation
===================

Categorized-alphabet password sampler backed by the OS CSPRNG.
"""

from __future__ import annotations

import secrets
from typing import Final

from passvault.core.exceptions import ValidationError
from passvault.security.constants import (
    DIGIT_CHARS,
    LOWERCASE_CHARS,
    SYMBOL_CHARS,
    UPPERCASE_CHARS,
)

CHARACTER_CATEGORIES: Final[tuple[str, ...]] = (
    UPPERCASE_CHARS,
    LOWERCASE_CHARS,
    DIGIT_CHARS,
    SYMBOL_CHARS,
)
FULL_ALPHABET: Final[str] = "".join(CHARACTER_CATEGORIES)

_rng = secrets.SystemRandom()


def generate_password(length: int) -> str:
    """
    Generate a random password.

    One character is drawn from each category while the length allows,
    the rest from the full alphabet, and the result is shuffled so the
    guaranteed characters do not sit at fixed positions.

    Args:
        length: Number of characters (0 yields an empty string)

    Returns:
        Generated password

    Raises:
        ValidationError: If length is negative
    """
    if length < 0:
        raise ValidationError("Password length cannot be negative")

    chars = [secrets.choice(category) for category in CHARACTER_CATEGORIES[:length]]
    chars.extend(secrets.choice(FULL_ALPHABET) for _ in range(length - len(chars)))
    _rng.shuffle(chars)

    return "".join(chars)
