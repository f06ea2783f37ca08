"""
Code Allocator - Short numeric join codes for sessions.

Codes are what audience members type on their phones, so they are
6 digits with no leading zero (100000-999999).

The caller owns the set of codes in use; a code is only unique
against the set it was given.
"""

from __future__ import annotations
from typing import Collection
import random

CODE_MIN = 100000
CODE_MAX = 999999


def allocate_code(
    existing_codes: Collection[str],
    rng: random.Random | None = None,
) -> str:
    """
    Draw a random 6-digit code that is not in existing_codes.

    Retries until a free code is found. There is no retry cap; the
    code space (900k) is far larger than any live session count.

    Args:
        existing_codes: Codes currently registered
        rng: Optional random source (for deterministic tests)

    Returns:
        A code string absent from existing_codes
    """
    source = rng or random
    while True:
        code = str(source.randint(CODE_MIN, CODE_MAX))
        if code not in existing_codes:
            return code
