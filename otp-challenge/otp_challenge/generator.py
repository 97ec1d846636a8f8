"""
Code Generation
===============
Secure numeric passcode generation and format checks.
"""

import re
import secrets
from typing import Optional


def generate_code(length: int = 6, previous: Optional[str] = None) -> str:
    """
    Generate a secure random numeric code.

    The value is uniform over ``[10**(length-1), 10**length - 1]`` so the
    leading digit is never 0.

    Args:
        length: Number of digits
        previous: Code that must not be returned again (used on resend)

    Returns:
        Code string of exactly ``length`` digits
    """
    if length < 1:
        raise ValueError("length must be positive")

    low = 10 ** (length - 1)
    span = 10 ** length - low

    while True:
        code = str(low + secrets.randbelow(span))
        if code != previous:
            return code


def validate_code_format(code: str, length: int = 6) -> bool:
    """
    Check that a submitted code is exactly ``length`` ASCII digits.

    Callers run this before verification so obviously malformed input
    never consumes an attempt.
    """
    if not isinstance(code, str):
        return False
    return bool(re.fullmatch(rf"[0-9]{{{length}}}", code))
