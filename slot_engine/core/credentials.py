"""Credential generation for slots."""

import secrets

DIGITS = "0123456789"


def generate_numeric_credential(length: int = 4) -> str:
    """Return a random numeric credential of the given length."""
    if length < 1:
        raise ValueError("Credential length must be at least 1")
    return "".join(secrets.choice(DIGITS) for _ in range(length))
