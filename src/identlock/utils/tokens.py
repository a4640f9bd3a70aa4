"""Random identity tokens."""

from __future__ import annotations

import secrets
import string


_ALPHABET = string.ascii_letters + string.digits


def random_token(length: int = 8) -> str:
    """Return a random alphanumeric token of ``length`` characters."""
    if length < 1:
        raise ValueError("Token length must be positive")
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))
