"""Password hashing and generation."""

import secrets
import string
from typing import Optional

import bcrypt

from dashboard.config import get_settings

_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*-_=+"


def hash_password(plain_password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt. Rounds default to the configured cost."""
    salt = bcrypt.gensalt(rounds=rounds or get_settings().password_hash_rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


def generate_password(length: int = 16) -> str:
    """Random password containing at least one letter, digit and symbol."""
    while True:
        password = "".join(secrets.choice(_ALPHABET) for _ in range(length))
        if (
            any(c.isalpha() for c in password)
            and any(c.isdigit() for c in password)
            and any(not c.isalnum() for c in password)
        ):
            return password
