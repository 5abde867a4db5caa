"""Password hashing with bcrypt."""

from typing import Optional

import bcrypt
import structlog

from vidtube.config import get_settings

logger = structlog.get_logger(__name__)

# bcrypt only reads this many bytes of input and rejects longer passwords
MAX_PASSWORD_BYTES = 72
PASSWORD_TOO_LONG = f"Password must be at most {MAX_PASSWORD_BYTES} bytes"


def password_too_long(password: str) -> bool:
    """True if the UTF-8 encoding of `password` exceeds what bcrypt accepts."""
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password using bcrypt with a fresh salt.

    Args:
        password: Plain-text password to hash
        rounds: bcrypt cost factor; defaults to the configured value

    Returns:
        Bcrypt hash string

    Raises:
        ValueError: If the password exceeds MAX_PASSWORD_BYTES
    """
    if password_too_long(password):
        raise ValueError(PASSWORD_TOO_LONG)
    if rounds is None:
        rounds = get_settings().bcrypt_rounds
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash.

    The salt and cost are read from the hash itself.

    Args:
        password: Plain-text password to check
        password_hash: Bcrypt hash to verify against

    Returns:
        True if the password matches, False otherwise (including for a
        password too long to have been hashed, or a malformed hash)
    """
    if password_too_long(password):
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        logger.warning("password_hash_malformed")
        return False
