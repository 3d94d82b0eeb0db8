"""
Credential vault: one-way password hashing and verification (bcrypt).

bcrypt only reads the first 72 bytes of a password; longer inputs are
truncated explicitly so hashing and verification always agree.
"""

import logging

import bcrypt

from storefront.errors import HashingError

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt with 12 rounds."""
    try:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        hashed = bcrypt.hashpw(_encode(password), salt)
    except (ValueError, OSError, MemoryError) as exc:
        logger.exception("bcrypt failed to hash a password")
        raise HashingError("Password hashing failed") from exc
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a plain-text password against a stored bcrypt hash.

    Returns ``False`` on mismatch and on a malformed hash; never raises for either.
    """
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False
