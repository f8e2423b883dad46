"""Password hashing for agent accounts.

Agent sessions are issued by the external auth service; this module only
produces hashes in the format that service verifies against.
"""

import hashlib

import bcrypt


def _prepare_password(password: str) -> bytes:
    """Prepare password for bcrypt (handle >72 bytes)."""
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > 72:
        return hashlib.sha256(password_bytes).hexdigest().encode("utf-8")
    return password_bytes


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(_prepare_password(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.checkpw(
        _prepare_password(plain_password),
        hashed_password.encode("utf-8"),
    )
