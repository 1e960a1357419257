"""
Security utilities for the Session Authentication service.

This module provides salt handling: deriving the effective salt that binds a
token to the process secret and a user's own salt, and generating fresh
per-user salts.
"""
import hashlib
import hmac
import logging
import secrets

# Configure logging
logger = logging.getLogger(__name__)

# Security constants
DEFAULT_SALT_BYTES = 16


# PUBLIC_INTERFACE
def derive_salt(process_secret: str, user_salt: str) -> str:
    """
    Derive the effective salt used as the signing key for a user's tokens.

    The result is a keyed hash of the per-user salt under the process secret, so
    it is deterministic for a given pair and rotating the process secret
    invalidates every outstanding token.

    Args:
        process_secret: Process-wide secret configured at startup.
        user_salt: Per-user salt supplied by the identity provider.

    Returns:
        Hex encoded effective salt.

    Raises:
        ValueError: If both the secret and the user salt are blank.
    """
    process_secret = process_secret or ""
    user_salt = user_salt or ""
    if not process_secret.strip() and not user_salt.strip():
        logger.error("Cannot derive a salt without a secret or a user salt")
        raise ValueError("Secret and user salt cannot both be empty")

    return hmac.new(
        process_secret.encode("utf-8"),
        user_salt.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


# PUBLIC_INTERFACE
def generate_salt(length: int = DEFAULT_SALT_BYTES) -> str:
    """
    Generate a random per-user salt.

    Args:
        length: Length of the salt in bytes.

    Returns:
        Salt as a hexadecimal string.
    """
    return secrets.token_hex(length)
