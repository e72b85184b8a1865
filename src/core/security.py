"""Credential hashing shared with the account service."""

from hashlib import sha256


def hash_credential(plain_text: str) -> str:
    """Hash a typed password or username before it leaves the process.

    The account service compares against the SHA-256 hex digest of the
    credential, so the plain value is never transmitted.

    Args:
        plain_text: The value the user typed.

    Returns:
        str: Lowercase hex SHA-256 digest.
    """
    return sha256(plain_text.encode("utf-8")).hexdigest()
