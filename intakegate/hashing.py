"""
Token fingerprints for the link registry.

The registry never stores a raw token. It keeps:
- token_hash: SHA-256 of the token string, lowercase hex (lookup key)
- token_tail: last 4 characters (support display only)
"""

from .util import sha256_hex

TOKEN_TAIL_LENGTH = 4


def token_hash(token: str) -> str:
    """
    Compute the registry hash for a token.

    Pure and deterministic: identical strings always hash identically.
    """
    if not isinstance(token, str) or not token:
        raise ValueError("token must be a non-empty string")
    return sha256_hex(token)


def token_tail(token: str) -> str:
    """Return the display tail of a token."""
    if not isinstance(token, str) or not token:
        raise ValueError("token must be a non-empty string")
    return token[-TOKEN_TAIL_LENGTH:]
