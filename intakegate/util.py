"""
Utility functions for IntakeGate.

Provides hashing, time, and identifier helpers shared by the token codec,
the link registry, and the stores.
"""

import hashlib
import secrets
from datetime import datetime, timezone
from typing import Union


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive datetimes are interpreted as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision so ISO-8601 round trips are exact."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def to_iso8601(value: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with millisecond precision.

    Example: 2026-10-19T12:00:00.000Z
    """
    value = ensure_utc(value)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


def parse_iso8601(s: str) -> datetime:
    """
    Parse an ISO-8601 timestamp to an aware UTC datetime.

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    if not isinstance(s, str) or not s:
        raise ValueError("timestamp must be a non-empty string")
    if s.endswith('Z'):
        s = s[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(s))


def epoch_seconds(value: datetime) -> int:
    """Convert a datetime to whole Unix seconds (floor)."""
    return int(ensure_utc(value).timestamp() // 1)


def generate_id(length: int = 16) -> str:
    """Generate a cryptographically secure random ID."""
    return secrets.token_hex(length)
