"""
Security module for the IntakeGate service.

Input validation and request identity helpers.

Identity is established by an upstream authenticating proxy, which
forwards the caller as X-User-Id / X-Tenant-Id / X-User-Role headers.
Anything missing or malformed yields no session (401).
"""

import re
from typing import Mapping, Optional

from intakegate.access import Role, Session


# ============================================================
# Input Validation
# ============================================================

TENANT_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,64}$')
USER_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_.@:-]{1,128}$')
WORKSPACE_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,64}$')
RESOURCE_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,64}$')
TOKEN_PATTERN = re.compile(r'^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$')
MAX_TOKEN_LENGTH = 2048


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_identifier(value: Optional[str], field_name: str, pattern=RESOURCE_ID_PATTERN) -> str:
    """
    Validate an opaque identifier (workspace, message, link id).

    Raises:
        ValidationError: If missing or not matching the pattern
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field_name, "is required")
    value = value.strip()
    if not pattern.match(value):
        raise ValidationError(field_name, "invalid format")
    return value


def looks_like_token(value: str) -> bool:
    """Cheap shape check before any hashing or signature work."""
    return (
        isinstance(value, str)
        and 0 < len(value) <= MAX_TOKEN_LENGTH
        and TOKEN_PATTERN.match(value) is not None
    )


# ============================================================
# Session Extraction
# ============================================================

def get_session(headers: Mapping[str, str]) -> Optional[Session]:
    """
    Build a Session from proxy identity headers.

    Returns:
        Session, or None if any required header is missing or invalid
    """
    user_id = (headers.get("x-user-id") or "").strip()
    tenant_id = (headers.get("x-tenant-id") or "").strip()
    role = (headers.get("x-user-role") or "").strip().lower()

    if not USER_ID_PATTERN.match(user_id) or not TENANT_ID_PATTERN.match(tenant_id):
        return None
    try:
        role = Role(role)
    except ValueError:
        return None

    return Session(
        user_id=user_id,
        tenant_id=tenant_id,
        role=role,
        email=headers.get("x-user-email") or None,
    )


# ============================================================
# Rate Limiting Helpers
# ============================================================

def extract_client_id(
    headers: Mapping[str, str],
    fallback: Optional[str] = None,
    trust_forwarded: bool = False
) -> str:
    """
    Client identifier for rate limiting anonymous endpoints.

    The socket peer, then "anonymous". The first X-Forwarded-For hop is
    used only when `trust_forwarded` is set, since clients control it.
    """
    forwarded = headers.get("x-forwarded-for", "") if trust_forwarded else ""
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    if fallback:
        return f"ip:{fallback}"
    return "anonymous"
