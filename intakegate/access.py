"""
IntakeGate Access Gate

Role- and tenant-scoped read decisions for message data.

Two tiers:
- meta:    any authenticated role of the tenant
- content: OWNER and ADMIN only

At the tenant boundary every refusal is NOT_FOUND, never FORBIDDEN, so a
caller from another tenant cannot learn whether a resource exists.
FORBIDDEN is reserved for same-tenant callers lacking the role.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    STAFF = "staff"


class AccessDecision(str, Enum):
    ALLOW = "allow"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


# Roles allowed to view full message content (raw body, attachments).
MESSAGE_CONTENT_ROLES: FrozenSet[Role] = frozenset({Role.OWNER, Role.ADMIN})

# Roles allowed to issue intake links.
LINK_ISSUER_ROLES: FrozenSet[Role] = frozenset({Role.OWNER, Role.ADMIN, Role.STAFF})


@dataclass(frozen=True)
class Session:
    """Authenticated caller. Produced by the identity layer, consumed here."""
    user_id: str
    tenant_id: str
    role: Role
    name: Optional[str] = None
    email: Optional[str] = None

    def __post_init__(self):
        if not self.user_id or not self.tenant_id:
            raise ValueError("session requires user_id and tenant_id")
        object.__setattr__(self, "role", Role(self.role))


def has_role(role: Role, roles: Iterable[Role]) -> bool:
    """Generic role membership check."""
    return Role(role) in frozenset(roles)


def can_view_content(role: Role) -> bool:
    """True for OWNER and ADMIN; STAFF is always False, whatever the tenant."""
    return has_role(role, MESSAGE_CONTENT_ROLES)


def can_issue_links(role: Role) -> bool:
    return has_role(role, LINK_ISSUER_ROLES)


def authorize_read(
    session: Optional[Session],
    target_tenant_id: str,
    content: bool = False
) -> AccessDecision:
    """
    Decide a read against a tenant-scoped resource.

    Args:
        session: Caller session, or None if unauthenticated
        target_tenant_id: Tenant owning the requested resource
        content: True when full message content is requested

    Returns:
        UNAUTHORIZED without a session; NOT_FOUND across tenants;
        FORBIDDEN for same-tenant content requests by non-content roles;
        ALLOW otherwise.
    """
    if session is None:
        return AccessDecision.UNAUTHORIZED
    if not target_tenant_id or session.tenant_id != target_tenant_id:
        return AccessDecision.NOT_FOUND
    if content and not can_view_content(session.role):
        return AccessDecision.FORBIDDEN
    return AccessDecision.ALLOW
