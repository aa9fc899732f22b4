"""
IntakeGate

Version: 1.0.0

Time-limited, single-use intake links and role-gated message disclosure
for multi-tenant client portals.

An intake link is a capability token: whoever holds the URL may open the
intake form until the link expires or is used once. Tokens are signed
JWTs with a strict claim set; the registry keeps only their SHA-256 hash.

Message reads are two-tier:
- meta:    masked sender, subject and snippet for every role of the tenant
- content: raw body and attachments for OWNER and ADMIN only

Usage:
    from intakegate import (
        IntakeTokenCodec,
        IntakeLinkService,
        InMemoryLinkStore,
        LinkRegistry,
        Session,
    )

    codec = IntakeTokenCodec(secret)
    service = IntakeLinkService(codec, LinkRegistry(InMemoryLinkStore()), base_url)

    session = Session(user_id="u-1", tenant_id="tenant-a", role="staff")
    issued = service.issue_for_existing_workspace(session, "ws-1")

    # later, from the visitor
    result = service.verify(token)
    if result.is_valid():
        service.redeem(token)
"""

__version__ = "1.0.0"

# Errors
from .errors import (
    IntakeGateError,
    InvalidClaimsError,
    InvalidSubmissionError,
    DuplicateTokenError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    LinkUnavailableError,
    ConfigurationError,
)

# Tokens
from .tokens import (
    IntakeLinkKind,
    IntakeTokenClaims,
    IntakeTokenCodec,
    TokenStatus,
    TokenVerification,
    TOKEN_PURPOSE,
)
from .hashing import token_hash, token_tail

# Records and storage
from .records import (
    Attachment,
    Classification,
    IntakeChannel,
    IntakeLinkRecord,
    IntakeResponse,
    LinkStatus,
    MessageChannel,
    MessageMeta,
    MessageRecord,
    Urgency,
)
from .stores import (
    IntakeLinkStore,
    MessageStore,
    IntakeResponseStore,
    InMemoryLinkStore,
    InMemoryMessageStore,
    InMemoryResponseStore,
)

# Registry, access, projection
from .registry import LinkRegistry, normalize_channels
from .access import (
    AccessDecision,
    Role,
    Session,
    authorize_read,
    can_issue_links,
    can_view_content,
    has_role,
)
from .projector import project, project_all, mask_contact, mask_subject, make_snippet

# Services
from .issuance import IntakeLinkService, IssuedLink, Redemption
from .disclosure import MessageDisclosureService
from .steps import intake_steps, validate_responses


__all__ = [
    "__version__",

    # Errors
    "IntakeGateError",
    "InvalidClaimsError",
    "InvalidSubmissionError",
    "DuplicateTokenError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "LinkUnavailableError",
    "ConfigurationError",

    # Tokens
    "IntakeLinkKind",
    "IntakeTokenClaims",
    "IntakeTokenCodec",
    "TokenStatus",
    "TokenVerification",
    "TOKEN_PURPOSE",
    "token_hash",
    "token_tail",

    # Records
    "Attachment",
    "Classification",
    "IntakeChannel",
    "IntakeLinkRecord",
    "IntakeResponse",
    "LinkStatus",
    "MessageChannel",
    "MessageMeta",
    "MessageRecord",
    "Urgency",

    # Stores
    "IntakeLinkStore",
    "MessageStore",
    "IntakeResponseStore",
    "InMemoryLinkStore",
    "InMemoryMessageStore",
    "InMemoryResponseStore",

    # Registry / access / projection
    "LinkRegistry",
    "normalize_channels",
    "AccessDecision",
    "Role",
    "Session",
    "authorize_read",
    "can_issue_links",
    "can_view_content",
    "has_role",
    "project",
    "project_all",
    "mask_contact",
    "mask_subject",
    "make_snippet",

    # Services
    "IntakeLinkService",
    "IssuedLink",
    "Redemption",
    "MessageDisclosureService",
    "intake_steps",
    "validate_responses",
]
