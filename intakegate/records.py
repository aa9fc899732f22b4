"""
Record types for IntakeGate.

IntakeLinkRecord is the persisted registry layout. MessageRecord is full
inbound-message content (owner/admin only); MessageMeta is its redacted
projection and is never stored.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .tokens import IntakeLinkKind
from .util import to_iso8601


class IntakeChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"


class LinkStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    USED = "used"


class MessageChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    IG = "ig"
    FACEBOOK = "facebook"


class Urgency(str, Enum):
    LOW = "low"
    MED = "med"
    HIGH = "high"


class Classification(str, Enum):
    MISSING_DOCS = "missing_docs"
    APPOINTMENT = "appointment"
    GENERAL = "general"
    QUESTION = "question"
    OTHER = "other"


@dataclass(frozen=True)
class IntakeLinkRecord:
    """
    Registry entry for an issued intake token.

    Holds only the token's SHA-256 hash and its last four characters;
    neither is enough to redeem the link.
    """
    id: str
    tenant_id: str
    kind: IntakeLinkKind
    workspace_id: Optional[str]
    token_hash: str
    token_tail: str
    allowed_channels: FrozenSet[IntakeChannel]
    status: LinkStatus
    created_by: str
    created_at: datetime
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "kind": self.kind.value,
            "workspaceId": self.workspace_id,
            "tokenHash": self.token_hash,
            "tokenTail": self.token_tail,
            "allowedChannels": sorted(c.value for c in self.allowed_channels),
            "status": self.status.value,
            "createdBy": self.created_by,
            "createdAt": to_iso8601(self.created_at),
            "expiresAt": to_iso8601(self.expires_at),
        }


@dataclass(frozen=True)
class Attachment:
    name: str
    size: int
    content_type: str


@dataclass(frozen=True)
class MessageRecord:
    """Full message content as ingested. Read-only to this package."""
    id: str
    tenant_id: str
    workspace_id: str
    channel: MessageChannel
    sender: str
    body: str
    received_at: datetime
    subject: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()
    unread: bool = True
    urgency: Optional[Urgency] = None
    classification: Optional[Classification] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "workspaceId": self.workspace_id,
            "channel": self.channel.value,
            "sender": self.sender,
            "subject": self.subject,
            "rawBody": self.body,
            "attachments": [
                {"name": a.name, "size": a.size, "contentType": a.content_type}
                for a in self.attachments
            ],
            "receivedAt": to_iso8601(self.received_at),
            "unread": self.unread,
        }


@dataclass(frozen=True)
class MessageMeta:
    """Redacted, staff-visible view of a message. Derived, never authored."""
    id: str
    tenant_id: str
    workspace_id: str
    channel: MessageChannel
    from_masked: str
    snippet_masked: str
    unread: bool
    received_at: datetime
    urgency: Urgency
    classification: Classification
    subject_masked: Optional[str] = None
    attachment_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "workspaceId": self.workspace_id,
            "channel": self.channel.value,
            "fromMasked": self.from_masked,
            "subjectMasked": self.subject_masked,
            "snippetMasked": self.snippet_masked,
            "unread": self.unread,
            "receivedAt": to_iso8601(self.received_at),
            "urgency": self.urgency.value,
            "classification": self.classification.value,
            "attachmentCount": self.attachment_count,
        }


@dataclass(frozen=True)
class IntakeResponse:
    """Answers submitted through a redeemed intake link."""
    id: str
    tenant_id: str
    intake_link_id: str
    workspace_id: Optional[str]
    submitted_at: datetime
    responses: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "intakeLinkId": self.intake_link_id,
            "workspaceId": self.workspace_id,
            "submittedAt": to_iso8601(self.submitted_at),
            "responses": dict(self.responses),
        }
