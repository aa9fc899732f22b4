"""
Message disclosure surface.

- list_meta:   redacted views for any authenticated role of the tenant
- get_content: full record for OWNER/ADMIN of the owning tenant

Every store read passes the tenant explicitly; nothing is post-filtered.
"""

import logging
from typing import Dict, List, Optional

from .access import AccessDecision, Session, authorize_read
from .errors import ForbiddenError, NotFoundError, UnauthorizedError
from .projector import project_all
from .records import MessageMeta, MessageRecord, Urgency
from .stores import MessageStore

logger = logging.getLogger(__name__)


def _raise_for(decision: AccessDecision) -> None:
    if decision == AccessDecision.UNAUTHORIZED:
        raise UnauthorizedError("authentication required")
    if decision == AccessDecision.NOT_FOUND:
        raise NotFoundError("not found")
    if decision == AccessDecision.FORBIDDEN:
        raise ForbiddenError("message content is restricted to owner and admin roles")


class MessageDisclosureService:
    """Role-gated access to inbound messages."""

    def __init__(self, store: MessageStore):
        self._store = store

    def list_meta(
        self,
        session: Optional[Session],
        workspace_id: Optional[str] = None,
        tenant_id: Optional[str] = None
    ) -> List[MessageMeta]:
        """
        Redacted message list for the caller's tenant.

        Raises:
            UnauthorizedError: Without a session
            NotFoundError: When tenant_id names another tenant
        """
        target = tenant_id or (session.tenant_id if session else None)
        _raise_for(authorize_read(session, target))
        return project_all(self._store.list_messages(target, workspace_id))

    def get_content(
        self,
        session: Optional[Session],
        message_id: str,
        tenant_id: Optional[str] = None
    ) -> MessageRecord:
        """
        Full message content.

        Raises:
            UnauthorizedError: Without a session
            ForbiddenError: Same tenant, role without content access
            NotFoundError: Other tenant, or no such message
        """
        target = tenant_id or (session.tenant_id if session else None)
        decision = authorize_read(session, target, content=True)
        if decision != AccessDecision.ALLOW:
            if session is not None:
                logger.warning(
                    "message content refused user=%s tenant=%s decision=%s",
                    session.user_id, session.tenant_id, decision.value
                )
            _raise_for(decision)

        record = self._store.get_message(target, message_id)
        if record is None:
            raise NotFoundError("not found")
        return record

    def meta_summary(self, session: Optional[Session]) -> Dict[str, int]:
        """Unread and urgent counts over the caller's tenant."""
        metas = self.list_meta(session)
        return {
            "unread_total": sum(1 for m in metas if m.unread),
            "urgent_count": sum(1 for m in metas if m.urgency == Urgency.HIGH),
        }
