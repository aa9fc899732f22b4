"""
IntakeGate Link Registry

Auditable record of every issued intake token. Stores the token's SHA-256
hash and display tail, never the token itself.

Status is derived on read (lazy expiry): a stored ACTIVE record whose
expires_at has passed is reported EXPIRED. No background sweep exists.
The only mutation after issuance is ACTIVE -> USED, performed as a single
conditional update by the store.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from .errors import InvalidClaimsError
from .hashing import token_hash, token_tail
from .records import IntakeChannel, IntakeLinkRecord, LinkStatus
from .stores import IntakeLinkStore
from .tokens import IntakeLinkKind
from .util import ensure_utc, generate_id, truncate_to_millis, utc_now

logger = logging.getLogger(__name__)


def normalize_channels(channels: Iterable) -> frozenset:
    """
    Validate requested intake channels.

    Raises:
        InvalidClaimsError: If empty or containing an unknown channel
    """
    if isinstance(channels, (str, IntakeChannel)):
        channels = [channels]
    try:
        result = frozenset(IntakeChannel(c) for c in channels)
    except (TypeError, ValueError):
        raise InvalidClaimsError("unknown intake channel")
    if not result:
        raise InvalidClaimsError("at least one intake channel is required")
    return result


class LinkRegistry:
    """Issues, resolves and consumes intake link records."""

    def __init__(self, store: IntakeLinkStore, clock: Optional[Callable[[], datetime]] = None):
        self._store = store
        self._clock = clock or utc_now

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else ensure_utc(self._clock())

    def issue(
        self,
        token: str,
        tenant_id: str,
        kind: IntakeLinkKind,
        channels: Iterable,
        created_by: str,
        expires_at: datetime,
        workspace_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> IntakeLinkRecord:
        """
        Register a freshly minted token.

        The raw token is used only to compute the hash and tail and is not
        retained.

        Raises:
            InvalidClaimsError: If kind and workspace_id disagree, or channels are invalid
            DuplicateTokenError: If the token hash is already registered
        """
        if not tenant_id:
            raise InvalidClaimsError("tenant_id is required")
        if not created_by:
            raise InvalidClaimsError("created_by is required")
        try:
            kind = IntakeLinkKind(kind)
        except ValueError:
            raise InvalidClaimsError(f"unknown intake link kind: {kind!r}")
        if kind == IntakeLinkKind.EXISTING_WORKSPACE and not workspace_id:
            raise InvalidClaimsError("workspace_id is required for existing_workspace links")
        if kind == IntakeLinkKind.NEW_CLIENT and workspace_id is not None:
            raise InvalidClaimsError("workspace_id must be absent for new_client links")

        record = IntakeLinkRecord(
            id=generate_id(16),
            tenant_id=tenant_id,
            kind=kind,
            workspace_id=workspace_id,
            token_hash=token_hash(token),
            token_tail=token_tail(token),
            allowed_channels=normalize_channels(channels),
            status=LinkStatus.ACTIVE,
            created_by=created_by,
            created_at=truncate_to_millis(self._now(now)),
            expires_at=truncate_to_millis(ensure_utc(expires_at)),
        )
        self._store.insert(record)
        logger.info(
            "intake link registered id=%s tenant=%s kind=%s tail=%s",
            record.id, tenant_id, kind.value, record.token_tail
        )
        return record

    def resolve_status(self, record: IntakeLinkRecord, now: Optional[datetime] = None) -> LinkStatus:
        """
        Derive the effective status of a record.

        USED is terminal. Anything else past expires_at is EXPIRED,
        regardless of the stored value.
        """
        if record.status == LinkStatus.USED:
            return LinkStatus.USED
        if record.status == LinkStatus.EXPIRED:
            return LinkStatus.EXPIRED
        if self._now(now) >= record.expires_at:
            return LinkStatus.EXPIRED
        return LinkStatus.ACTIVE

    def mark_used(self, tenant_id: str, link_id: str, now: Optional[datetime] = None) -> bool:
        """
        Consume a link: ACTIVE -> USED.

        Single conditional update; of several concurrent callers at most
        one receives True. Links past expiry are never consumed.
        """
        ok = self._store.transition_status(
            tenant_id,
            link_id,
            expected=LinkStatus.ACTIVE,
            new=LinkStatus.USED,
            not_expired_at=self._now(now),
        )
        if not ok:
            logger.info("intake link %s not consumed (already used, expired or unknown)", link_id)
        return ok

    def release(self, tenant_id: str, link_id: str) -> bool:
        """
        Undo a consumption whose submission could not be stored: USED -> ACTIVE.
        """
        ok = self._store.transition_status(
            tenant_id,
            link_id,
            expected=LinkStatus.USED,
            new=LinkStatus.ACTIVE,
        )
        if ok:
            logger.warning("intake link %s released after a failed submission", link_id)
        return ok

    def get(self, tenant_id: str, link_id: str) -> Optional[IntakeLinkRecord]:
        return self._store.get(tenant_id, link_id)

    def find_by_token(self, tenant_id: str, token: str) -> Optional[IntakeLinkRecord]:
        """Look up the record for a presented token within a tenant."""
        return self._store.find_by_token_hash(tenant_id, token_hash(token))

    def list_links(
        self,
        tenant_id: str,
        workspace_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[IntakeLinkRecord]:
        """Tenant's records with status re-derived for the given time."""
        current = self._now(now)
        result = []
        for record in self._store.list_links(tenant_id, workspace_id):
            status = self.resolve_status(record, current)
            if status != record.status:
                record = replace(record, status=status)
            result.append(record)
        return result
