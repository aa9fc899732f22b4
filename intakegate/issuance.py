"""
Intake link issuance and redemption.

Issuance:   TokenCodec mints -> LinkRegistry records hash + metadata.
Verify:     TokenCodec verifies -> registry record re-checked (lazy expiry,
            used state, claim/record binding).
Redeem:     verify -> atomic ACTIVE -> USED. Links are single-use; the
            consumption happens on submission, not on viewing the form.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .access import Session, can_issue_links
from .errors import ForbiddenError, InvalidClaimsError, LinkUnavailableError, UnauthorizedError
from .records import IntakeChannel, IntakeLinkRecord, LinkStatus
from .registry import LinkRegistry
from .tokens import IntakeLinkKind, IntakeTokenClaims, IntakeTokenCodec, TokenStatus, TokenVerification
from .util import ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_EXISTING_WORKSPACE_HOURS = 24 * 7
DEFAULT_NEW_CLIENT_HOURS = 72
MAX_EXPIRY_HOURS = 24 * 90

DEFAULT_EXISTING_WORKSPACE_CHANNELS = (IntakeChannel.EMAIL,)
DEFAULT_NEW_CLIENT_CHANNELS = (IntakeChannel.EMAIL, IntakeChannel.SMS, IntakeChannel.WHATSAPP)


@dataclass(frozen=True)
class IssuedLink:
    """A registered link and its shareable URL. The URL carries the raw token."""
    record: IntakeLinkRecord
    url: str


@dataclass(frozen=True)
class Redemption:
    claims: IntakeTokenClaims
    link: IntakeLinkRecord


def _validate_hours(expires_in_hours) -> float:
    try:
        hours = float(expires_in_hours)
    except (TypeError, ValueError):
        raise InvalidClaimsError("expires_in_hours must be a number")
    if not math.isfinite(hours) or hours <= 0 or hours > MAX_EXPIRY_HOURS:
        raise InvalidClaimsError(f"expires_in_hours must be within (0, {MAX_EXPIRY_HOURS}]")
    return hours


class IntakeLinkService:
    """Issuance and redemption surface consumed by the HTTP layer."""

    def __init__(self, codec: IntakeTokenCodec, registry: LinkRegistry, base_url: str):
        self._codec = codec
        self._registry = registry
        self._base_url = base_url.rstrip("/")

    @property
    def registry(self) -> LinkRegistry:
        return self._registry

    def now(self) -> datetime:
        return self._codec.now()

    def build_url(self, token: str) -> str:
        return f"{self._base_url}/intake/{token}"

    @staticmethod
    def _check_issuer(session: Optional[Session]) -> Session:
        if session is None:
            raise UnauthorizedError("authentication required")
        if not can_issue_links(session.role):
            raise ForbiddenError("role may not issue intake links")
        return session

    def _issue(
        self,
        session: Session,
        kind: IntakeLinkKind,
        workspace_id: Optional[str],
        channels: Iterable,
        expires_in_hours,
        now: Optional[datetime]
    ) -> IssuedLink:
        issued_at = ensure_utc(now) if now is not None else self._codec.now()
        expires_at = issued_at + timedelta(hours=_validate_hours(expires_in_hours))

        token = self._codec.create_token(
            kind,
            expires_at,
            workspace_id=workspace_id,
            tenant_id=session.tenant_id,
            created_by=session.user_id,
            now=issued_at,
        )
        record = self._registry.issue(
            token,
            tenant_id=session.tenant_id,
            kind=kind,
            channels=channels,
            created_by=session.user_id,
            expires_at=expires_at,
            workspace_id=workspace_id,
            now=issued_at,
        )
        return IssuedLink(record=record, url=self.build_url(token))

    def issue_for_existing_workspace(
        self,
        session: Optional[Session],
        workspace_id: str,
        channels: Iterable = DEFAULT_EXISTING_WORKSPACE_CHANNELS,
        expires_in_hours=DEFAULT_EXISTING_WORKSPACE_HOURS,
        now: Optional[datetime] = None
    ) -> IssuedLink:
        """
        Issue a link bound to an existing client workspace.

        Raises:
            InvalidClaimsError: If workspace_id is missing or parameters are invalid
            UnauthorizedError / ForbiddenError: If the caller may not issue links
        """
        session = self._check_issuer(session)
        if not workspace_id:
            raise InvalidClaimsError("workspace_id is required for existing_workspace links")
        return self._issue(
            session, IntakeLinkKind.EXISTING_WORKSPACE, workspace_id,
            channels, expires_in_hours, now
        )

    def issue_for_new_client(
        self,
        session: Optional[Session],
        channels: Iterable = DEFAULT_NEW_CLIENT_CHANNELS,
        expires_in_hours=DEFAULT_NEW_CLIENT_HOURS,
        now: Optional[datetime] = None
    ) -> IssuedLink:
        """Issue a link that onboards a brand-new client (no workspace)."""
        session = self._check_issuer(session)
        return self._issue(
            session, IntakeLinkKind.NEW_CLIENT, None,
            channels, expires_in_hours, now
        )

    def verify(self, token: str, now: Optional[datetime] = None) -> TokenVerification:
        """
        Check a presented token without consuming it.

        Signature, purpose, schema and expiry come from the codec; the
        registry then confirms the link was issued here, is bound to the
        same kind and workspace, and has not been used or lazily expired.
        """
        now = ensure_utc(now) if now is not None else self._codec.now()
        result = self._codec.verify_token(token, now=now)
        if not result.is_valid():
            return result

        claims = result.claims
        if not claims.tenant_id:
            return TokenVerification.invalid("NO_TENANT")

        link = self._registry.find_by_token(claims.tenant_id, token)
        if link is None:
            return TokenVerification.invalid("LINK_NOT_FOUND")
        if link.kind != claims.kind or link.workspace_id != claims.workspace_id:
            return TokenVerification.invalid("BINDING_MISMATCH")

        status = self._registry.resolve_status(link, now)
        if status == LinkStatus.USED:
            return TokenVerification.invalid("LINK_USED")
        if status == LinkStatus.EXPIRED:
            return TokenVerification.expired("LINK_EXPIRED")
        return result

    def redeem(self, token: str, now: Optional[datetime] = None) -> Redemption:
        """
        Verify and consume a link.

        Raises:
            LinkUnavailableError: If the token is expired, invalid, already
                used, or another redemption won the race
        """
        now = ensure_utc(now) if now is not None else self._codec.now()
        result = self.verify(token, now=now)
        if not result.is_valid():
            raise LinkUnavailableError(result.status.value, result.reason)

        claims = result.claims
        link = self._registry.find_by_token(claims.tenant_id, token)
        if link is None or not self._registry.mark_used(claims.tenant_id, link.id, now=now):
            raise LinkUnavailableError(TokenStatus.INVALID.value, "LINK_USED")

        logger.info("intake link %s redeemed tenant=%s", link.id, claims.tenant_id)
        return Redemption(claims=claims, link=replace(link, status=LinkStatus.USED))
