"""
IntakeGate Token Codec

Creates and verifies signed, expiring intake-link capability tokens.

Tokens are compact JWS strings (HS256) over a strict claim set:

    {purpose: "intake", kind, expiresAt, workspaceId?, tenantId?, createdBy?, jti?, exp}

`kind` is a tagged union discriminator:
- existing_workspace: workspaceId REQUIRED
- new_client:         workspaceId ABSENT

Verification order (first failure wins):
1. Structure and signature      -> INVALID
2. purpose == "intake"          -> INVALID otherwise
3. Claim schema for `kind`      -> INVALID otherwise
4. now >= expiresAt             -> EXPIRED

`jti` is a random per-issuance id, so two links minted with identical
parameters in the same millisecond still hash differently.

`expiresAt` is the authoritative expiry. The JWT `exp` claim must equal
floor(expiresAt) in epoch seconds; a disagreement is INVALID. The
library's own wall-clock `exp` enforcement is disabled so verification is
a pure function of (token, now, secret).
"""

import binascii
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

import jwt
from jwt.utils import base64url_decode, base64url_encode

from .errors import ConfigurationError, InvalidClaimsError
from .util import (
    ensure_utc,
    epoch_seconds,
    generate_id,
    parse_iso8601,
    to_iso8601,
    truncate_to_millis,
    utc_now,
)

logger = logging.getLogger(__name__)

TOKEN_PURPOSE = "intake"
DEFAULT_ALGORITHM = "HS256"

_SEGMENT_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

_ALLOWED_CLAIMS = frozenset({
    "purpose", "kind", "expiresAt", "workspaceId", "tenantId", "createdBy", "jti", "exp",
})


class IntakeLinkKind(str, Enum):
    """Discriminator for what an intake link is bound to."""
    NEW_CLIENT = "new_client"
    EXISTING_WORKSPACE = "existing_workspace"


class TokenStatus(str, Enum):
    """
    Verification outcomes.

    VALID: signature, purpose, schema and expiry all check out
    EXPIRED: well-formed token past its validity window
    INVALID: malformed, tampered, foreign or schema-violating token
    """
    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"


def _optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise InvalidClaimsError(f"{field_name} must be a non-empty string")
    return value


@dataclass(frozen=True)
class IntakeTokenClaims:
    """
    Claim set carried by an intake token.

    The kind/workspace binding is validated on construction, so an
    instance can never describe an existing-workspace link without a
    workspace or a new-client link with one.
    """
    kind: IntakeLinkKind
    expires_at: datetime
    workspace_id: Optional[str] = None
    tenant_id: Optional[str] = None
    created_by: Optional[str] = None
    token_id: Optional[str] = None

    def __post_init__(self):
        try:
            kind = IntakeLinkKind(self.kind)
        except ValueError:
            raise InvalidClaimsError(f"unknown intake link kind: {self.kind!r}")
        object.__setattr__(self, "kind", kind)

        if not isinstance(self.expires_at, datetime):
            raise InvalidClaimsError("expires_at must be a datetime")
        object.__setattr__(self, "expires_at", truncate_to_millis(ensure_utc(self.expires_at)))

        workspace_id = _optional_text(self.workspace_id, "workspace_id")
        if kind == IntakeLinkKind.EXISTING_WORKSPACE and workspace_id is None:
            raise InvalidClaimsError("workspace_id is required for existing_workspace links")
        if kind == IntakeLinkKind.NEW_CLIENT and workspace_id is not None:
            raise InvalidClaimsError("workspace_id must be absent for new_client links")

        _optional_text(self.tenant_id, "tenant_id")
        _optional_text(self.created_by, "created_by")
        _optional_text(self.token_id, "token_id")

    @property
    def purpose(self) -> str:
        return TOKEN_PURPOSE

    def to_payload(self) -> Dict[str, Any]:
        """Wire payload, omitting absent optional claims."""
        payload: Dict[str, Any] = {
            "purpose": TOKEN_PURPOSE,
            "kind": self.kind.value,
            "expiresAt": to_iso8601(self.expires_at),
            "exp": epoch_seconds(self.expires_at),
        }
        if self.workspace_id is not None:
            payload["workspaceId"] = self.workspace_id
        if self.tenant_id is not None:
            payload["tenantId"] = self.tenant_id
        if self.created_by is not None:
            payload["createdBy"] = self.created_by
        if self.token_id is not None:
            payload["jti"] = self.token_id
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'IntakeTokenClaims':
        """
        Strictly decode a verified payload.

        Raises:
            ValueError: With a reason code if the payload violates the schema
        """
        unknown = set(payload) - _ALLOWED_CLAIMS
        if unknown:
            raise ValueError("UNKNOWN_CLAIM")
        kind = payload.get("kind")
        if not isinstance(kind, str) or kind not in {k.value for k in IntakeLinkKind}:
            raise ValueError("UNKNOWN_KIND")
        try:
            expires_at = parse_iso8601(payload.get("expiresAt"))
        except (TypeError, ValueError):
            raise ValueError("BAD_EXPIRES_AT")

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, int):
            raise ValueError("BAD_EXP")
        if exp != epoch_seconds(expires_at):
            raise ValueError("EXPIRY_MISMATCH")

        try:
            return cls(
                kind=IntakeLinkKind(kind),
                expires_at=expires_at,
                workspace_id=payload.get("workspaceId"),
                tenant_id=payload.get("tenantId"),
                created_by=payload.get("createdBy"),
                token_id=payload.get("jti"),
            )
        except InvalidClaimsError:
            raise ValueError("CLAIM_SCHEMA")


@dataclass(frozen=True)
class TokenVerification:
    """Result of verifying an intake token."""
    status: TokenStatus
    claims: Optional[IntakeTokenClaims] = None
    reason: Optional[str] = None

    def is_valid(self) -> bool:
        return self.status == TokenStatus.VALID

    @classmethod
    def valid(cls, claims: IntakeTokenClaims) -> 'TokenVerification':
        return cls(status=TokenStatus.VALID, claims=claims)

    @classmethod
    def expired(cls, reason: str = "EXPIRED") -> 'TokenVerification':
        return cls(status=TokenStatus.EXPIRED, reason=reason)

    @classmethod
    def invalid(cls, reason: str) -> 'TokenVerification':
        return cls(status=TokenStatus.INVALID, reason=reason)


def _is_canonical_segment(segment: str) -> bool:
    """
    True if the segment is canonical unpadded base64url.

    Rejects encodings that only differ in unused trailing bits, so any
    single-character change to a signature is detected.
    """
    if not segment or not _SEGMENT_PATTERN.match(segment):
        return False
    try:
        decoded = base64url_decode(segment)
    except (binascii.Error, ValueError):
        return False
    return base64url_encode(decoded).decode('ascii') == segment


class IntakeTokenCodec:
    """
    Signs and verifies intake tokens with a shared secret.

    Thread-safe: holds no mutable state beyond construction.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Optional[Callable[[], datetime]] = None
    ):
        if not secret:
            raise ConfigurationError("intake link secret is not configured")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    def create_token(
        self,
        kind: IntakeLinkKind,
        expires_at: datetime,
        workspace_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> str:
        """
        Mint a signed intake token.

        Args:
            kind: Link kind (new_client or existing_workspace)
            expires_at: Absolute expiry; must be after `now`
            workspace_id: Required iff kind is existing_workspace
            tenant_id: Issuing tenant
            created_by: Issuing actor
            now: Issuance time (defaults to the codec clock)

        Returns:
            Compact JWS string

        Raises:
            InvalidClaimsError: If the claim set is inconsistent or already expired
        """
        claims = IntakeTokenClaims(
            kind=kind,
            expires_at=expires_at,
            workspace_id=workspace_id,
            tenant_id=tenant_id,
            created_by=created_by,
            token_id=generate_id(16),
        )
        issued_at = ensure_utc(now) if now is not None else self.now()
        if claims.expires_at <= issued_at:
            raise InvalidClaimsError("expires_at must be in the future")

        return jwt.encode(claims.to_payload(), self._secret, algorithm=self._algorithm)

    def verify_token(self, token: str, now: Optional[datetime] = None) -> TokenVerification:
        """
        Verify an intake token.

        Never raises for bad input; every failure maps to INVALID or EXPIRED.
        """
        if not isinstance(token, str):
            return TokenVerification.invalid("MALFORMED")

        segments = token.split(".")
        if len(segments) != 3 or not all(_is_canonical_segment(s) for s in segments):
            return TokenVerification.invalid("MALFORMED")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "require": ["exp"]},
            )
        except jwt.InvalidTokenError as e:
            logger.debug("intake token rejected: %s", type(e).__name__)
            return TokenVerification.invalid("BAD_SIGNATURE")

        if not isinstance(payload, dict) or payload.get("purpose") != TOKEN_PURPOSE:
            return TokenVerification.invalid("WRONG_PURPOSE")

        try:
            claims = IntakeTokenClaims.from_payload(payload)
        except ValueError as e:
            return TokenVerification.invalid(str(e))

        current = ensure_utc(now) if now is not None else self.now()
        if current >= claims.expires_at:
            return TokenVerification.expired()

        return TokenVerification.valid(claims)
