"""
Error hierarchy for IntakeGate.

Every error carries a stable machine code and the HTTP status the service
layer answers with. Messages never include token material or signature
verification internals.
"""

from typing import Optional


class IntakeGateError(Exception):
    """Base exception for all IntakeGate failures."""

    code = "INTERNAL"
    http_status = 500

    def __init__(self, message: str = "", code: Optional[str] = None):
        self.message = message or self.__class__.__name__
        if code is not None:
            self.code = code
        super().__init__(self.message)


class InvalidClaimsError(IntakeGateError):
    """Raised at issuance when a claim set violates its kind binding."""
    code = "INVALID_CLAIMS"
    http_status = 400


class DuplicateTokenError(IntakeGateError):
    """Raised when a token hash is already present in the registry."""
    code = "DUPLICATE_TOKEN"
    http_status = 409


class UnauthorizedError(IntakeGateError):
    """No authenticated session."""
    code = "UNAUTHORIZED"
    http_status = 401


class ForbiddenError(IntakeGateError):
    """Same tenant, insufficient role."""
    code = "FORBIDDEN"
    http_status = 403


class NotFoundError(IntakeGateError):
    """Resource absent, or present in another tenant."""
    code = "NOT_FOUND"
    http_status = 404


class LinkUnavailableError(IntakeGateError):
    """
    Raised when an intake link cannot be redeemed.

    `status` is the TokenStatus value reported to the visitor ("expired"
    or "invalid"); `reason` is for audit logs only.
    """

    def __init__(self, status: str, reason: Optional[str] = None):
        self.status = status
        self.reason = reason
        if status == "expired":
            self.http_status = 410
            code = "LINK_EXPIRED"
        else:
            self.http_status = 404
            code = "LINK_INVALID"
        super().__init__(f"Intake link unavailable: {status}", code=code)


class ConfigurationError(IntakeGateError):
    """Raised when required configuration (e.g. the signing secret) is missing."""
    code = "CONFIGURATION"
    http_status = 500


class InvalidSubmissionError(IntakeGateError):
    """Intake answers missing a required field or not an object."""
    code = "INVALID_SUBMISSION"
    http_status = 400
