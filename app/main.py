"""
IntakeGate HTTP service.

Build with `create_app(...)` (tests inject stores, clock and notifier) or
serve from the environment with:

    uvicorn --factory app.main:create_app_from_env
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from intakegate.disclosure import MessageDisclosureService
from intakegate.errors import (
    ConfigurationError,
    ForbiddenError,
    IntakeGateError,
    LinkUnavailableError,
    UnauthorizedError,
)
from intakegate.hashing import token_hash
from intakegate.issuance import (
    DEFAULT_EXISTING_WORKSPACE_CHANNELS,
    DEFAULT_NEW_CLIENT_CHANNELS,
    IntakeLinkService,
)
from intakegate.records import IntakeResponse
from intakegate.registry import LinkRegistry
from intakegate.steps import intake_steps, validate_responses
from intakegate.stores import IntakeLinkStore, IntakeResponseStore, MessageStore
from intakegate.tokens import IntakeTokenCodec, TokenStatus
from intakegate.util import generate_id, to_iso8601

from . import config
from .config import Settings, validate_config
from .db import SqliteStore
from .logging_config import HASH_PREFIX_LENGTH, audit_log, configure_logging, set_request_id
from .models import CreateIntakeLinkRequest, CreateNewClientLinkRequest, IntakeSubmission
from .notifications import WebhookNotifier
from .rate_limit import RateLimiter
from .security import (
    ValidationError,
    WORKSPACE_ID_PATTERN,
    extract_client_id,
    get_session,
    looks_like_token,
    validate_identifier,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    link_store: Optional[IntakeLinkStore] = None,
    message_store: Optional[MessageStore] = None,
    response_store: Optional[IntakeResponseStore] = None,
    notifier: Optional[WebhookNotifier] = None,
    clock: Optional[Callable[[], datetime]] = None
) -> FastAPI:
    """
    Assemble the service.

    Stores left as None share one SqliteStore at settings.db_path.

    Raises:
        ConfigurationError: If the signing secret is missing, or any
            configuration check fails in production
    """
    settings = settings or Settings.from_env()

    checks = validate_config(settings)
    if not all(checks.values()):
        failed = sorted(name for name, ok in checks.items() if not ok)
        if settings.env == "prod":
            raise ConfigurationError(f"configuration checks failed: {', '.join(failed)}")
        logger.warning("configuration checks failed: %s", ", ".join(failed))

    if link_store is None or message_store is None or response_store is None:
        sqlite_store = SqliteStore(settings.db_path)
        link_store = link_store or sqlite_store
        message_store = message_store or sqlite_store
        response_store = response_store or sqlite_store

    codec = IntakeTokenCodec(settings.intake_link_secret, clock=clock)
    links = IntakeLinkService(codec, LinkRegistry(link_store, clock=clock), settings.app_base_url)
    disclosure = MessageDisclosureService(message_store)
    notifier = notifier or WebhookNotifier(
        settings.notify_webhook_url,
        timeout=settings.notify_timeout_seconds,
        review_url=f"{settings.app_base_url.rstrip('/')}/admin/clients",
    )
    intake_limiter = RateLimiter(settings.intake_rpm)
    issue_limiter = RateLimiter(settings.issue_rpm)

    app = FastAPI(title="IntakeGate", debug=config.is_debug())
    app.state.settings = settings
    app.state.links = links
    app.state.disclosure = disclosure
    app.state.responses = response_store
    app.state.notifier = notifier

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        rid = set_request_id(request.headers.get("x-request-id"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response

    @app.exception_handler(IntakeGateError)
    async def _intakegate_error(request: Request, exc: IntakeGateError):
        return JSONResponse(status_code=exc.http_status, content={"detail": exc.code})

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": f"INVALID_INPUT:{exc.field}"})

    def _require_session(request: Request):
        session = get_session(request.headers)
        if session is None:
            raise UnauthorizedError("authentication required")
        return session

    def _limit_issue(session) -> None:
        if not issue_limiter.allow(f"tenant:{session.tenant_id}"):
            audit_log.rate_limit_exceeded(f"tenant:{session.tenant_id}", "issue")
            raise HTTPException(429, "RATE_LIMIT")

    def _limit_intake(request: Request) -> None:
        peer = request.client.host if request.client else None
        client_id = extract_client_id(
            request.headers, fallback=peer, trust_forwarded=settings.trust_forwarded_for
        )
        if not intake_limiter.allow(client_id):
            audit_log.rate_limit_exceeded(client_id, "intake")
            raise HTTPException(429, "RATE_LIMIT")

    def _issued(issued) -> None:
        r = issued.record
        audit_log.link_issued(r.id, r.tenant_id, r.kind.value, r.token_tail, r.created_by, r.workspace_id)

    # ============================================================
    # Intake link issuance (authenticated)
    # ============================================================

    @app.post("/intake-links")
    def create_intake_link(req: CreateIntakeLinkRequest, request: Request):
        session = _require_session(request)
        _limit_issue(session)
        workspace_id = req.workspace_id
        if workspace_id is not None:
            workspace_id = validate_identifier(workspace_id, "workspaceId", WORKSPACE_ID_PATTERN)

        issued = links.issue_for_existing_workspace(
            session,
            workspace_id,
            channels=req.channels if req.channels is not None else DEFAULT_EXISTING_WORKSPACE_CHANNELS,
            expires_in_hours=(
                req.expires_in_hours if req.expires_in_hours is not None
                else settings.existing_workspace_expiry_hours
            ),
        )
        _issued(issued)
        return {**issued.record.to_dict(), "url": issued.url}

    @app.post("/intake-links/new-client")
    def create_new_client_link(request: Request, req: Optional[CreateNewClientLinkRequest] = None):
        session = _require_session(request)
        _limit_issue(session)
        req = req or CreateNewClientLinkRequest()

        issued = links.issue_for_new_client(
            session,
            channels=req.channels if req.channels is not None else DEFAULT_NEW_CLIENT_CHANNELS,
            expires_in_hours=(
                req.expires_in_hours if req.expires_in_hours is not None
                else settings.new_client_expiry_hours
            ),
        )
        _issued(issued)
        return {"url": issued.url}

    @app.get("/intake-links")
    def list_intake_links(request: Request, workspaceId: Optional[str] = None):
        session = _require_session(request)
        records = links.registry.list_links(session.tenant_id, workspaceId)
        return {"data": [r.to_dict() for r in records]}

    # ============================================================
    # Intake form (anonymous, token is the capability)
    # ============================================================

    @app.get("/intake/{token}")
    def open_intake(token: str, request: Request):
        _limit_intake(request)
        if not looks_like_token(token):
            raise LinkUnavailableError(TokenStatus.INVALID.value, "MALFORMED")

        now = links.now()
        result = links.verify(token, now=now)
        audit_log.link_verified(token_hash(token), result.status.value, result.reason)
        if result.reason == "BINDING_MISMATCH":
            audit_log.security_event(
                "intake_binding_mismatch",
                severity="high",
                token_hash_prefix=token_hash(token)[:HASH_PREFIX_LENGTH],
            )
        if not result.is_valid():
            raise LinkUnavailableError(result.status.value, result.reason)

        claims = result.claims
        return {
            "valid": True,
            "kind": claims.kind.value,
            "workspaceId": claims.workspace_id,
            "expiresAt": to_iso8601(claims.expires_at),
            "steps": intake_steps(now.date()),
        }

    @app.post("/intake/{token}")
    def submit_intake(token: str, req: IntakeSubmission, request: Request):
        _limit_intake(request)
        if not looks_like_token(token):
            raise LinkUnavailableError(TokenStatus.INVALID.value, "MALFORMED")

        hashed = token_hash(token)
        now = links.now()
        result = links.verify(token, now=now)
        if not result.is_valid():
            audit_log.redemption_rejected(hashed, result.status.value, result.reason)
            raise LinkUnavailableError(result.status.value, result.reason)

        answers = validate_responses(req.responses, intake_steps(now.date()))

        try:
            redemption = links.redeem(token, now=now)
        except LinkUnavailableError as e:
            audit_log.redemption_rejected(hashed, e.status, e.reason)
            raise

        link = redemption.link
        response = IntakeResponse(
            id=generate_id(16),
            tenant_id=link.tenant_id,
            intake_link_id=link.id,
            workspace_id=link.workspace_id,
            submitted_at=now,
            responses=answers,
        )
        try:
            response_store.save_response(response)
        except Exception:
            links.registry.release(link.tenant_id, link.id)
            logger.exception("intake response for link %s not stored", link.id)
            raise
        audit_log.link_redeemed(link.id, link.tenant_id, response.id, link.workspace_id)

        notifier.intake_submitted(link, response)

        return {"intakeResponse": response.to_dict()}

    # ============================================================
    # Messages (authenticated, role-gated)
    # ============================================================

    @app.get("/messages/meta")
    def message_meta(request: Request, workspaceId: Optional[str] = None):
        session = _require_session(request)
        metas = disclosure.list_meta(session, workspace_id=workspaceId)
        return {"data": [m.to_dict() for m in metas]}

    @app.get("/messages/meta/summary")
    def message_meta_summary(request: Request):
        session = _require_session(request)
        summary = disclosure.meta_summary(session)
        return {"unreadTotal": summary["unread_total"], "urgentCount": summary["urgent_count"]}

    @app.get("/messages/content")
    def message_content(request: Request, id: Optional[str] = None):
        session = _require_session(request)
        if not id:
            raise HTTPException(400, "MISSING_ID")
        try:
            record = disclosure.get_content(session, id)
        except ForbiddenError:
            audit_log.content_access_denied(
                session.user_id, session.tenant_id, session.role.value, id, "forbidden"
            )
            raise
        return {"data": record.to_dict()}

    # ============================================================
    # Health
    # ============================================================

    @app.get("/health")
    def health():
        checks = validate_config(settings)
        return {
            "status": "ok" if all(checks.values()) else "degraded",
            "env": settings.env,
            "config": checks,
        }

    return app


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn: configure logging, then build from the environment."""
    configure_logging(config.LOG_LEVEL, json_format=config.LOG_JSON)
    return create_app(Settings.from_env())
