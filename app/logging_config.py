"""
Logging configuration for the IntakeGate service.

Provides structured JSON logging for audit trails and debugging.
Raw intake tokens are never passed to these helpers; callers log the
token tail or a hash prefix instead.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

HASH_PREFIX_LENGTH = 12


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    Covers intake link issuance and redemption, message content access
    refusals, notification failures and security-relevant actions.
    """

    def __init__(self, name: str = "intakegate.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def link_issued(
        self,
        link_id: str,
        tenant_id: str,
        kind: str,
        token_tail: str,
        created_by: str,
        workspace_id: Optional[str] = None
    ) -> None:
        self._log(
            logging.INFO,
            "LINK_ISSUED",
            link_id=link_id,
            tenant_id=tenant_id,
            kind=kind,
            workspace_id=workspace_id,
            token_tail=token_tail,
            created_by=created_by,
            message=f"Intake link {link_id} issued ({kind})"
        )

    def link_verified(self, token_hash: str, status: str, reason: Optional[str] = None) -> None:
        """Log a verification attempt. Only a hash prefix is recorded."""
        level = logging.INFO if status == "valid" else logging.WARNING
        self._log(
            level,
            "LINK_VERIFIED",
            token_hash_prefix=token_hash[:HASH_PREFIX_LENGTH],
            status=status,
            reason=reason,
            message=f"Intake link verification: {status}"
        )

    def link_redeemed(
        self,
        link_id: str,
        tenant_id: str,
        response_id: str,
        workspace_id: Optional[str] = None
    ) -> None:
        self._log(
            logging.INFO,
            "LINK_REDEEMED",
            link_id=link_id,
            tenant_id=tenant_id,
            workspace_id=workspace_id,
            response_id=response_id,
            message=f"Intake link {link_id} redeemed"
        )

    def redemption_rejected(self, token_hash: str, status: str, reason: Optional[str] = None) -> None:
        self._log(
            logging.WARNING,
            "REDEMPTION_REJECTED",
            token_hash_prefix=token_hash[:HASH_PREFIX_LENGTH],
            status=status,
            reason=reason,
            message=f"Intake link redemption rejected: {status}"
        )

    def content_access_denied(
        self,
        user_id: str,
        tenant_id: str,
        role: str,
        message_id: str,
        decision: str
    ) -> None:
        self._log(
            logging.WARNING,
            "CONTENT_ACCESS_DENIED",
            user_id=user_id,
            tenant_id=tenant_id,
            role=role,
            message_id=message_id,
            decision=decision,
            message=f"Message content refused for {user_id} ({decision})"
        )

    def notification_failed(self, channel: str, error: str, link_id: Optional[str] = None) -> None:
        self._log(
            logging.ERROR,
            "NOTIFICATION_FAILED",
            channel=channel,
            link_id=link_id,
            error=error,
            message=f"Notification via {channel} failed"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )

    def rate_limit_exceeded(
        self,
        client_id: str,
        endpoint: str
    ) -> None:
        self._log(
            logging.WARNING,
            "RATE_LIMIT_EXCEEDED",
            client_id=client_id,
            endpoint=endpoint,
            message=f"Rate limit exceeded for {client_id} on {endpoint}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if not request_id:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
