"""
Configuration module for the IntakeGate service.

Centralizes all configuration with environment variable support and
validation. Values are read once at import; `Settings.from_env()`
re-reads them for app factories and tests.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("INTAKEGATE_ENV", "dev")  # dev|stage|prod

# Signing secret for intake link tokens. The dev fallback is rejected
# outside dev by validate_config().
DEV_INTAKE_LINK_SECRET = "dev-only-intake-link-secret-change-me-0000"
INTAKE_LINK_SECRET = os.getenv("INTAKE_LINK_SECRET", "")

# Public base URL used to build intake link URLs
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")

# Paths
DB_PATH = os.getenv("INTAKEGATE_DB_PATH", "data/intakegate.db")

# Link lifetimes (hours)
EXISTING_WORKSPACE_EXPIRY_HOURS = int(os.getenv("EXISTING_WORKSPACE_EXPIRY_HOURS", "168"))
NEW_CLIENT_EXPIRY_HOURS = int(os.getenv("NEW_CLIENT_EXPIRY_HOURS", "72"))

# Rate limits (requests per minute)
INTAKE_RPM = int(os.getenv("INTAKE_RPM", "60"))
ISSUE_RPM = int(os.getenv("ISSUE_RPM", "120"))

# Only honour X-Forwarded-For when a trusted reverse proxy sets it
TRUST_FORWARDED_FOR = os.getenv("TRUST_FORWARDED_FOR", "false").lower() in ("1", "true", "yes")

# Notifications
NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL", "")
NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "5"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "true").lower() in ("1", "true", "yes")

MIN_SECRET_LENGTH = 32


# ============================================================
# Settings
# ============================================================

@dataclass
class Settings:
    """Resolved configuration handed to create_app()."""
    env: str = "dev"
    intake_link_secret: str = ""
    app_base_url: str = "http://localhost:3000"
    db_path: str = "data/intakegate.db"
    existing_workspace_expiry_hours: int = 168
    new_client_expiry_hours: int = 72
    intake_rpm: int = 60
    issue_rpm: int = 120
    trust_forwarded_for: bool = False
    notify_webhook_url: str = ""
    notify_timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            env=ENV,
            intake_link_secret=get_intake_link_secret(),
            app_base_url=APP_BASE_URL,
            db_path=DB_PATH,
            existing_workspace_expiry_hours=EXISTING_WORKSPACE_EXPIRY_HOURS,
            new_client_expiry_hours=NEW_CLIENT_EXPIRY_HOURS,
            intake_rpm=INTAKE_RPM,
            issue_rpm=ISSUE_RPM,
            trust_forwarded_for=TRUST_FORWARDED_FOR,
            notify_webhook_url=NOTIFY_WEBHOOK_URL,
            notify_timeout_seconds=NOTIFY_TIMEOUT_SECONDS,
        )


def get_intake_link_secret() -> str:
    """
    Resolve the token signing secret.

    Falls back to a fixed development secret only when ENV is dev.
    """
    if INTAKE_LINK_SECRET:
        return INTAKE_LINK_SECRET
    if ENV == "dev":
        return DEV_INTAKE_LINK_SECRET
    return ""


# ============================================================
# Validation
# ============================================================

def validate_config(settings: Optional[Settings] = None) -> Dict[str, bool]:
    """
    Validate required configuration.
    Returns dict of check name -> ok.
    """
    settings = settings or Settings.from_env()
    secret = settings.intake_link_secret
    return {
        "intake_link_secret": bool(secret) and (
            settings.env == "dev" or secret != DEV_INTAKE_LINK_SECRET
        ),
        "intake_link_secret_length": len(secret) >= MIN_SECRET_LENGTH,
        "app_base_url": settings.app_base_url.startswith(("http://", "https://")),
        "notify_webhook_url": (
            not settings.notify_webhook_url
            or settings.notify_webhook_url.startswith("https://")
            or settings.env == "dev"
        ),
    }


# ============================================================
# Feature Flags
# ============================================================

def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("INTAKEGATE_DEBUG", "").lower() in ("1", "true", "yes")
