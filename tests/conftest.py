import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from app.config import Settings
from app.db import SqliteStore
from app.main import create_app
from app.notifications import WebhookNotifier
from intakegate.records import MessageChannel, MessageRecord

SECRET = "test-intake-link-secret-0123456789abcdef"
START = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


SEED_MESSAGES = [
    MessageRecord(
        id="msg-a1", tenant_id="tenant-a", workspace_id="ws-1",
        channel=MessageChannel.EMAIL, sender="client@example.com",
        subject="Missing W-2 for this year",
        body="Hi, I uploaded my W-2 but the 1099 is missing. Reach me at 555-123-4432.",
        received_at=START - timedelta(hours=2),
    ),
    MessageRecord(
        id="msg-a2", tenant_id="tenant-a", workspace_id="ws-2",
        channel=MessageChannel.SMS, sender="(555) 987-6543",
        body="Running late today", received_at=START - timedelta(hours=1),
        unread=False,
    ),
    MessageRecord(
        id="msg-b1", tenant_id="tenant-b", workspace_id="ws-9",
        channel=MessageChannel.EMAIL, sender="private@tenantb.com",
        body="Tenant B only", received_at=START - timedelta(hours=3),
    ),
]


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        env="dev",
        intake_link_secret=SECRET,
        app_base_url="https://portal.example.com",
        db_path=str(tmp_path / "intakegate.db"),
    )


@pytest.fixture
def store(settings):
    s = SqliteStore(settings.db_path)
    for message in SEED_MESSAGES:
        s.add_message(message)
    yield s
    s.close()


@pytest.fixture
def notifier():
    return WebhookNotifier(None)


@pytest.fixture
def app(settings, store, notifier, clock):
    return create_app(
        settings,
        link_store=store,
        message_store=store,
        response_store=store,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def as_user():
    def _headers(role="owner", tenant="tenant-a", user="user-1"):
        return {"X-User-Id": user, "X-Tenant-Id": tenant, "X-User-Role": role}
    return _headers
