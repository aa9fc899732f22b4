import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.db import SqliteStore
from intakegate.errors import DuplicateTokenError
from intakegate.records import (
    Attachment,
    IntakeChannel,
    IntakeLinkRecord,
    IntakeResponse,
    LinkStatus,
    MessageChannel,
    MessageRecord,
    Urgency,
)
from intakegate.tokens import IntakeLinkKind

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def db(tmp_path):
    s = SqliteStore(str(tmp_path / "nested" / "intakegate.db"))
    yield s
    s.close()


def make_link(link_id="link-1", tenant_id="tenant-a", token_hash="a" * 64, **overrides):
    params = dict(
        id=link_id,
        tenant_id=tenant_id,
        kind=IntakeLinkKind.EXISTING_WORKSPACE,
        workspace_id="ws-1",
        token_hash=token_hash,
        token_tail="wxyz",
        allowed_channels=frozenset({IntakeChannel.EMAIL, IntakeChannel.SMS}),
        status=LinkStatus.ACTIVE,
        created_by="user-1",
        created_at=NOW,
        expires_at=NOW + timedelta(hours=168),
    )
    params.update(overrides)
    return IntakeLinkRecord(**params)


def test_link_round_trip(db):
    record = make_link()
    db.insert(record)

    assert db.get("tenant-a", "link-1") == record
    assert db.find_by_token_hash("tenant-a", "a" * 64) == record


def test_new_client_link_round_trip(db):
    record = make_link(kind=IntakeLinkKind.NEW_CLIENT, workspace_id=None)
    db.insert(record)
    assert db.get("tenant-a", "link-1").workspace_id is None


def test_duplicate_hash_rejected(db):
    db.insert(make_link())
    with pytest.raises(DuplicateTokenError):
        db.insert(make_link(link_id="link-2", tenant_id="tenant-b"))


def test_reads_are_tenant_scoped(db):
    db.insert(make_link())

    assert db.get("tenant-b", "link-1") is None
    assert db.find_by_token_hash("tenant-b", "a" * 64) is None
    assert db.list_links("tenant-b") == []


def test_list_links_newest_first(db):
    db.insert(make_link("old", token_hash="1" * 64, created_at=NOW - timedelta(hours=1)))
    db.insert(make_link("new", token_hash="2" * 64, workspace_id="ws-2"))

    assert [r.id for r in db.list_links("tenant-a")] == ["new", "old"]
    assert [r.id for r in db.list_links("tenant-a", "ws-1")] == ["old"]


def test_transition_is_compare_and_set(db):
    db.insert(make_link())

    assert db.transition_status("tenant-a", "link-1", LinkStatus.ACTIVE, LinkStatus.USED, not_expired_at=NOW)
    assert not db.transition_status("tenant-a", "link-1", LinkStatus.ACTIVE, LinkStatus.USED, not_expired_at=NOW)
    assert db.get("tenant-a", "link-1").status == LinkStatus.USED


def test_transition_respects_expiry_and_tenant(db):
    db.insert(make_link(expires_at=NOW + timedelta(minutes=5)))

    assert not db.transition_status(
        "tenant-a", "link-1", LinkStatus.ACTIVE, LinkStatus.USED,
        not_expired_at=NOW + timedelta(minutes=5)
    )
    assert not db.transition_status("tenant-b", "link-1", LinkStatus.ACTIVE, LinkStatus.USED)
    assert db.get("tenant-a", "link-1").status == LinkStatus.ACTIVE


def test_concurrent_transition_has_one_winner(db):
    db.insert(make_link())
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        ok = db.transition_status("tenant-a", "link-1", LinkStatus.ACTIVE, LinkStatus.USED, not_expired_at=NOW)
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert results.count(False) == 7


def test_message_round_trip(db):
    message = MessageRecord(
        id="msg-1", tenant_id="tenant-a", workspace_id="ws-1",
        channel=MessageChannel.WHATSAPP, sender="+15551234432",
        subject=None, body="Sent the docs",
        attachments=(Attachment("w2.pdf", 1024, "application/pdf"),),
        received_at=NOW, unread=False, urgency=Urgency.HIGH,
    )
    db.add_message(message)

    assert db.get_message("tenant-a", "msg-1") == message
    assert db.get_message("tenant-b", "msg-1") is None
    assert db.list_messages("tenant-a", "ws-2") == []


def test_response_round_trip(db):
    response = IntakeResponse(
        id="resp-1", tenant_id="tenant-a", intake_link_id="link-1", workspace_id=None,
        submitted_at=NOW, responses={"fullName": "Ada", "taxYears": ["2025", "2024"]},
    )
    db.save_response(response)

    assert db.list_responses("tenant-a") == [response]
    assert db.list_responses("tenant-a", "other-link") == []
    assert db.list_responses("tenant-b") == []


def test_reset_clears_tables(db):
    db.insert(make_link())
    db.save_response(IntakeResponse(
        id="resp-1", tenant_id="tenant-a", intake_link_id="link-1", workspace_id="ws-1",
        submitted_at=NOW, responses={"fullName": "Ada"},
    ))

    db.reset()
    assert db.list_links("tenant-a") == []
    assert db.list_responses("tenant-a") == []
    db.insert(make_link())
    assert db.get("tenant-a", "link-1") is not None
