"""
Disclosure surface tests: staff see redacted meta only, content is
owner/admin only, and another tenant's data is indistinguishable from
missing data.
"""

import unittest
from datetime import datetime, timedelta, timezone

from intakegate import (
    ForbiddenError,
    InMemoryMessageStore,
    MessageChannel,
    MessageDisclosureService,
    MessageRecord,
    NotFoundError,
    Role,
    Session,
    UnauthorizedError,
)

RECEIVED = datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


def _seed():
    return [
        MessageRecord(
            id="msg-a1", tenant_id="tenant-a", workspace_id="ws-1",
            channel=MessageChannel.EMAIL, sender="client@example.com",
            subject="Question about my return", body="When will my refund arrive?",
            received_at=RECEIVED,
        ),
        MessageRecord(
            id="msg-a2", tenant_id="tenant-a", workspace_id="ws-2",
            channel=MessageChannel.SMS, sender="(555) 987-6543",
            body="Running late today", received_at=RECEIVED + timedelta(minutes=5),
            unread=False,
        ),
        MessageRecord(
            id="msg-b1", tenant_id="tenant-b", workspace_id="ws-9",
            channel=MessageChannel.EMAIL, sender="private@tenantb.com",
            body="Tenant B only", received_at=RECEIVED,
        ),
    ]


class TestListMeta(unittest.TestCase):

    def setUp(self):
        self.service = MessageDisclosureService(InMemoryMessageStore(_seed()))

    def test_staff_sees_masked_meta(self):
        staff = Session("staff-1", "tenant-a", Role.STAFF)
        metas = self.service.list_meta(staff)

        self.assertEqual([m.id for m in metas], ["msg-a2", "msg-a1"])
        self.assertEqual(metas[1].from_masked, "client@****.com")
        self.assertEqual(metas[0].from_masked, "(***) ***-6543")

    def test_workspace_filter(self):
        owner = Session("owner-1", "tenant-a", Role.OWNER)
        self.assertEqual([m.id for m in self.service.list_meta(owner, workspace_id="ws-1")], ["msg-a1"])

    def test_never_crosses_tenants(self):
        owner = Session("owner-1", "tenant-a", Role.OWNER)
        self.assertNotIn("msg-b1", [m.id for m in self.service.list_meta(owner)])

    def test_other_tenant_target_is_not_found(self):
        owner = Session("owner-1", "tenant-a", Role.OWNER)
        with self.assertRaises(NotFoundError):
            self.service.list_meta(owner, tenant_id="tenant-b")

    def test_unauthenticated(self):
        with self.assertRaises(UnauthorizedError):
            self.service.list_meta(None)

    def test_summary(self):
        staff = Session("staff-1", "tenant-a", Role.STAFF)
        self.assertEqual(self.service.meta_summary(staff), {"unread_total": 1, "urgent_count": 1})


class TestGetContent(unittest.TestCase):

    def setUp(self):
        self.service = MessageDisclosureService(InMemoryMessageStore(_seed()))

    def test_staff_forbidden(self):
        staff = Session("staff-1", "tenant-a", Role.STAFF)
        with self.assertRaises(ForbiddenError) as ctx:
            self.service.get_content(staff, "msg-a1")
        self.assertEqual(ctx.exception.http_status, 403)

    def test_owner_and_admin_see_content(self):
        for role in (Role.OWNER, Role.ADMIN):
            with self.subTest(role=role):
                session = Session("u-1", "tenant-a", role)
                record = self.service.get_content(session, "msg-a1")
                self.assertEqual(record.body, "When will my refund arrive?")
                self.assertEqual(record.to_dict()["rawBody"], "When will my refund arrive?")

    def test_cross_tenant_owner_gets_not_found(self):
        owner_b = Session("owner-b", "tenant-b", Role.OWNER)
        with self.assertRaises(NotFoundError):
            self.service.get_content(owner_b, "msg-a1")

    def test_cross_tenant_target_is_not_found_even_for_staff(self):
        staff = Session("staff-1", "tenant-a", Role.STAFF)
        with self.assertRaises(NotFoundError):
            self.service.get_content(staff, "msg-b1", tenant_id="tenant-b")

    def test_unknown_message(self):
        owner = Session("owner-1", "tenant-a", Role.OWNER)
        with self.assertRaises(NotFoundError):
            self.service.get_content(owner, "msg-zz")

    def test_unauthenticated(self):
        with self.assertRaises(UnauthorizedError):
            self.service.get_content(None, "msg-a1")


if __name__ == "__main__":
    unittest.main()
