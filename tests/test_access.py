"""
Access gate tests: the role table and the tenant boundary.
"""

import unittest

from intakegate import (
    AccessDecision,
    Role,
    Session,
    authorize_read,
    can_issue_links,
    can_view_content,
)


class TestRoleTable(unittest.TestCase):

    def test_content_roles(self):
        self.assertTrue(can_view_content(Role.OWNER))
        self.assertTrue(can_view_content(Role.ADMIN))
        self.assertFalse(can_view_content(Role.STAFF))

    def test_role_strings_accepted(self):
        self.assertTrue(can_view_content("owner"))
        self.assertFalse(can_view_content("staff"))

    def test_every_role_may_issue_links(self):
        for role in Role:
            with self.subTest(role=role):
                self.assertTrue(can_issue_links(role))


class TestSession(unittest.TestCase):

    def test_role_coerced(self):
        self.assertEqual(Session("u-1", "tenant-a", "admin").role, Role.ADMIN)

    def test_ids_required(self):
        with self.assertRaises(ValueError):
            Session("", "tenant-a", Role.OWNER)
        with self.assertRaises(ValueError):
            Session("u-1", "", Role.OWNER)

    def test_unknown_role_rejected(self):
        with self.assertRaises(ValueError):
            Session("u-1", "tenant-a", "superuser")


class TestAuthorizeRead(unittest.TestCase):

    def test_no_session(self):
        self.assertEqual(authorize_read(None, "tenant-a"), AccessDecision.UNAUTHORIZED)
        self.assertEqual(authorize_read(None, "tenant-a", content=True), AccessDecision.UNAUTHORIZED)

    def test_same_tenant_matrix(self):
        expected = {
            (Role.OWNER, False): AccessDecision.ALLOW,
            (Role.OWNER, True): AccessDecision.ALLOW,
            (Role.ADMIN, False): AccessDecision.ALLOW,
            (Role.ADMIN, True): AccessDecision.ALLOW,
            (Role.STAFF, False): AccessDecision.ALLOW,
            (Role.STAFF, True): AccessDecision.FORBIDDEN,
        }
        for (role, content), decision in expected.items():
            with self.subTest(role=role, content=content):
                session = Session("u-1", "tenant-a", role)
                self.assertEqual(authorize_read(session, "tenant-a", content=content), decision)

    def test_cross_tenant_is_not_found_for_every_role(self):
        for role in Role:
            for content in (False, True):
                with self.subTest(role=role, content=content):
                    session = Session("u-1", "tenant-a", role)
                    self.assertEqual(
                        authorize_read(session, "tenant-b", content=content),
                        AccessDecision.NOT_FOUND
                    )

    def test_missing_target_tenant_is_not_found(self):
        session = Session("u-1", "tenant-a", Role.OWNER)
        self.assertEqual(authorize_read(session, ""), AccessDecision.NOT_FOUND)


if __name__ == "__main__":
    unittest.main()
