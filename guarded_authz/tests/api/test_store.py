"""Test cases for the capability store.

The store is exercised directly here, without the cache: creation and lookup
rules, idempotent links, guard checks and the casbin rules it exports.
"""

import time

from ddt import data, ddt
from django.test import TestCase

from guarded_authz.api.data import PrincipalData
from guarded_authz.api.store import CapabilityStore
from guarded_authz.exceptions import CapabilityNotFoundError, DuplicateKeyError, GuardMismatchError
from guarded_authz.models import PrincipalPermission, PrincipalRole, RolePermission
from guarded_authz.tests.test_utils import make_permission_key, make_principal_key, make_role_key


@ddt
class TestCapabilityStore(TestCase):
    """Test the relation tables through the store primitives."""

    def setUp(self):
        super().setUp()
        self.store = CapabilityStore()
        self.alice = PrincipalData.of("auth.user", 1)
        self.bob = PrincipalData.of("auth.user", 2)

    def test_create_role_duplicate_raises(self):
        """Test that (name, guard) is unique for roles.

        Expected Result:
            - The second create in the same guard raises DuplicateKeyError.
            - The same name in another guard is a different role.
        """
        self.store.create_role("admin", "web")

        with self.assertRaises(DuplicateKeyError):
            self.store.create_role("admin", "web")
        self.assertEqual(self.store.create_role("admin", "api").guard_name, "api")

    def test_create_permission_duplicate_raises(self):
        """Test that (name, guard) is unique for permissions."""
        self.store.create_permission("manage_users", "web")

        with self.assertRaises(DuplicateKeyError):
            self.store.create_permission("manage_users", "web")

    def test_get_or_create_is_idempotent(self):
        """Test the create-if-absent idiom."""
        role, created = self.store.get_or_create_role("admin", "web")
        same_role, created_again = self.store.get_or_create_role("admin", "web")

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(role, same_role)

    @data("find_role", "find_permission")
    def test_find_missing_raises(self, method):
        """Test that explicit lookups of missing names raise CapabilityNotFoundError."""
        with self.assertRaises(CapabilityNotFoundError):
            getattr(self.store, method)("ghost", "web")

    def test_find_roles_skips_missing_names(self):
        """Test that bulk lookups only return what exists in the guard."""
        self.store.create_role("admin", "web")
        self.store.create_role("manager", "api")

        self.assertEqual(set(self.store.find_roles(["admin", "manager", "ghost"], "web")), {"admin"})

    def test_assign_role_is_idempotent(self):
        """Test that re-assigning a role is a no-op, not an error."""
        role = self.store.create_role("admin", "web")

        self.assertTrue(self.store.assign_role_to_principal(self.alice, role))
        self.assertFalse(self.store.assign_role_to_principal(self.alice, role))
        self.assertEqual(PrincipalRole.objects.count(), 1)
        self.assertEqual(self.store.roles_of(self.alice), {role})

    def test_remove_absent_role_is_noop(self):
        """Test that removing a role the principal does not hold changes nothing."""
        role = self.store.create_role("admin", "web")

        self.assertFalse(self.store.remove_role_from_principal(self.alice, role))

    def test_grant_permission_to_role_is_idempotent(self):
        """Test that granting twice keeps a single link."""
        role = self.store.create_role("admin", "web")
        permission = self.store.create_permission("manage_users", "web")

        self.assertTrue(self.store.grant_permission_to_role(role, permission))
        self.assertFalse(self.store.grant_permission_to_role(role, permission))
        self.assertEqual(self.store.permissions_of_role(role), {permission})
        self.assertTrue(self.store.revoke_permission_from_role(role, permission))
        self.assertEqual(self.store.permissions_of_role(role), set())

    @data("grant_permission_to_role", "revoke_permission_from_role")
    def test_cross_guard_link_raises(self, method):
        """Test that linking a role and a permission of different guards is rejected."""
        role = self.store.create_role("admin", "web")
        permission = self.store.create_permission("manage_users", "api")

        with self.assertRaises(GuardMismatchError):
            getattr(self.store, method)(role, permission)
        self.assertFalse(RolePermission.objects.exists())

    def test_direct_permissions(self):
        """Test direct grants, filtered by guard."""
        web_permission = self.store.create_permission("publish_content", "web")
        api_permission = self.store.create_permission("publish_content", "api")

        self.store.grant_direct_permission(self.alice, web_permission)
        self.store.grant_direct_permission(self.alice, api_permission)

        self.assertEqual(self.store.direct_permissions_of(self.alice), {web_permission, api_permission})
        self.assertEqual(self.store.direct_permissions_of(self.alice, "web"), {web_permission})
        self.assertEqual(self.store.direct_permissions_of(self.bob), set())
        self.assertTrue(self.store.revoke_direct_permission(self.alice, web_permission))
        self.assertFalse(self.store.revoke_direct_permission(self.alice, web_permission))

    def test_delete_role_cascades_links(self):
        """Test that deleting a role removes its assignments and grants."""
        role = self.store.create_role("admin", "web")
        permission = self.store.create_permission("manage_users", "web")
        self.store.grant_permission_to_role(role, permission)
        self.store.assign_role_to_principal(self.alice, role)

        self.store.delete_role(role)

        self.assertFalse(PrincipalRole.objects.exists())
        self.assertFalse(RolePermission.objects.exists())
        self.assertEqual(self.store.find_permission("manage_users", "web"), permission)

    def test_remove_principal(self):
        """Test that every link of a principal goes, and only those."""
        role = self.store.create_role("admin", "web")
        permission = self.store.create_permission("publish_content", "api")
        self.store.assign_role_to_principal(self.alice, role)
        self.store.assign_role_to_principal(self.bob, role)
        self.store.grant_direct_permission(self.alice, permission)

        self.assertEqual(self.store.guards_of_principal(self.alice), {"web", "api"})
        self.assertEqual(self.store.remove_principal(self.alice), 2)
        self.assertEqual(self.store.guards_of_principal(self.alice), set())
        self.assertEqual(self.store.roles_of(self.bob), {role})
        self.assertFalse(PrincipalPermission.objects.exists())

    def test_ordered_roles_follow_assignment_time(self):
        """Test that roles come back in the order they were assigned."""
        user_role = self.store.create_role("user", "web")
        admin_role = self.store.create_role("admin", "web")

        self.store.assign_role_to_principal(self.alice, user_role)
        time.sleep(0.001)
        self.store.assign_role_to_principal(self.alice, admin_role)

        self.assertEqual(self.store.ordered_roles_of(self.alice, "web"), [user_role, admin_role])
        self.assertEqual(self.store.ordered_roles_of(self.alice, "api"), [])

    def test_iter_policy_rules(self):
        """Test that the link tables flatten into casbin rules, filtered by guard.

        Expected Result:
            - Role assignments become ``g`` rules ``[principal, role, guard]``.
            - Role grants and direct grants become ``p`` rules ``[subject, guard, permission]``.
        """
        role = self.store.create_role("admin", "web")
        permission = self.store.create_permission("manage_users", "web")
        direct = self.store.create_permission("publish_content", "web")
        other_guard = self.store.create_permission("manage_users", "api")
        self.store.grant_permission_to_role(role, permission)
        self.store.assign_role_to_principal(self.alice, role)
        self.store.grant_direct_permission(self.bob, direct)
        self.store.grant_direct_permission(self.bob, other_guard)

        rules = list(self.store.iter_policy_rules(guards=["web"]))

        self.assertEqual(
            rules,
            [
                ("g", [make_principal_key("auth.user", 1), make_role_key("admin"), "web"]),
                ("p", [make_role_key("admin"), "web", make_permission_key("manage_users")]),
                ("p", [make_principal_key("auth.user", 2), "web", make_permission_key("publish_content")]),
            ],
        )
        self.assertEqual(len(list(self.store.iter_policy_rules())), 4)
        self.assertEqual(
            [ptype for ptype, _ in self.store.iter_policy_rules(guards=["web"], ptypes=["g"])],
            ["g"],
        )
