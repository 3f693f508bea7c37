"""Test cases for the AssignmentManager.

Each test verifies both the store state and what the Authorizer answers right
after the mutation, since every mutation must be visible to the next check.
"""

from unittest.mock import call, patch

from ddt import data, ddt, unpack

from guarded_authz.api.data import PrincipalData, RoleData, SyncResult
from guarded_authz.exceptions import UnknownCapabilityError, UnknownGuardError
from guarded_authz.models import Permission, PrincipalPermission, PrincipalRole, Role
from guarded_authz.tests.test_utils import AuthzTestCase


@ddt
class TestAssignmentManager(AuthzTestCase):
    """Test role and permission mutations and their cache invalidation."""

    def setUp(self):
        super().setUp()
        self.create_role("a", ["view_dashboard"])
        self.create_role("b", ["view_reports"])
        self.create_role("c", ["view_logs"])
        self.create_role("a", ["view_dashboard"], guard="api")
        self.create_permissions(["publish_content", "export_data"])
        self.principal = PrincipalData.of("auth.user", 7)

    def test_assign_roles_is_idempotent(self):
        """Test that assigning the same role twice equals assigning it once."""
        self.assertEqual(self.manager.assign_roles(self.principal, ["a"]), ["a"])
        self.assertEqual(self.manager.assign_roles(self.principal, ["a"]), [])

        self.assertEqual(self.authorizer.get_role_names(self.principal), {"a"})
        self.assertEqual(PrincipalRole.objects.count(), 1)

    def test_assign_and_remove_roles(self):
        """Test that removal only touches the named roles."""
        self.manager.assign_roles(self.principal, ["a", "b"])
        self.assertTrue(self.authorizer.has_all_roles(self.principal, ["a", "b"]))

        self.assertEqual(self.manager.remove_roles(self.principal, ["a", "c"]), ["a"])

        self.assertEqual(self.authorizer.get_role_names(self.principal), {"b"})

    def test_sync_roles_uses_set_difference(self):
        """Test that consecutive syncs leave exactly the last set.

        Expected Result:
            - syncRoles([a, b]) then syncRoles([b, c]) leaves {b, c}.
            - The second sync attaches c and detaches a, and leaves b untouched.
        """
        self.assertEqual(
            self.manager.sync_roles(self.principal, ["a", "b"]),
            SyncResult(attached=["a", "b"], detached=[]),
        )
        b_assignment = PrincipalRole.objects.get(role__name="b", role__guard_name="web")

        result = self.manager.sync_roles(self.principal, ["b", "c"])

        self.assertEqual(result, SyncResult(attached=["c"], detached=["a"]))
        self.assertEqual(self.authorizer.get_role_names(self.principal), {"b", "c"})
        self.assertTrue(PrincipalRole.objects.filter(pk=b_assignment.pk).exists())

    def test_sync_roles_never_passes_through_empty_set(self):
        """Test that a full role swap adds before removing.

        A reader looking at the store during any removal must still see roles.
        """
        self.manager.assign_roles(self.principal, ["a"])
        remove = self.store.remove_role_from_principal

        def checked_remove(principal, role):
            self.assertTrue(self.store.roles_of(principal, "web"))
            return remove(principal, role)

        with patch.object(self.store, "remove_role_from_principal", side_effect=checked_remove) as mock_remove:
            self.manager.sync_roles(self.principal, ["c"])

        mock_remove.assert_called_once()
        self.assertEqual(self.authorizer.get_role_names(self.principal), {"c"})

    def test_sync_roles_leaves_other_guards_alone(self):
        """Test that a sync in one guard keeps the roles of another."""
        self.manager.assign_roles(self.principal, ["a"], guard="api")

        self.manager.sync_roles(self.principal, ["b"], guard="web")

        self.assertEqual(self.authorizer.get_role_names(self.principal, guard="api"), {"a"})
        self.assertEqual(self.authorizer.get_role_names(self.principal, guard="web"), {"b"})

    @data(
        ("assign_roles", ["a", "ghost", "phantom"], "role"),
        ("sync_roles", ["ghost"], "role"),
        ("give_direct_permissions", ["publish_content", "ghost"], "permission"),
        ("sync_direct_permissions", ["ghost"], "permission"),
    )
    @unpack
    def test_unknown_names_abort_without_writing(self, method, names, kind):
        """Test that an unknown name fails the whole operation before any write."""
        with self.assertRaises(UnknownCapabilityError) as context:
            getattr(self.manager, method)(self.principal, names)

        self.assertEqual(context.exception.kind, kind)
        self.assertEqual(context.exception.guard, "web")
        self.assertNotIn("a", context.exception.names)
        self.assertFalse(PrincipalRole.objects.exists())
        self.assertFalse(PrincipalPermission.objects.exists())

    def test_names_from_another_guard_are_unknown(self):
        """Test that a role that exists only in another guard cannot be assigned."""
        self.create_role("api_only", guard="api")

        with self.assertRaises(UnknownCapabilityError):
            self.manager.assign_roles(self.principal, ["api_only"], guard="web")

    def test_unconfigured_guard_raises(self):
        """Test that mutations under an unconfigured guard are rejected."""
        with self.assertRaises(UnknownGuardError):
            self.manager.assign_roles(self.principal, ["a"], guard="console")

    def test_direct_permissions(self):
        """Test giving, revoking and syncing direct permissions."""
        self.assertEqual(
            self.manager.give_direct_permissions(self.principal, ["publish_content"]),
            ["publish_content"],
        )
        self.assertTrue(self.authorizer.has_permission(self.principal, "publish_content"))

        result = self.manager.sync_direct_permissions(self.principal, ["export_data"])

        self.assertEqual(result, SyncResult(attached=["export_data"], detached=["publish_content"]))
        self.assertFalse(self.authorizer.has_permission(self.principal, "publish_content"))
        self.assertEqual(self.manager.revoke_direct_permissions(self.principal, ["export_data"]), ["export_data"])
        self.assertEqual(self.authorizer.get_effective_permissions(self.principal), frozenset())

    def test_revoking_direct_permission_keeps_role_permission(self):
        """Test that a permission held through a role survives a direct revoke."""
        self.manager.assign_roles(self.principal, ["a"])
        self.manager.give_direct_permissions(self.principal, ["view_dashboard"])

        self.manager.revoke_direct_permissions(self.principal, ["view_dashboard"])

        self.assertTrue(self.authorizer.has_permission(self.principal, "view_dashboard"))

    @data("name", "role_data", "model")
    def test_role_permissions_accept_any_role_reference(self, reference):
        """Test role-side operations with a name, a RoleData or a Role."""
        self.manager.assign_roles(self.principal, ["a"])
        role = {
            "name": lambda: "a",
            "role_data": lambda: RoleData(external_key="a", guard="web"),
            "model": lambda: Role.objects.get(name="a", guard_name="web"),
        }[reference]()

        self.assertEqual(self.manager.give_role_permissions(role, ["publish_content"]), ["publish_content"])
        self.assertTrue(self.authorizer.has_permission(self.principal, "publish_content"))

        self.assertEqual(self.manager.revoke_role_permissions(role, ["publish_content"]), ["publish_content"])
        self.assertFalse(self.authorizer.has_permission(self.principal, "publish_content"))

    def test_sync_role_permissions(self):
        """Test that a role's permissions are replaced by set difference."""
        self.manager.assign_roles(self.principal, ["a"])

        result = self.manager.sync_role_permissions("a", ["view_dashboard", "export_data"])

        self.assertEqual(result, SyncResult(attached=["export_data"], detached=[]))
        result = self.manager.sync_role_permissions("a", ["export_data"])
        self.assertEqual(result, SyncResult(attached=[], detached=["view_dashboard"]))
        self.assertEqual(self.authorizer.get_effective_permissions(self.principal), {"export_data"})

    def test_role_in_other_guard_rejects_permissions_of_this_guard(self):
        """Test that role permissions are resolved in the role's own guard."""
        api_role = Role.objects.get(name="a", guard_name="api")

        with self.assertRaises(UnknownCapabilityError) as context:
            self.manager.give_role_permissions(api_role, ["publish_content"])
        self.assertEqual(context.exception.guard, "api")

    def test_unknown_role_reference_raises(self):
        """Test that role-side operations on a missing role fail."""
        with self.assertRaises(UnknownCapabilityError):
            self.manager.give_role_permissions("ghost", ["publish_content"])

    def test_delete_role(self):
        """Test that deleting a role removes it from its holders."""
        self.manager.assign_roles(self.principal, ["a", "b"])
        self.assertTrue(self.authorizer.has_permission(self.principal, "view_dashboard"))

        self.manager.delete_role("a")

        self.assertEqual(self.authorizer.get_role_names(self.principal), {"b"})
        self.assertFalse(self.authorizer.has_permission(self.principal, "view_dashboard"))

    def test_delete_permission(self):
        """Test that deleting a permission removes it everywhere in its guard."""
        self.manager.assign_roles(self.principal, ["a"])
        self.manager.give_direct_permissions(self.principal, ["publish_content"])

        self.manager.delete_permission("view_dashboard")
        self.manager.delete_permission(Permission.objects.get(name="publish_content", guard_name="web"))

        self.assertEqual(self.authorizer.get_effective_permissions(self.principal), frozenset())
        with self.assertRaises(UnknownCapabilityError):
            self.manager.delete_permission("view_dashboard")

    def test_remove_principal(self):
        """Test that a principal loses everything in every guard."""
        self.manager.assign_roles(self.principal, ["a"])
        self.manager.assign_roles(self.principal, ["a"], guard="api")
        self.manager.give_direct_permissions(self.principal, ["publish_content"])

        self.assertEqual(self.manager.remove_principal(self.principal), 3)

        self.assertEqual(self.authorizer.get_role_names(self.principal), frozenset())
        self.assertEqual(self.authorizer.get_role_names(self.principal, guard="api"), frozenset())
        self.assertEqual(self.manager.remove_principal(self.principal), 0)

    def test_mutation_invalidates_before_and_after_commit(self):
        """Test the double invalidation around the write.

        Expected Result:
            - The guard is invalidated once before the transaction.
            - It is invalidated again by the on-commit hook.
        """
        with patch.object(self.cache, "invalidate") as mock_invalidate:
            with self.captureOnCommitCallbacks(execute=False) as callbacks:
                self.manager.assign_roles(self.principal, ["a"])

            self.assertEqual(mock_invalidate.call_args_list, [call("web")])
            self.assertEqual(len(callbacks), 1)

            callbacks[0]()

        self.assertEqual(mock_invalidate.call_args_list, [call("web"), call("web")])

    def test_failed_write_rolls_back_everything(self):
        """Test that a write failing mid-transaction leaves no partial assignment."""
        assign = self.store.assign_role_to_principal
        attempted = []

        def failing_assign(principal, role):
            attempted.append(role.name)
            if len(attempted) > 1:
                raise RuntimeError("boom")
            return assign(principal, role)

        with patch.object(self.store, "assign_role_to_principal", side_effect=failing_assign):
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(RuntimeError):
                    self.manager.assign_roles(self.principal, ["a", "b"])

        self.assertEqual(attempted, ["a", "b"])
        self.assertEqual(callbacks, [])
        self.assertFalse(PrincipalRole.objects.exists())
        self.assertEqual(self.authorizer.get_role_names(self.principal), frozenset())

    def test_sync_reads_current_roles_inside_the_transaction(self):
        """Test that an assignment landing just before the write is still replaced.

        Expected Result:
            - Role ``c`` is assigned by someone else right before the sync writes.
            - The sync still leaves exactly the requested set and reports ``c`` detached.
        """
        self.manager.assign_roles(self.principal, ["a"])
        mutating = self.manager._mutating  # pylint: disable=protected-access

        def interleaved(*guards):
            PrincipalRole.objects.create(
                role=Role.objects.get(name="c", guard_name="web"),
                principal_type=self.principal.model_type,
                principal_id=str(self.principal.id),
            )
            return mutating(*guards)

        with patch.object(self.manager, "_mutating", side_effect=interleaved):
            result = self.manager.sync_roles(self.principal, ["b"])

        self.assertEqual(result, SyncResult(attached=["b"], detached=["a", "c"]))
        self.assertEqual(self.authorizer.get_role_names(self.principal), {"b"})

    def test_sync_role_permissions_reads_current_grants_inside_the_transaction(self):
        """Test that a grant landing just before the write is still replaced."""
        mutating = self.manager._mutating  # pylint: disable=protected-access

        def interleaved(*guards):
            self.store.grant_permission_to_role(
                Role.objects.get(name="a", guard_name="web"),
                Permission.objects.get(name="export_data", guard_name="web"),
            )
            return mutating(*guards)

        with patch.object(self.manager, "_mutating", side_effect=interleaved):
            result = self.manager.sync_role_permissions("a", ["publish_content"])

        self.assertEqual(result, SyncResult(attached=["publish_content"], detached=["export_data", "view_dashboard"]))
        self.assertEqual(
            set(Role.objects.get(name="a", guard_name="web").permissions.values_list("name", flat=True)),
            {"publish_content"},
        )

    def test_manager_writes_are_not_invalidated_by_signal_handlers(self):
        """Test that link signals leave the manager's own writes alone.

        Expected Result:
            - One invalidation before the transaction and one on commit, however many rows change.
        """
        with patch.object(self.cache, "invalidate") as mock_invalidate:
            with self.captureOnCommitCallbacks(execute=True):
                self.manager.sync_roles(self.principal, ["a", "b", "c"])

        self.assertEqual(mock_invalidate.call_args_list, [call("web"), call("web")])
