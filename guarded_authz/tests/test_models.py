"""Tests for model-level rules that hold however a row is written."""

from django.core.exceptions import ValidationError

from guarded_authz.api.data import PrincipalData
from guarded_authz.exceptions import GuardMismatchError
from guarded_authz.models import RolePermission
from guarded_authz.tests.test_utils import AuthzTestCase


class TestRolePermissionGuards(AuthzTestCase):
    """A role may only be granted permissions of its own guard."""

    def setUp(self):
        super().setUp()
        self.web_editor = self.create_role("editor")
        self.api_permission = self.create_permissions(["api_only"], guard="api")["api_only"]
        self.principal = PrincipalData.of("auth.user", 1)
        self.manager.assign_roles(self.principal, ["editor"])

    def test_cross_guard_row_is_rejected(self):
        """Test that saving a grant across guards fails and grants nothing."""
        with self.assertRaises(GuardMismatchError):
            RolePermission.objects.create(role=self.web_editor, permission=self.api_permission)

        self.assertFalse(RolePermission.objects.exists())
        self.assertFalse(self.authorizer.has_permission(self.principal, "api_only", "web"))

    def test_cross_guard_row_fails_validation(self):
        """Test that form validation (e.g. in the admin) reports the mismatch."""
        link = RolePermission(role=self.web_editor, permission=self.api_permission)

        with self.assertRaises(ValidationError):
            link.full_clean()

    def test_same_guard_row_is_accepted(self):
        """Test that a grant within one guard validates and saves."""
        permission = self.create_permissions(["edit_own_content"])["edit_own_content"]
        link = RolePermission(role=self.web_editor, permission=permission)

        link.full_clean()
        link.save()

        self.assertTrue(self.authorizer.has_permission(self.principal, "edit_own_content"))
