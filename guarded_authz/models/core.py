"""Core models for the authorization framework."""

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import models

from guarded_authz.exceptions import GuardMismatchError

__all__ = [
    "Role",
    "Permission",
    "PrincipalRole",
    "RolePermission",
    "PrincipalPermission",
]


class PrincipalLinkQuerySet(models.QuerySet):
    """QuerySet for link tables keyed by a polymorphic principal."""

    def for_principal(self, principal):
        """Filter the links that belong to the given principal.

        Args:
            principal: A PrincipalData object (anything with ``model_type`` and ``id``).

        Returns:
            QuerySet: Links owned by the principal.
        """
        return self.filter(principal_type=principal.model_type, principal_id=str(principal.id))


class Role(models.Model):
    """A named bundle of permissions scoped to one guard.

    .. no_pii:
    """

    name = models.CharField(max_length=125)
    guard_name = models.CharField(max_length=125)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    permissions = models.ManyToManyField(
        "Permission",
        through="RolePermission",
        related_name="roles",
    )

    class Meta:
        db_table = "guarded_authz_roles"
        ordering = ("guard_name", "name")
        constraints = [
            models.UniqueConstraint(fields=("name", "guard_name"), name="unique_role_name_per_guard"),
        ]

    def __str__(self):
        return f"{self.name} ({self.guard_name})"


class Permission(models.Model):
    """An atomic named capability scoped to one guard.

    .. no_pii:
    """

    name = models.CharField(max_length=125)
    guard_name = models.CharField(max_length=125)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "guarded_authz_permissions"
        ordering = ("guard_name", "name")
        constraints = [
            models.UniqueConstraint(fields=("name", "guard_name"), name="unique_permission_name_per_guard"),
        ]

    def __str__(self):
        return f"{self.name} ({self.guard_name})"


class PrincipalRole(models.Model):
    """Assignment of a role to a principal.

    .. no_pii:
    """

    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="assignments")
    principal_type = models.CharField(max_length=255)
    principal_id = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PrincipalLinkQuerySet.as_manager()

    class Meta:
        db_table = "guarded_authz_principal_has_roles"
        constraints = [
            models.UniqueConstraint(
                fields=("role", "principal_type", "principal_id"),
                name="unique_principal_role",
            ),
        ]
        indexes = [
            models.Index(fields=("principal_type", "principal_id"), name="principal_roles_idx"),
        ]

    def __str__(self):
        return f"{self.principal_type}:{self.principal_id} -> {self.role.name}"


class RolePermission(models.Model):
    """Grant of a permission to a role.

    .. no_pii:
    """

    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="permission_links")
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name="role_links")

    class Meta:
        db_table = "guarded_authz_role_has_permissions"
        constraints = [
            models.UniqueConstraint(fields=("role", "permission"), name="unique_role_permission"),
        ]

    def __str__(self):
        return f"{self.role.name} -> {self.permission.name}"

    def clean(self):
        super().clean()
        try:
            role, permission = self.role, self.permission
        except ObjectDoesNotExist:
            return
        if role.guard_name != permission.guard_name:
            raise ValidationError(self.guard_mismatch_message())

    def save(self, *args, **kwargs):
        if self.role.guard_name != self.permission.guard_name:
            raise GuardMismatchError(self.guard_mismatch_message())
        super().save(*args, **kwargs)

    def guard_mismatch_message(self) -> str:
        return (
            f"Cannot link role '{self.role.name}' (guard '{self.role.guard_name}') with permission "
            f"'{self.permission.name}' (guard '{self.permission.guard_name}')."
        )


class PrincipalPermission(models.Model):
    """Permission granted directly to a principal, outside any role.

    .. no_pii:
    """

    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name="direct_grants")
    principal_type = models.CharField(max_length=255)
    principal_id = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PrincipalLinkQuerySet.as_manager()

    class Meta:
        db_table = "guarded_authz_principal_has_permissions"
        constraints = [
            models.UniqueConstraint(
                fields=("permission", "principal_type", "principal_id"),
                name="unique_principal_permission",
            ),
        ]
        indexes = [
            models.Index(fields=("principal_type", "principal_id"), name="principal_permissions_idx"),
        ]

    def __str__(self):
        return f"{self.principal_type}:{self.principal_id} -> {self.permission.name}"
