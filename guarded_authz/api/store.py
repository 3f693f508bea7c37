"""Identity and capability store.

The store is the durable side of the framework: it creates roles and permissions,
links them to principals and to each other, and answers set queries over those
links. It knows nothing about caching. Callers that change assignments at runtime
should go through ``AssignmentManager``, which pairs every write with a cache
invalidation.
"""

import logging

from django.db import IntegrityError, transaction

from guarded_authz.api.data import PermissionData, PrincipalData, RoleData, as_name_set
from guarded_authz.exceptions import CapabilityNotFoundError, DuplicateKeyError, GuardMismatchError
from guarded_authz.models import Permission, PrincipalPermission, PrincipalRole, Role, RolePermission

__all__ = ["CapabilityStore"]

logger = logging.getLogger(__name__)

POLICY_PTYPE = "p"
GROUPING_PTYPE = "g"


class CapabilityStore:
    """Query and mutation primitives over the role and permission tables.

    Every mutating method runs inside ``transaction.atomic()`` so a concurrent
    reader never observes a partially applied change.
    """

    # Roles and permissions

    def create_role(self, name: str, guard: str) -> Role:
        """Create a role.

        Raises:
            DuplicateKeyError: If a role with the same name exists in the guard.
        """
        try:
            with transaction.atomic():
                role = Role.objects.create(name=name, guard_name=guard)
        except IntegrityError as exc:
            raise DuplicateKeyError(f"Role '{name}' already exists for guard '{guard}'.") from exc
        logger.info(f"Created role '{name}' for guard '{guard}'")
        return role

    def create_permission(self, name: str, guard: str) -> Permission:
        """Create a permission.

        Raises:
            DuplicateKeyError: If a permission with the same name exists in the guard.
        """
        try:
            with transaction.atomic():
                permission = Permission.objects.create(name=name, guard_name=guard)
        except IntegrityError as exc:
            raise DuplicateKeyError(f"Permission '{name}' already exists for guard '{guard}'.") from exc
        logger.info(f"Created permission '{name}' for guard '{guard}'")
        return permission

    def get_or_create_role(self, name: str, guard: str) -> tuple[Role, bool]:
        """Return the role, creating it when absent."""
        try:
            return self.find_role(name, guard), False
        except CapabilityNotFoundError:
            pass
        try:
            return self.create_role(name, guard), True
        except DuplicateKeyError:
            # Created concurrently between the lookup and the insert.
            return self.find_role(name, guard), False

    def get_or_create_permission(self, name: str, guard: str) -> tuple[Permission, bool]:
        """Return the permission, creating it when absent."""
        try:
            return self.find_permission(name, guard), False
        except CapabilityNotFoundError:
            pass
        try:
            return self.create_permission(name, guard), True
        except DuplicateKeyError:
            return self.find_permission(name, guard), False

    def find_role(self, name: str, guard: str) -> Role:
        """Look up a role by name within a guard.

        Raises:
            CapabilityNotFoundError: If no such role exists.
        """
        try:
            return Role.objects.get(name=name, guard_name=guard)
        except Role.DoesNotExist as exc:
            raise CapabilityNotFoundError(f"Role '{name}' does not exist for guard '{guard}'.") from exc

    def find_permission(self, name: str, guard: str) -> Permission:
        """Look up a permission by name within a guard.

        Raises:
            CapabilityNotFoundError: If no such permission exists.
        """
        try:
            return Permission.objects.get(name=name, guard_name=guard)
        except Permission.DoesNotExist as exc:
            raise CapabilityNotFoundError(f"Permission '{name}' does not exist for guard '{guard}'.") from exc

    def find_roles(self, names, guard: str) -> dict[str, Role]:
        """Resolve role names within a guard. Missing names are absent from the result."""
        names = as_name_set(names)
        if not names:
            return {}
        return {role.name: role for role in Role.objects.filter(guard_name=guard, name__in=names)}

    def find_permissions(self, names, guard: str) -> dict[str, Permission]:
        """Resolve permission names within a guard. Missing names are absent from the result."""
        names = as_name_set(names)
        if not names:
            return {}
        return {
            permission.name: permission
            for permission in Permission.objects.filter(guard_name=guard, name__in=names)
        }

    def all_roles(self, guard: str) -> list[Role]:
        """Return every role defined in a guard."""
        return list(Role.objects.filter(guard_name=guard))

    def all_permissions(self, guard: str) -> list[Permission]:
        """Return every permission defined in a guard."""
        return list(Permission.objects.filter(guard_name=guard))

    def delete_role(self, role: Role) -> None:
        """Delete a role along with its principal and permission links."""
        with transaction.atomic():
            role.delete()
        logger.info(f"Deleted role '{role.name}' for guard '{role.guard_name}'")

    def delete_permission(self, permission: Permission) -> None:
        """Delete a permission along with its role and principal links."""
        with transaction.atomic():
            permission.delete()
        logger.info(f"Deleted permission '{permission.name}' for guard '{permission.guard_name}'")

    # Links

    def assign_role_to_principal(self, principal: PrincipalData, role: Role) -> bool:
        """Assign a role to a principal. Re-assigning is a no-op.

        Returns:
            bool: True if a new assignment was created.
        """
        with transaction.atomic():
            _, created = PrincipalRole.objects.get_or_create(
                role=role,
                principal_type=principal.model_type,
                principal_id=str(principal.id),
            )
        return created

    def remove_role_from_principal(self, principal: PrincipalData, role: Role) -> bool:
        """Remove a role from a principal. Removing an absent role is a no-op.

        Returns:
            bool: True if an assignment was removed.
        """
        with transaction.atomic():
            deleted, _ = PrincipalRole.objects.for_principal(principal).filter(role=role).delete()
        return deleted > 0

    def grant_permission_to_role(self, role: Role, permission: Permission) -> bool:
        """Grant a permission to a role. Granting twice is a no-op.

        Raises:
            GuardMismatchError: If the role and the permission belong to different guards.
        """
        self._check_same_guard(role, permission)
        with transaction.atomic():
            _, created = RolePermission.objects.get_or_create(role=role, permission=permission)
        return created

    def revoke_permission_from_role(self, role: Role, permission: Permission) -> bool:
        """Revoke a permission from a role. Revoking an absent grant is a no-op.

        Raises:
            GuardMismatchError: If the role and the permission belong to different guards.
        """
        self._check_same_guard(role, permission)
        with transaction.atomic():
            deleted, _ = RolePermission.objects.filter(role=role, permission=permission).delete()
        return deleted > 0

    def grant_direct_permission(self, principal: PrincipalData, permission: Permission) -> bool:
        """Grant a permission directly to a principal. Granting twice is a no-op."""
        with transaction.atomic():
            _, created = PrincipalPermission.objects.get_or_create(
                permission=permission,
                principal_type=principal.model_type,
                principal_id=str(principal.id),
            )
        return created

    def revoke_direct_permission(self, principal: PrincipalData, permission: Permission) -> bool:
        """Revoke a direct permission from a principal. Revoking an absent grant is a no-op."""
        with transaction.atomic():
            deleted, _ = (
                PrincipalPermission.objects.for_principal(principal).filter(permission=permission).delete()
            )
        return deleted > 0

    def remove_principal(self, principal: PrincipalData) -> int:
        """Remove every role assignment and direct permission of a principal.

        Returns:
            int: The number of links removed.
        """
        with transaction.atomic():
            roles_deleted, _ = PrincipalRole.objects.for_principal(principal).delete()
            permissions_deleted, _ = PrincipalPermission.objects.for_principal(principal).delete()
        return roles_deleted + permissions_deleted

    # Queries

    def roles_of(self, principal: PrincipalData, guard: str | None = None, for_update: bool = False) -> set[Role]:
        """Return the roles assigned to a principal, optionally within one guard.

        With ``for_update`` the principal's assignment rows are locked until the
        surrounding transaction ends. It must be called inside ``transaction.atomic()``.
        """
        if for_update:
            links = PrincipalRole.objects.for_principal(principal).select_related("role").select_for_update()
            if guard is not None:
                links = links.filter(role__guard_name=guard)
            return {link.role for link in links}
        return set(self._roles_of_queryset(principal, guard))

    def ordered_roles_of(self, principal: PrincipalData, guard: str | None = None) -> list[Role]:
        """Return the roles of a principal in assignment order (ties broken by role name)."""
        links = PrincipalRole.objects.for_principal(principal).select_related("role")
        if guard is not None:
            links = links.filter(role__guard_name=guard)
        return [link.role for link in links.order_by("created_at", "role__name", "id")]

    def direct_permissions_of(
        self, principal: PrincipalData, guard: str | None = None, for_update: bool = False
    ) -> set[Permission]:
        """Return the permissions granted directly to a principal, optionally within one guard.

        With ``for_update`` the principal's grant rows are locked until the surrounding
        transaction ends.
        """
        if for_update:
            links = PrincipalPermission.objects.for_principal(principal).select_related("permission")
            if guard is not None:
                links = links.filter(permission__guard_name=guard)
            return {link.permission for link in links.select_for_update()}
        queryset = Permission.objects.filter(
            direct_grants__principal_type=principal.model_type,
            direct_grants__principal_id=str(principal.id),
        )
        if guard is not None:
            queryset = queryset.filter(guard_name=guard)
        return set(queryset)

    def permissions_of_role(self, role: Role, for_update: bool = False) -> set[Permission]:
        """Return the permissions a role grants.

        With ``for_update`` the role row is locked first, so a concurrent sync of the
        same role waits for the surrounding transaction.
        """
        if for_update:
            list(Role.objects.select_for_update().filter(pk=role.pk).values_list("pk", flat=True))
        return set(role.permissions.all())

    def guards_of_principal(self, principal: PrincipalData) -> set[str]:
        """Return the guards in which a principal holds a role or a direct permission."""
        guards = set(
            PrincipalRole.objects.for_principal(principal).values_list("role__guard_name", flat=True)
        )
        guards.update(
            PrincipalPermission.objects.for_principal(principal).values_list("permission__guard_name", flat=True)
        )
        return guards

    def iter_policy_rules(self, guards=None, ptypes=None):
        """Yield the link tables flattened into casbin policy rules.

        Grouping rules (``g``) have the shape ``[principal, role, guard]``; policy rules
        (``p``) have the shape ``[subject, guard, permission]`` where the subject is a role
        (role permission) or a principal (direct permission).

        Args:
            guards: Guards to include. Empty or None includes every guard.
            ptypes: Rule types to include (``"p"``, ``"g"``). Empty or None includes both.

        Yields:
            tuple[str, list[str]]: The rule type and the rule values.
        """
        ptypes = set(ptypes or (POLICY_PTYPE, GROUPING_PTYPE))

        role_links = PrincipalRole.objects.all()
        role_permissions = RolePermission.objects.all()
        direct_permissions = PrincipalPermission.objects.all()
        if guards:
            role_links = role_links.filter(role__guard_name__in=guards)
            role_permissions = role_permissions.filter(role__guard_name__in=guards)
            direct_permissions = direct_permissions.filter(permission__guard_name__in=guards)

        if GROUPING_PTYPE in ptypes:
            for principal_type, principal_id, role_name, guard in role_links.order_by("id").values_list(
                "principal_type", "principal_id", "role__name", "role__guard_name"
            ):
                yield GROUPING_PTYPE, [
                    PrincipalData.of(principal_type, principal_id).namespaced_key,
                    RoleData(external_key=role_name).namespaced_key,
                    guard,
                ]

        if POLICY_PTYPE in ptypes:
            for role_name, guard, permission_name in role_permissions.order_by("id").values_list(
                "role__name", "role__guard_name", "permission__name"
            ):
                yield POLICY_PTYPE, [
                    RoleData(external_key=role_name).namespaced_key,
                    guard,
                    PermissionData(external_key=permission_name).namespaced_key,
                ]
            for principal_type, principal_id, guard, permission_name in direct_permissions.order_by(
                "id"
            ).values_list("principal_type", "principal_id", "permission__guard_name", "permission__name"):
                yield POLICY_PTYPE, [
                    PrincipalData.of(principal_type, principal_id).namespaced_key,
                    guard,
                    PermissionData(external_key=permission_name).namespaced_key,
                ]

    def _roles_of_queryset(self, principal: PrincipalData, guard: str | None):
        queryset = Role.objects.filter(
            assignments__principal_type=principal.model_type,
            assignments__principal_id=str(principal.id),
        )
        if guard is not None:
            queryset = queryset.filter(guard_name=guard)
        return queryset

    @staticmethod
    def _check_same_guard(role: Role, permission: Permission) -> None:
        if role.guard_name != permission.guard_name:
            raise GuardMismatchError(
                f"Cannot link role '{role.name}' (guard '{role.guard_name}') with permission "
                f"'{permission.name}' (guard '{permission.guard_name}')."
            )
