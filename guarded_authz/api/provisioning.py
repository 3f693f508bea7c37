"""Provisioning of the baseline capability catalog.

These functions are meant for bootstrap and deployment steps: they create roles
and permissions if they are missing and attach role permissions additively, so
running them again is harmless.
"""

import logging

from attrs import define, field

from guarded_authz.api.data import PermissionData, RoleData
from guarded_authz.api.registry import get_assignment_manager
from guarded_authz.constants.permissions import ALL_PERMISSIONS
from guarded_authz.constants.roles import DEFAULT_ROLES
from guarded_authz.models import Permission, Role

__all__ = [
    "SeedResult",
    "ensure_permission",
    "ensure_role",
    "seed_catalog",
]

logger = logging.getLogger(__name__)


@define
class SeedResult:
    """What a seeding run created."""

    guard: str
    created_permissions: list[str] = field(factory=list)
    created_roles: list[str] = field(factory=list)
    granted: dict[str, list[str]] = field(factory=dict)


def ensure_permission(name: str, guard: str | None = None, manager=None) -> Permission:
    """Return the permission, creating it when absent.

    Args:
        name: The permission name.
        guard: The guard, defaults to the configured default guard.
        manager: The AssignmentManager to use, defaults to the process-wide one.

    Raises:
        UnknownGuardError: If the guard is not configured.
    """
    manager = manager or get_assignment_manager()
    guard = manager.config.require_guard(guard)
    permission, _ = manager.store.get_or_create_permission(name, guard)
    return permission


def ensure_role(name: str, guard: str | None = None, manager=None) -> Role:
    """Return the role, creating it when absent.

    Raises:
        UnknownGuardError: If the guard is not configured.
    """
    manager = manager or get_assignment_manager()
    guard = manager.config.require_guard(guard)
    role, _ = manager.store.get_or_create_role(name, guard)
    return role


def seed_catalog(
    roles: list[RoleData] | None = None,
    permissions: list[PermissionData] | None = None,
    guard: str | None = None,
    manager=None,
) -> SeedResult:
    """Create a catalog of permissions and roles in a guard and link them.

    Permissions referenced by a role are created too, even when they are not in
    ``permissions``. Role permissions are granted additively: a permission removed
    from a role definition is not revoked from an existing role.

    Args:
        roles: Role definitions, defaults to the built-in roles.
        permissions: Extra permissions to create, defaults to the built-in ones.
        guard: The guard, defaults to the configured default guard.
        manager: The AssignmentManager to use, defaults to the process-wide one.

    Returns:
        SeedResult: Names of what was created or granted.

    Raises:
        UnknownGuardError: If the guard is not configured.
    """
    manager = manager or get_assignment_manager()
    guard = manager.config.require_guard(guard)
    roles = DEFAULT_ROLES if roles is None else roles
    permissions = ALL_PERMISSIONS if permissions is None else permissions
    result = SeedResult(guard=guard)

    permission_names = [permission.name for permission in permissions]
    for role in roles:
        permission_names.extend(name for name in role.permission_names if name not in permission_names)

    for name in permission_names:
        _, created = manager.store.get_or_create_permission(name, guard)
        if created:
            result.created_permissions.append(name)

    for role_data in roles:
        role, created = manager.store.get_or_create_role(role_data.name, guard)
        if created:
            result.created_roles.append(role.name)
        granted = manager.give_role_permissions(role, role_data.permission_names)
        if granted:
            result.granted[role.name] = granted

    logger.info(
        f"Seeded guard '{guard}': {len(result.created_permissions)} permissions and "
        f"{len(result.created_roles)} roles created"
    )
    return result
