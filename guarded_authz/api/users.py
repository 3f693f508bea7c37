"""User-related API methods.

Convenience wrappers over the process-wide Authorizer and AssignmentManager for
Django users, plus the helpers applications use to present a user's standing
(``is_admin``, ``can_manage``, role label and badge color).

Every function accepts a saved user instance or a ``PrincipalData``.
"""

from guarded_authz.api.data import as_principal
from guarded_authz.api.registry import get_assignment_manager, get_authorizer, get_services
from guarded_authz.constants.roles import ADMIN, DEFAULT_ROLE_COLOR, MODERATOR, ROLE_COLORS, ROLE_LABELS, SUPER_ADMIN

__all__ = [
    "assign_roles_to_user",
    "remove_roles_from_user",
    "sync_user_roles",
    "get_user_role_names",
    "get_user_permissions",
    "is_user_allowed",
    "is_admin",
    "is_super_admin",
    "is_moderator",
    "can_manage",
    "get_primary_role_name",
    "get_role_label",
    "get_role_color",
]


def assign_roles_to_user(user, role_names, guard: str | None = None) -> list[str]:
    """Assign roles to a user.

    Args:
        user: The user.
        role_names (str | list[str]): Names of the roles to assign.
        guard (str): The guard, defaults to the configured default guard.

    Returns:
        list[str]: Names of the roles that were newly assigned.
    """
    return get_assignment_manager().assign_roles(user, role_names, guard)


def remove_roles_from_user(user, role_names, guard: str | None = None) -> list[str]:
    """Remove roles from a user.

    Returns:
        list[str]: Names of the roles that were removed.
    """
    return get_assignment_manager().remove_roles(user, role_names, guard)


def sync_user_roles(user, role_names, guard: str | None = None):
    """Replace the roles of a user with exactly the given set."""
    return get_assignment_manager().sync_roles(user, role_names, guard)


def get_user_role_names(user, guard: str | None = None) -> frozenset:
    """Get the names of the roles a user holds."""
    return get_authorizer().get_role_names(user, guard)


def get_user_permissions(user, guard: str | None = None) -> frozenset:
    """Get the effective permission names of a user."""
    return get_authorizer().get_effective_permissions(user, guard)


def is_user_allowed(user, requirement, guard: str | None = None) -> bool:
    """Check a user against a requirement object.

    Args:
        user: The user.
        requirement: A requirement built with ``parse_requirement`` or directly.
        guard (str): The guard, defaults to the configured default guard.

    Returns:
        bool: True if the user satisfies the requirement.
    """
    return get_authorizer().check(user, requirement, guard)


def is_admin(user, guard: str | None = None) -> bool:
    """Whether the user is an administrator or a super administrator."""
    return get_authorizer().has_any_role(user, [ADMIN.name, SUPER_ADMIN.name], guard)


def is_super_admin(user, guard: str | None = None) -> bool:
    """Whether the user is a super administrator."""
    return get_authorizer().has_role(user, SUPER_ADMIN.name, guard=guard)


def is_moderator(user, guard: str | None = None) -> bool:
    """Whether the user is a moderator."""
    return get_authorizer().has_role(user, MODERATOR.name, guard=guard)


def can_manage(actor, target, guard: str | None = None) -> bool:
    """Whether ``actor`` may manage ``target``.

    Super administrators manage everyone. Administrators manage everyone except
    super administrators. Nobody else manages anyone.
    """
    if is_super_admin(actor, guard):
        return True
    return get_authorizer().has_role(actor, ADMIN.name, guard=guard) and not is_super_admin(target, guard)


def get_primary_role_name(user, guard: str | None = None) -> str | None:
    """Return the name of the user's first role, by assignment time then role name."""
    services = get_services()
    guard = services.config.resolve_guard(guard)
    if guard is None:
        return None
    roles = services.store.ordered_roles_of(as_principal(user), guard)
    return roles[0].name if roles else None


def get_role_label(user, guard: str | None = None) -> str | None:
    """Human readable label of the user's first role.

    Unknown roles fall back to the raw role name; a user without roles gets None.
    """
    name = get_primary_role_name(user, guard)
    if name is None:
        return None
    return ROLE_LABELS.get(name, name)


def get_role_color(user, guard: str | None = None) -> str:
    """Badge color of the user's first role, ``gray`` when unknown."""
    return ROLE_COLORS.get(get_primary_role_name(user, guard), DEFAULT_ROLE_COLOR)
