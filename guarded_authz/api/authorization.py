"""Authorization engine.

The Authorizer answers the three query families of the framework (roles, a
permission, roles-or-permissions) for a principal evaluated under one guard.
It reads the per-guard snapshots of the capability cache, never the store
directly, and it never raises for missing roles, permissions or guards:
absence is a valid ``False`` answer.

A principal's effective permission set is the union of its direct permissions
and the permissions of all its roles. Every permission decision, including the
role-or-permission composite, is answered from that set.
"""

from guarded_authz.api.data import (
    MatchMode,
    PermissionData,
    PermissionRequirement,
    PolicyIndex,
    RoleData,
    RoleOrPermissionRequirement,
    RoleRequirement,
    as_name_set,
    as_principal,
)
from guarded_authz.conf import AuthzConfig, get_authz_config
from guarded_authz.engine import cache as capability_cache
from guarded_authz.exceptions import InvalidRequirementError

__all__ = ["Authorizer"]


class Authorizer:
    """Decide whether a principal satisfies a role or permission requirement.

    Principals may be given as ``PrincipalData`` or as saved model instances. The
    guard defaults to the configured default guard; an unconfigured guard denies
    everything.

    Examples:
        >>> authorizer = Authorizer()
        >>> authorizer.has_role(user, ["admin", "moderator"])
        >>> authorizer.has_permission(user, "manage_users", guard="api")
        >>> authorizer.check(user, parse_requirement("role_or_permission:admin|manage_users"))
    """

    def __init__(self, cache=None, config: AuthzConfig | None = None):
        self.config = config or get_authz_config()
        self.cache = cache or capability_cache.CapabilityCache(config=self.config)

    def get_role_names(self, principal, guard: str | None = None) -> frozenset:
        """Return the names of the roles a principal holds in a guard."""
        guard = self.config.resolve_guard(guard)
        if guard is None:
            return frozenset()
        principal = as_principal(principal)
        enforcer = self.cache.get_enforcer(guard)
        return frozenset(
            RoleData(namespaced_key=key).external_key
            for key in enforcer.get_roles_for_user_in_domain(principal.namespaced_key, guard)
            if RoleData.is_namespaced_key(key)
        )

    def get_direct_permissions(self, principal, guard: str | None = None) -> frozenset:
        """Return the names of the permissions granted directly to a principal in a guard."""
        guard = self.config.resolve_guard(guard)
        if guard is None:
            return frozenset()
        principal = as_principal(principal)
        return self._permissions_of_subjects([principal.namespaced_key], guard)

    def get_permissions_via_roles(self, principal, guard: str | None = None) -> frozenset:
        """Return the names of the permissions a principal holds through its roles in a guard."""
        guard = self.config.resolve_guard(guard)
        if guard is None:
            return frozenset()
        role_keys = [RoleData(external_key=name).namespaced_key for name in self.get_role_names(principal, guard)]
        return self._permissions_of_subjects(role_keys, guard)

    def get_effective_permissions(self, principal, guard: str | None = None) -> frozenset:
        """Return the effective permission set of a principal in a guard.

        The effective set is the union of the direct permissions and the
        permissions of every role the principal holds.
        """
        guard = self.config.resolve_guard(guard)
        if guard is None:
            return frozenset()
        return self.get_direct_permissions(principal, guard) | self.get_permissions_via_roles(principal, guard)

    def has_role(self, principal, role_names, mode: MatchMode = MatchMode.ANY, guard: str | None = None) -> bool:
        """Check the principal's roles against a set of role names.

        Args:
            principal: The principal to check.
            role_names: A role name or an iterable of role names. Duplicates are ignored.
            mode: ``MatchMode.ANY`` (at least one name) or ``MatchMode.ALL`` (every name).
            guard: The guard to evaluate under.

        Returns:
            bool: Whether the requirement holds. An empty set of names never holds.
        """
        names = as_name_set(role_names)
        if not names:
            return False
        held = self.get_role_names(principal, guard)
        if MatchMode(mode) == MatchMode.ALL:
            return names <= held
        return not held.isdisjoint(names)

    def has_any_role(self, principal, role_names, guard: str | None = None) -> bool:
        """Check that the principal holds at least one of the roles."""
        return self.has_role(principal, role_names, MatchMode.ANY, guard)

    def has_all_roles(self, principal, role_names, guard: str | None = None) -> bool:
        """Check that the principal holds every one of the roles."""
        return self.has_role(principal, role_names, MatchMode.ALL, guard)

    def has_permission(self, principal, permission_name: str, guard: str | None = None) -> bool:
        """Check that a permission is in the principal's effective permission set."""
        guard = self.config.resolve_guard(guard)
        permission_name = permission_name.strip() if permission_name else ""
        if guard is None or not permission_name:
            return False
        principal = as_principal(principal)
        return self.cache.get_enforcer(guard).enforce(
            principal.namespaced_key,
            guard,
            PermissionData(external_key=permission_name).namespaced_key,
        )

    def has_any_of(self, principal, role_names, permission_names, guard: str | None = None) -> bool:
        """Check that the principal holds any of the roles or any of the permissions."""
        if self.has_role(principal, role_names, MatchMode.ANY, guard):
            return True
        permission_names = as_name_set(permission_names)
        if not permission_names:
            return False
        return not permission_names.isdisjoint(self.get_effective_permissions(principal, guard))

    def check(self, principal, requirement, guard: str | None = None) -> bool:
        """Evaluate a requirement object.

        Args:
            principal: The principal to check.
            requirement: A RoleRequirement, PermissionRequirement or RoleOrPermissionRequirement.
            guard: The guard to evaluate under.

        Raises:
            InvalidRequirementError: If the requirement is not one of the supported types.
        """
        if isinstance(requirement, RoleRequirement):
            return self.has_role(principal, requirement.names, requirement.mode, guard)
        if isinstance(requirement, PermissionRequirement):
            return self.has_permission(principal, requirement.name, guard)
        if isinstance(requirement, RoleOrPermissionRequirement):
            return self.has_any_of(principal, requirement.role_names, requirement.permission_names, guard)
        raise InvalidRequirementError(f"Unsupported requirement: {requirement!r}")

    def _permissions_of_subjects(self, subject_keys: list[str], guard: str) -> frozenset:
        enforcer = self.cache.get_enforcer(guard)
        names = set()
        for subject_key in subject_keys:
            for policy in enforcer.get_filtered_policy(PolicyIndex.SUBJECT.value, subject_key, guard):
                names.add(PermissionData(namespaced_key=policy[PolicyIndex.PERMISSION.value]).external_key)
        return frozenset(names)
