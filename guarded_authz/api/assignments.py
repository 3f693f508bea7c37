"""Assignment manager.

The AssignmentManager is the only component that changes who holds what. Each
operation resolves every name it was given before writing anything, then wraps
the store writes in one transaction bracketed by cache invalidations: the
affected guard is invalidated before the write, and again once the transaction
commits. A concurrent reader that rebuilt its snapshot between the two sees the
second invalidation and rebuilds from the committed state.
"""

import logging
import threading
from contextlib import contextmanager
from functools import partial

from django.db import transaction

from guarded_authz.api.data import RoleData, SyncResult, as_name_set, as_principal
from guarded_authz.api.store import CapabilityStore
from guarded_authz.conf import AuthzConfig, get_authz_config
from guarded_authz.engine import cache as capability_cache
from guarded_authz.exceptions import CapabilityNotFoundError, UnknownCapabilityError
from guarded_authz.models import Permission, Role

__all__ = ["AssignmentManager", "is_managed_write"]

logger = logging.getLogger(__name__)

_local = threading.local()


def is_managed_write() -> bool:
    """Return whether the current thread is inside an AssignmentManager mutation.

    Signal handlers use this to skip invalidations the manager already performs.
    """
    return getattr(_local, "depth", 0) > 0


class AssignmentManager:
    """Mutate role and permission assignments, keeping the capability cache coherent.

    Principal-side operations take a principal (``PrincipalData`` or a saved model
    instance), one or more names and an optional guard. Role-side operations take a
    ``Role`` instance, a ``RoleData`` or a role name.

    A name that does not exist in the guard aborts the whole operation with
    ``UnknownCapabilityError`` before anything is written.
    """

    def __init__(
        self,
        store: CapabilityStore | None = None,
        cache=None,
        config: AuthzConfig | None = None,
    ):
        self.config = config or get_authz_config()
        self.store = store or CapabilityStore()
        self.cache = cache or capability_cache.CapabilityCache(store=self.store, config=self.config)

    # Principal roles

    def assign_roles(self, principal, role_names, guard: str | None = None) -> list[str]:
        """Assign roles to a principal. Roles it already holds are left alone.

        Returns:
            list[str]: The names of the roles that were newly assigned.
        """
        guard = self.config.require_guard(guard)
        principal = as_principal(principal)
        roles = self._resolve_roles(role_names, guard)
        with self._mutating(guard):
            assigned = [name for name, role in roles.items() if self.store.assign_role_to_principal(principal, role)]
        logger.info(f"Assigned roles {assigned} to {principal.namespaced_key} in guard '{guard}'")
        return assigned

    def remove_roles(self, principal, role_names, guard: str | None = None) -> list[str]:
        """Remove roles from a principal. Roles it does not hold are ignored.

        Returns:
            list[str]: The names of the roles that were removed.
        """
        guard = self.config.require_guard(guard)
        principal = as_principal(principal)
        roles = self._resolve_roles(role_names, guard)
        with self._mutating(guard):
            removed = [
                name for name, role in roles.items() if self.store.remove_role_from_principal(principal, role)
            ]
        logger.info(f"Removed roles {removed} from {principal.namespaced_key} in guard '{guard}'")
        return removed

    def sync_roles(self, principal, role_names, guard: str | None = None) -> SyncResult:
        """Replace a principal's roles in a guard with exactly the given set.

        Only the difference is written, and missing roles are added before extra ones
        are removed, so the principal never holds an empty role set in between.
        """
        guard = self.config.require_guard(guard)
        principal = as_principal(principal)
        wanted = self._resolve_roles(role_names, guard)
        with self._mutating(guard):
            current = {role.name: role for role in self.store.roles_of(principal, guard, for_update=True)}
            result = _difference(wanted, current)
            for name in result.attached:
                self.store.assign_role_to_principal(principal, wanted[name])
            for name in result.detached:
                self.store.remove_role_from_principal(principal, current[name])
        logger.info(f"Synced roles of {principal.namespaced_key} in guard '{guard}': {result}")
        return result

    # Direct permissions

    def give_direct_permissions(self, principal, permission_names, guard: str | None = None) -> list[str]:
        """Grant permissions directly to a principal.

        Returns:
            list[str]: The names of the permissions that were newly granted.
        """
        guard = self.config.require_guard(guard)
        principal = as_principal(principal)
        permissions = self._resolve_permissions(permission_names, guard)
        with self._mutating(guard):
            granted = [
                name
                for name, permission in permissions.items()
                if self.store.grant_direct_permission(principal, permission)
            ]
        logger.info(f"Granted direct permissions {granted} to {principal.namespaced_key} in guard '{guard}'")
        return granted

    def revoke_direct_permissions(self, principal, permission_names, guard: str | None = None) -> list[str]:
        """Revoke direct permissions from a principal. Permissions held through roles are unaffected.

        Returns:
            list[str]: The names of the permissions that were revoked.
        """
        guard = self.config.require_guard(guard)
        principal = as_principal(principal)
        permissions = self._resolve_permissions(permission_names, guard)
        with self._mutating(guard):
            revoked = [
                name
                for name, permission in permissions.items()
                if self.store.revoke_direct_permission(principal, permission)
            ]
        logger.info(f"Revoked direct permissions {revoked} from {principal.namespaced_key} in guard '{guard}'")
        return revoked

    def sync_direct_permissions(self, principal, permission_names, guard: str | None = None) -> SyncResult:
        """Replace a principal's direct permissions in a guard with exactly the given set."""
        guard = self.config.require_guard(guard)
        principal = as_principal(principal)
        wanted = self._resolve_permissions(permission_names, guard)
        with self._mutating(guard):
            current = {
                permission.name: permission
                for permission in self.store.direct_permissions_of(principal, guard, for_update=True)
            }
            result = _difference(wanted, current)
            for name in result.attached:
                self.store.grant_direct_permission(principal, wanted[name])
            for name in result.detached:
                self.store.revoke_direct_permission(principal, current[name])
        logger.info(f"Synced direct permissions of {principal.namespaced_key} in guard '{guard}': {result}")
        return result

    # Role permissions

    def give_role_permissions(self, role, permission_names, guard: str | None = None) -> list[str]:
        """Grant permissions to a role.

        Returns:
            list[str]: The names of the permissions that were newly granted.
        """
        role = self._resolve_role(role, guard)
        permissions = self._resolve_permissions(permission_names, role.guard_name)
        with self._mutating(role.guard_name):
            granted = [
                name
                for name, permission in permissions.items()
                if self.store.grant_permission_to_role(role, permission)
            ]
        logger.info(f"Granted permissions {granted} to role '{role.name}' in guard '{role.guard_name}'")
        return granted

    def revoke_role_permissions(self, role, permission_names, guard: str | None = None) -> list[str]:
        """Revoke permissions from a role.

        Returns:
            list[str]: The names of the permissions that were revoked.
        """
        role = self._resolve_role(role, guard)
        permissions = self._resolve_permissions(permission_names, role.guard_name)
        with self._mutating(role.guard_name):
            revoked = [
                name
                for name, permission in permissions.items()
                if self.store.revoke_permission_from_role(role, permission)
            ]
        logger.info(f"Revoked permissions {revoked} from role '{role.name}' in guard '{role.guard_name}'")
        return revoked

    def sync_role_permissions(self, role, permission_names, guard: str | None = None) -> SyncResult:
        """Replace the permissions of a role with exactly the given set."""
        role = self._resolve_role(role, guard)
        wanted = self._resolve_permissions(permission_names, role.guard_name)
        with self._mutating(role.guard_name):
            current = {
                permission.name: permission for permission in self.store.permissions_of_role(role, for_update=True)
            }
            result = _difference(wanted, current)
            for name in result.attached:
                self.store.grant_permission_to_role(role, wanted[name])
            for name in result.detached:
                self.store.revoke_permission_from_role(role, current[name])
        logger.info(f"Synced permissions of role '{role.name}' in guard '{role.guard_name}': {result}")
        return result

    # Deletions

    def delete_role(self, role, guard: str | None = None) -> None:
        """Delete a role. Its assignments and permission grants go with it."""
        role = self._resolve_role(role, guard)
        with self._mutating(role.guard_name):
            self.store.delete_role(role)

    def delete_permission(self, permission, guard: str | None = None) -> None:
        """Delete a permission. It disappears from every role and principal holding it."""
        if isinstance(permission, Permission):
            self.config.require_guard(permission.guard_name)
        else:
            guard = self.config.require_guard(guard)
            try:
                permission = self.store.find_permission(permission, guard)
            except CapabilityNotFoundError as exc:
                raise UnknownCapabilityError("permission", [permission], guard) from exc
        with self._mutating(permission.guard_name):
            self.store.delete_permission(permission)

    def remove_principal(self, principal) -> int:
        """Remove every role and direct permission of a principal, in all guards.

        Called when the principal itself is deleted.

        Returns:
            int: The number of links removed.
        """
        principal = as_principal(principal)
        guards = self.store.guards_of_principal(principal)
        if not guards:
            return 0
        with self._mutating(*guards):
            removed = self.store.remove_principal(principal)
        logger.info(f"Removed {removed} links of {principal.namespaced_key} in guards {sorted(guards)}")
        return removed

    # Helpers

    @contextmanager
    def _mutating(self, *guards):
        """Run store writes in one transaction, invalidating the guards before and after commit."""
        guards = sorted(set(guards))
        self._invalidate(guards)
        _local.depth = getattr(_local, "depth", 0) + 1
        try:
            with transaction.atomic():
                yield
                transaction.on_commit(partial(self._invalidate, guards))
        finally:
            _local.depth -= 1

    def _invalidate(self, guards):
        for guard in guards:
            self.cache.invalidate(guard)

    def _resolve_roles(self, role_names, guard: str) -> dict[str, Role]:
        names = as_name_set(role_names)
        roles = self.store.find_roles(names, guard)
        missing = names - set(roles)
        if missing:
            raise UnknownCapabilityError("role", missing, guard)
        return roles

    def _resolve_permissions(self, permission_names, guard: str) -> dict[str, Permission]:
        names = as_name_set(permission_names)
        permissions = self.store.find_permissions(names, guard)
        missing = names - set(permissions)
        if missing:
            raise UnknownCapabilityError("permission", missing, guard)
        return permissions

    def _resolve_role(self, role, guard: str | None) -> Role:
        """Turn a Role, a RoleData or a role name into a saved Role."""
        if isinstance(role, Role):
            self.config.require_guard(role.guard_name)
            return role
        if isinstance(role, RoleData):
            name, guard = role.name, role.guard or guard
        else:
            name = role
        guard = self.config.require_guard(guard)
        try:
            return self.store.find_role(name, guard)
        except CapabilityNotFoundError as exc:
            raise UnknownCapabilityError("role", [name], guard) from exc


def _difference(wanted: dict, current: dict) -> SyncResult:
    return SyncResult(
        attached=sorted(set(wanted) - set(current)),
        detached=sorted(set(current) - set(wanted)),
    )
