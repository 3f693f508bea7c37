"""
Signal handlers for the authorization framework.

These handlers keep assignments and cached snapshots consistent when rows are
changed outside of the AssignmentManager (admin, cascades, raw ORM calls).
Writes made by the AssignmentManager are skipped here, it invalidates on its own.
"""

import logging
from functools import partial

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from guarded_authz.api.assignments import is_managed_write
from guarded_authz.api.registry import get_assignment_manager, get_capability_cache
from guarded_authz.models import Permission, PrincipalPermission, PrincipalRole, Role, RolePermission

logger = logging.getLogger(__name__)


def invalidate_guard(guard: str) -> None:
    """
    Invalidate a guard now and again once the current transaction commits.

    A process that rebuilds its snapshot before the commit would otherwise keep
    the pre-commit state under the new version token.

    Args:
        guard: The guard whose snapshots are stale.
    """
    cache = get_capability_cache()
    cache.invalidate(guard)
    transaction.on_commit(partial(cache.invalidate, guard))


@receiver(post_delete, sender=settings.AUTH_USER_MODEL)
def remove_assignments_on_user_deletion(sender, instance, **kwargs):  # pylint: disable=unused-argument
    """
    Remove the roles and direct permissions of a deleted user.

    Assignments are polymorphic and carry no foreign key to the user table, so
    the database cannot cascade them.

    Args:
        sender: The user model class.
        instance: The user instance being deleted.
        **kwargs: Additional keyword arguments from the signal.
    """
    try:
        get_assignment_manager().remove_principal(instance)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        # Log but don't raise - the user deletion itself must not fail.
        logger.exception(
            "Error removing assignments of user %s during deletion",
            instance.pk,
            exc_info=exc,
        )


@receiver(post_delete, sender=Role)
@receiver(post_delete, sender=Permission)
def invalidate_guard_on_capability_deletion(sender, instance, **kwargs):  # pylint: disable=unused-argument
    """
    Invalidate the guard of a deleted role or permission.

    The database cascade already removed the links; the cached snapshots of the
    guard still hold them until invalidated.

    Args:
        sender: Role or Permission.
        instance: The deleted row.
        **kwargs: Additional keyword arguments from the signal.
    """
    if is_managed_write():
        return
    invalidate_guard(instance.guard_name)


@receiver(post_save, sender=PrincipalRole)
@receiver(post_delete, sender=PrincipalRole)
@receiver(post_save, sender=RolePermission)
@receiver(post_delete, sender=RolePermission)
@receiver(post_save, sender=PrincipalPermission)
@receiver(post_delete, sender=PrincipalPermission)
def invalidate_guard_on_link_change(sender, instance, **kwargs):  # pylint: disable=unused-argument
    """
    Invalidate the guard of an assignment or grant saved or deleted directly.

    Args:
        sender: PrincipalRole, RolePermission or PrincipalPermission.
        instance: The saved or deleted row.
        **kwargs: Additional keyword arguments from the signal.
    """
    if is_managed_write():
        return
    try:
        guard = instance.permission.guard_name if sender is PrincipalPermission else instance.role.guard_name
    except ObjectDoesNotExist:
        # The parent row is gone; its own post_delete handler invalidates the guard.
        return
    invalidate_guard(guard)
