"""View decorators that enforce role and permission requirements.

The requirement is parsed once, when the view is decorated, and evaluated
against ``request.user`` on every call. A failed check raises Django's
``PermissionDenied``, which the framework turns into a 403 response.

Examples:
    >>> @role_required("role:admin|moderator")
    ... def moderation_queue(request):
    ...     ...
    ...
    >>> class ReportsView(View):
    ...     @permission_required("view_reports", guard="api")
    ...     def get(self, request):
    ...         ...
"""

from functools import wraps

from django.core.exceptions import PermissionDenied

from guarded_authz.api.data import PermissionRequirement, parse_requirement
from guarded_authz.api.registry import get_authorizer

__all__ = [
    "requirement_required",
    "role_required",
    "permission_required",
    "role_or_permission_required",
]

ROLE_PREFIX = "role:"
ROLE_OR_PERMISSION_PREFIX = "role_or_permission:"


def _get_request(args):
    """Find the request among the view arguments (function views and view methods)."""
    for arg in args[:2]:
        if hasattr(arg, "user") and hasattr(arg, "method"):
            return arg
    raise TypeError("The decorated view must receive the request as its first or second argument.")


def requirement_required(requirement, guard: str | None = None):
    """Decorator denying access unless ``request.user`` satisfies the requirement.

    Anonymous users are always denied.

    Args:
        requirement: A RoleRequirement, PermissionRequirement or RoleOrPermissionRequirement.
        guard: The guard to evaluate under, defaults to the configured default guard.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = _get_request(args).user
            if not user.is_authenticated or not get_authorizer().check(user, requirement, guard):
                raise PermissionDenied
            return view(*args, **kwargs)

        wrapper.authz_requirement = requirement
        return wrapper

    return decorator


def role_required(expression: str, guard: str | None = None):
    """Require roles, e.g. ``"admin|moderator"`` or ``"role_all:admin|manager"``."""
    if ":" not in expression:
        expression = f"{ROLE_PREFIX}{expression}"
    return requirement_required(parse_requirement(expression), guard)


def permission_required(name: str, guard: str | None = None):
    """Require a single permission, held directly or through a role."""
    return requirement_required(PermissionRequirement(name), guard)


def role_or_permission_required(expression: str, guard: str | None = None):
    """Require any of the names, each tried as a role and as a permission, e.g. ``"admin|manage_users"``."""
    return requirement_required(parse_requirement(f"{ROLE_OR_PERMISSION_PREFIX}{expression}"), guard)
