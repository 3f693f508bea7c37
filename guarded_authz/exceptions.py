"""Exceptions raised by the guarded_authz framework.

Authorization checks never raise for missing roles or permissions, absence is
a valid ``False`` answer. These exceptions are surfaced by mutations (creating
capabilities, assigning them) and by explicit lookups.
"""

__all__ = [
    "AuthzError",
    "DuplicateKeyError",
    "CapabilityNotFoundError",
    "GuardMismatchError",
    "UnknownCapabilityError",
    "UnknownGuardError",
    "InvalidRequirementError",
    "StoreUnavailableError",
]


class AuthzError(Exception):
    """Base class for all guarded_authz errors."""


class DuplicateKeyError(AuthzError, ValueError):
    """A role or permission with the same (name, guard) already exists."""


class CapabilityNotFoundError(AuthzError, LookupError):
    """An explicit lookup of a role or permission found nothing."""


class GuardMismatchError(AuthzError, ValueError):
    """Two entities from different guards were about to be linked."""


class UnknownCapabilityError(AuthzError, LookupError):
    """An assignment referenced role or permission names that do not exist.

    Attributes:
        kind (str): Either ``"role"`` or ``"permission"``.
        names (list[str]): The missing names, sorted.
        guard (str): The guard the names were looked up in.
    """

    def __init__(self, kind: str, names, guard: str):
        self.kind = kind
        self.names = sorted(names)
        self.guard = guard
        super().__init__(f"Unknown {kind}(s) for guard '{guard}': {', '.join(self.names)}")


class UnknownGuardError(AuthzError, ValueError):
    """A mutation named a guard that is not configured."""


class InvalidRequirementError(AuthzError, ValueError):
    """A requirement expression or object could not be interpreted."""


class StoreUnavailableError(AuthzError):
    """The capability store could not be read after retrying."""
