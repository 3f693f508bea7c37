"""Data classes and enums for representing principals, roles, permissions and requirements."""

from enum import Enum
from typing import ClassVar

from attrs import define, field, frozen

from guarded_authz.exceptions import InvalidRequirementError

__all__ = [
    "PrincipalData",
    "RoleData",
    "PermissionData",
    "GroupingPolicyIndex",
    "PolicyIndex",
    "MatchMode",
    "RoleRequirement",
    "PermissionRequirement",
    "RoleOrPermissionRequirement",
    "SyncResult",
    "as_name_set",
    "as_principal",
    "parse_requirement",
]

AUTHZ_POLICY_ATTRIBUTES_SEPARATOR = "^"
PRINCIPAL_ID_SEPARATOR = ":"
REQUIREMENT_KIND_SEPARATOR = ":"
REQUIREMENT_NAMES_SEPARATOR = "|"


class GroupingPolicyIndex(Enum):
    """Index positions for fields in a casbin grouping policy (g).

    Grouping policies represent role assignments that link principals to roles within a guard.
    Format: [principal, role, guard]

    Attributes:
        PRINCIPAL: Position 0 - The principal identifier (e.g., 'principal^auth.user:42').
        ROLE: Position 1 - The role identifier (e.g., 'role^admin').
        GUARD: Position 2 - The guard name (e.g., 'web').
    """

    PRINCIPAL = 0
    ROLE = 1
    GUARD = 2


class PolicyIndex(Enum):
    """Index positions for fields in a casbin policy (p).

    Policies grant a permission to a subject within a guard. The subject is either
    a role (role permission) or a principal (direct permission).
    Format: [subject, guard, permission]

    Attributes:
        SUBJECT: Position 0 - A role or principal identifier.
        GUARD: Position 1 - The guard name.
        PERMISSION: Position 2 - The permission identifier (e.g., 'perm^manage_users').
    """

    SUBJECT = 0
    GUARD = 1
    PERMISSION = 2


class AuthzBaseClass:
    """Base class for all authz classes.

    Attributes:
        SEPARATOR: The separator between the namespace and the identifier (default: '^').
        NAMESPACE: The namespace prefix for the data type (e.g., 'principal', 'role', 'perm').
    """

    SEPARATOR: ClassVar[str] = AUTHZ_POLICY_ATTRIBUTES_SEPARATOR
    NAMESPACE: ClassVar[str] = None


@define
class AuthZData(AuthzBaseClass):
    """Base class for all authz data classes.

    Attributes:
        external_key: The ID for the object outside of the authz engine (e.g., 'auth.user:42' for
            a principal, 'admin' for a role, 'manage_users' for a permission).
        namespaced_key: The ID for the object within the engine, combining namespace and
            external_key (e.g., 'principal^auth.user:42', 'role^admin', 'perm^manage_users').

    Examples:
        >>> role = RoleData(external_key='admin')
        >>> role.namespaced_key
        'role^admin'
        >>> RoleData(namespaced_key='role^admin').external_key
        'admin'
    """

    external_key: str = ""
    namespaced_key: str = ""

    def __attrs_post_init__(self):
        """Derive whichever of external_key and namespaced_key was not provided."""
        if not self.NAMESPACE:
            return

        if not self.external_key and not self.namespaced_key:
            raise ValueError("Either external_key or namespaced_key must be provided.")

        if not self.namespaced_key:
            self.namespaced_key = f"{self.NAMESPACE}{self.SEPARATOR}{self.external_key}"

        if not self.external_key:
            namespace, separator, external_key = self.namespaced_key.partition(self.SEPARATOR)
            if not separator or namespace != self.NAMESPACE or not external_key:
                raise ValueError(
                    f"'{self.namespaced_key}' is not a valid {self.NAMESPACE} key "
                    f"(expected '{self.NAMESPACE}{self.SEPARATOR}<id>')."
                )
            self.external_key = external_key

    @classmethod
    def is_namespaced_key(cls, key: str) -> bool:
        """Tell whether a casbin value belongs to this namespace."""
        return key.startswith(f"{cls.NAMESPACE}{cls.SEPARATOR}")


@define
class PrincipalData(AuthZData):
    """A principal (an entity that can hold roles and permissions).

    Principals are polymorphic: the external key combines the model label and the
    primary key, e.g. ``auth.user:42``.

    Examples:
        >>> principal = PrincipalData.of("auth.user", 42)
        >>> principal.namespaced_key
        'principal^auth.user:42'
        >>> principal.model_type, principal.id
        ('auth.user', '42')
    """

    NAMESPACE: ClassVar[str] = "principal"

    def __attrs_post_init__(self):
        super().__attrs_post_init__()
        model_type, separator, principal_id = self.external_key.rpartition(PRINCIPAL_ID_SEPARATOR)
        if not separator or not model_type or not principal_id:
            raise ValueError(
                f"'{self.external_key}' is not a valid principal key (expected '<model_type>:<id>')."
            )

    @property
    def model_type(self) -> str:
        """The type discriminator of the principal (e.g., 'auth.user')."""
        return self.external_key.rpartition(PRINCIPAL_ID_SEPARATOR)[0]

    @property
    def id(self) -> str:  # pylint: disable=invalid-name
        """The stable identifier of the principal, as stored in the link tables."""
        return self.external_key.rpartition(PRINCIPAL_ID_SEPARATOR)[2]

    @classmethod
    def of(cls, model_type: str, principal_id) -> "PrincipalData":
        """Build a principal from its type discriminator and identifier."""
        return cls(external_key=f"{model_type}{PRINCIPAL_ID_SEPARATOR}{principal_id}")

    @classmethod
    def from_instance(cls, instance) -> "PrincipalData":
        """Build a principal from a saved Django model instance."""
        if instance.pk is None:
            raise ValueError("Cannot build a principal from an unsaved instance.")
        return cls.of(instance._meta.label_lower, instance.pk)  # pylint: disable=protected-access


@define
class PermissionData(AuthZData):
    """A permission (an atomic named capability).

    Attributes:
        guard: The guard the permission belongs to, if known.
    """

    NAMESPACE: ClassVar[str] = "perm"
    guard: str = ""

    @property
    def name(self) -> str:
        """The permission name."""
        return self.external_key


@define
class RoleData(AuthZData):
    """A role (a named bundle of permissions).

    Attributes:
        guard: The guard the role belongs to, if known.
        permissions: The permissions the role grants, when loaded.
    """

    NAMESPACE: ClassVar[str] = "role"
    guard: str = ""
    permissions: list[PermissionData] = field(factory=list)

    @property
    def name(self) -> str:
        """The role name."""
        return self.external_key

    @property
    def permission_names(self) -> list[str]:
        """Names of the permissions attached to this role definition."""
        return [permission.name for permission in self.permissions]


class MatchMode(str, Enum):
    """How a set of required role names is matched against the roles a principal holds."""

    ANY = "any"
    ALL = "all"


def as_name_set(names) -> frozenset:
    """Normalize a name or an iterable of names into a set of non-empty names.

    Examples:
        >>> sorted(as_name_set("admin"))
        ['admin']
        >>> sorted(as_name_set(["admin", "admin", " ", "manager"]))
        ['admin', 'manager']
    """
    if names is None:
        return frozenset()
    if isinstance(names, str):
        names = [names]
    return frozenset(name.strip() for name in names if name and name.strip())


def as_principal(principal) -> PrincipalData:
    """Accept either a PrincipalData object or a saved model instance."""
    if isinstance(principal, PrincipalData):
        return principal
    return PrincipalData.from_instance(principal)


@frozen
class RoleRequirement:
    """Requirement satisfied by holding any or all of a set of roles."""

    names: frozenset = field(converter=as_name_set)
    mode: MatchMode = field(default=MatchMode.ANY, converter=MatchMode)


@frozen
class PermissionRequirement:
    """Requirement satisfied by holding a permission, directly or through a role."""

    name: str


@frozen
class RoleOrPermissionRequirement:
    """Requirement satisfied by any of the roles or any of the permissions."""

    role_names: frozenset = field(converter=as_name_set, factory=frozenset)
    permission_names: frozenset = field(converter=as_name_set, factory=frozenset)


@define
class SyncResult:
    """Outcome of a sync operation, listing what was attached and detached."""

    attached: list[str] = field(factory=list)
    detached: list[str] = field(factory=list)


def _split_names(expression: str) -> list[str]:
    return [name.strip() for name in expression.split(REQUIREMENT_NAMES_SEPARATOR) if name.strip()]


def parse_requirement(expression: str):
    """Parse a pipe-delimited requirement expression into a requirement object.

    Parse once, when a route or view is registered, and reuse the result for every
    request. Supported forms:

    - ``role:admin|moderator``: any of the roles.
    - ``role_all:admin|manager``: all of the roles.
    - ``permission:manage_users``: the permission. With several names, any of them.
    - ``role_or_permission:admin|manage_users``: each name is tried both as a role
      and as a permission.

    Args:
        expression: The requirement expression.

    Returns:
        RoleRequirement | PermissionRequirement | RoleOrPermissionRequirement: The requirement.

    Raises:
        InvalidRequirementError: If the expression is malformed.

    Examples:
        >>> parse_requirement("role:admin|moderator").mode
        <MatchMode.ANY: 'any'>
        >>> parse_requirement("permission:manage_users")
        PermissionRequirement(name='manage_users')
    """
    kind, separator, body = (expression or "").partition(REQUIREMENT_KIND_SEPARATOR)
    names = _split_names(body)
    if not separator or not names:
        raise InvalidRequirementError(f"Invalid requirement expression: '{expression}'")

    kind = kind.strip().lower()
    if kind == "role":
        return RoleRequirement(names, MatchMode.ANY)
    if kind == "role_all":
        return RoleRequirement(names, MatchMode.ALL)
    if kind == "permission":
        if len(names) == 1:
            return PermissionRequirement(names[0])
        return RoleOrPermissionRequirement(permission_names=names)
    if kind == "role_or_permission":
        return RoleOrPermissionRequirement(role_names=names, permission_names=names)
    raise InvalidRequirementError(f"Unknown requirement kind '{kind}' in '{expression}'")
