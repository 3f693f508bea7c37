"""Runtime configuration for guarded_authz.

Values are read from Django settings. Defaults are installed by
``guarded_authz.settings.common.plugin_settings``, but every accessor also falls
back to them so the framework works in projects that skip the plugin hook.
"""

import os
from datetime import timedelta

from attrs import field, frozen
from django.conf import settings

from guarded_authz import ROOT_DIRECTORY
from guarded_authz.exceptions import UnknownGuardError

DEFAULT_GUARDS = ("web", "api")
DEFAULT_CACHE_TTL = 24 * 60 * 60
DEFAULT_CACHE_KEY_PREFIX = "guarded_authz.cache"
DEFAULT_CACHE_ALIAS = "default"
DEFAULT_STORE_READ_RETRIES = 2
DEFAULT_CASBIN_MODEL = os.path.join(ROOT_DIRECTORY, "engine", "config", "model.conf")


def _to_seconds(value) -> float:
    """Normalize a TTL given as seconds or as a ``timedelta``."""
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@frozen
class AuthzConfig:
    """Configuration consumed at startup by the cache, engine and manager.

    Attributes:
        guards: Names of the configured guards, in declaration order.
        default_guard: Guard used when a caller does not name one.
        cache_ttl: Maximum age of a capability snapshot, in seconds.
        cache_key_prefix: Namespace for the keys written to the shared cache.
        cache_alias: Django cache alias holding the shared version tokens.
        store_read_retries: Extra attempts for store reads on transient errors.
        casbin_model: Path to the casbin model configuration file.
    """

    guards: tuple = field(converter=tuple, default=DEFAULT_GUARDS)
    default_guard: str = field(default=None)
    cache_ttl: float = field(converter=_to_seconds, default=DEFAULT_CACHE_TTL)
    cache_key_prefix: str = DEFAULT_CACHE_KEY_PREFIX
    cache_alias: str = DEFAULT_CACHE_ALIAS
    store_read_retries: int = DEFAULT_STORE_READ_RETRIES
    casbin_model: str = DEFAULT_CASBIN_MODEL

    def __attrs_post_init__(self):
        if not self.guards:
            raise ValueError("At least one guard must be configured.")
        if self.default_guard is None:
            object.__setattr__(self, "default_guard", self.guards[0])
        if self.default_guard not in self.guards:
            raise ValueError(f"Default guard '{self.default_guard}' is not one of {list(self.guards)}.")
        if self.cache_ttl <= 0:
            raise ValueError("GUARDED_AUTHZ_CACHE_TTL must be positive.")

    def resolve_guard(self, guard: str | None = None) -> str | None:
        """Return the guard to evaluate under, or None when it is not configured."""
        guard = guard or self.default_guard
        return guard if guard in self.guards else None

    def require_guard(self, guard: str | None = None) -> str:
        """Return the guard to mutate under.

        Raises:
            UnknownGuardError: If the guard is not configured.
        """
        resolved = self.resolve_guard(guard)
        if resolved is None:
            raise UnknownGuardError(f"Guard '{guard}' is not configured; expected one of {list(self.guards)}.")
        return resolved


def get_authz_config() -> AuthzConfig:
    """Build the configuration from the current Django settings."""
    return AuthzConfig(
        guards=getattr(settings, "GUARDED_AUTHZ_GUARDS", DEFAULT_GUARDS),
        default_guard=getattr(settings, "GUARDED_AUTHZ_DEFAULT_GUARD", None),
        cache_ttl=getattr(settings, "GUARDED_AUTHZ_CACHE_TTL", DEFAULT_CACHE_TTL),
        cache_key_prefix=getattr(settings, "GUARDED_AUTHZ_CACHE_KEY_PREFIX", DEFAULT_CACHE_KEY_PREFIX),
        cache_alias=getattr(settings, "GUARDED_AUTHZ_CACHE_ALIAS", DEFAULT_CACHE_ALIAS),
        store_read_retries=getattr(settings, "GUARDED_AUTHZ_STORE_READ_RETRIES", DEFAULT_STORE_READ_RETRIES),
        casbin_model=getattr(settings, "CASBIN_MODEL", DEFAULT_CASBIN_MODEL),
    )
