"""Process-wide handles for the capability cache, the authorizer and the assignment manager.

The handles are created once, at process start, by ``GuardedAuthzConfig.ready()``
and torn down with ``shutdown()``. Code that needs a different wiring (tests, a
second database) can build its own ``CapabilityCache``, ``Authorizer`` and
``AssignmentManager`` and pass them around explicitly instead.
"""

import logging
import threading

from attrs import define

from guarded_authz.api.assignments import AssignmentManager
from guarded_authz.api.authorization import Authorizer
from guarded_authz.api.store import CapabilityStore
from guarded_authz.conf import AuthzConfig, get_authz_config
from guarded_authz.engine import cache as capability_cache

__all__ = [
    "AuthzServices",
    "configure",
    "get_authorizer",
    "get_assignment_manager",
    "get_capability_cache",
    "get_services",
    "shutdown",
]

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_services = None


@define
class AuthzServices:
    """The wired-up components sharing one store, config and cache."""

    config: AuthzConfig
    store: CapabilityStore
    cache: "capability_cache.CapabilityCache"
    authorizer: Authorizer
    assignments: AssignmentManager


def configure(config: AuthzConfig | None = None, backend=None) -> AuthzServices:
    """Create the process-wide components, replacing any previous ones.

    Args:
        config: The configuration, read from Django settings if omitted.
        backend: Django cache backend for the shared version tokens.

    Returns:
        AuthzServices: The new components.
    """
    with _lock:
        return _configure(config, backend)


def _configure(config: AuthzConfig | None, backend) -> AuthzServices:
    """Build and install the components. The caller holds ``_lock``."""
    global _services  # pylint: disable=global-statement
    config = config or get_authz_config()
    store = CapabilityStore()
    cache = capability_cache.CapabilityCache(store=store, config=config, backend=backend)
    services = AuthzServices(
        config=config,
        store=store,
        cache=cache,
        authorizer=Authorizer(cache=cache, config=config),
        assignments=AssignmentManager(store=store, cache=cache, config=config),
    )
    previous, _services = _services, services
    if previous is not None:
        previous.cache.close()
    logger.info(f"Configured guarded_authz for guards {list(config.guards)} (default '{config.default_guard}')")
    return services


def get_services() -> AuthzServices:
    """Return the process-wide components, configuring them on first use."""
    services = _services
    if services is None:
        with _lock:
            services = _services
            if services is None:
                services = _configure(None, None)
    return services


def get_authorizer() -> Authorizer:
    """Return the process-wide Authorizer."""
    return get_services().authorizer


def get_assignment_manager() -> AssignmentManager:
    """Return the process-wide AssignmentManager."""
    return get_services().assignments


def get_capability_cache() -> "capability_cache.CapabilityCache":
    """Return the process-wide CapabilityCache."""
    return get_services().cache


def shutdown() -> None:
    """Drop the process-wide components and their local snapshots."""
    global _services  # pylint: disable=global-statement
    with _lock:
        services, _services = _services, None
    if services is not None:
        services.cache.close()
        logger.info("Shut down guarded_authz")
