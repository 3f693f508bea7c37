"""
Capability cache for the guarded_authz engine.

Keeps one casbin SyncedEnforcer per guard, each holding the full resolved
snapshot of that guard (role assignments, role permissions and direct
permissions), so authorization checks do not query the store.

Components:
    - CapabilityCache: Builds, validates and invalidates the per-guard snapshots
    - StoreAdapter: Reads a guard's rules from the store on rebuild

Snapshots are versioned. Each guard has a version token in the shared Django
cache (``<cache_key_prefix>.<guard>.version``). A process trusts its local
snapshot only while the token it was built under is still the shared one and
the snapshot is younger than the configured TTL. Invalidating a guard rotates
the token, which makes every process rebuild on its next check.

Usage:
    from guarded_authz.engine.cache import CapabilityCache
    cache = CapabilityCache()
    enforcer = cache.get_enforcer("web")
    allowed = enforcer.enforce(principal_key, "web", permission_key)
"""

import logging
import threading
import time
from uuid import uuid4

from attrs import define
from casbin import SyncedEnforcer
from django.core.cache import caches

from guarded_authz.api.store import CapabilityStore
from guarded_authz.conf import AuthzConfig, get_authz_config
from guarded_authz.engine.adapter import StoreAdapter
from guarded_authz.engine.filter import Filter

logger = logging.getLogger(__name__)


@define
class GuardSnapshot:
    """A loaded enforcer together with the version token it was built under."""

    guard: str
    enforcer: SyncedEnforcer
    version: str
    loaded_at: float


class CapabilityCache:
    """Per-guard snapshot cache with a shared version token.

    The cache is an explicit handle: create it at process start, pass it to the
    Authorizer and the AssignmentManager, and call ``close()`` at shutdown. The
    process-wide instance lives in ``guarded_authz.api.registry``.

    Attributes:
        store (CapabilityStore): Source of truth the snapshots are rebuilt from.
        config (AuthzConfig): Guards, TTL and shared cache settings.
    """

    VERSION_KEY_TEMPLATE = "{prefix}.{guard}.version"

    def __init__(
        self,
        store: CapabilityStore | None = None,
        config: AuthzConfig | None = None,
        backend=None,
        clock=time.monotonic,
    ):
        """Create an empty cache.

        Args:
            store: The capability store, a default one is created if omitted.
            config: The configuration, read from Django settings if omitted.
            backend: A Django cache backend for the version tokens. Defaults to
                ``caches[config.cache_alias]``, resolved lazily.
            clock: Monotonic clock used for TTL checks.
        """
        self.store = store or CapabilityStore()
        self.config = config or get_authz_config()
        self._backend = backend
        self._clock = clock
        self._snapshots: dict[str, GuardSnapshot] = {}
        self._lock = threading.Lock()

    @property
    def backend(self):
        """The shared Django cache holding the version tokens."""
        if self._backend is None:
            self._backend = caches[self.config.cache_alias]
        return self._backend

    def version_key(self, guard: str) -> str:
        """Return the shared cache key of a guard's version token."""
        return self.VERSION_KEY_TEMPLATE.format(prefix=self.config.cache_key_prefix, guard=guard)

    def get_enforcer(self, guard: str) -> SyncedEnforcer:
        """Return an enforcer holding a current snapshot of the guard.

        Rebuilds the whole guard from the store when there is no local snapshot,
        when the shared version token changed, or when the snapshot outlived the
        TTL. When the shared cache is unavailable the guard is rebuilt on every
        call and nothing is kept locally.

        Args:
            guard: A configured guard name.

        Returns:
            SyncedEnforcer: The enforcer for the guard.
        """
        try:
            version = self._current_version(guard)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning(f"Shared capability cache unavailable, reading guard '{guard}' from the store: {exc}")
            version = None

        if version is None:
            return self._build_enforcer(guard)

        snapshot = self._snapshots.get(guard)
        if self._is_current(snapshot, version):
            return snapshot.enforcer

        with self._lock:
            snapshot = self._snapshots.get(guard)
            if self._is_current(snapshot, version):
                return snapshot.enforcer

            enforcer = self._build_enforcer(guard)
            self._snapshots[guard] = GuardSnapshot(
                guard=guard,
                enforcer=enforcer,
                version=version,
                loaded_at=self._clock(),
            )
            return enforcer

    def invalidate(self, guard: str | None = None) -> None:
        """Invalidate the snapshot of one guard, or of every guard.

        Drops the local snapshot and rotates the shared version token so that
        other processes rebuild too. A failure to reach the shared cache is
        logged; the local snapshot is dropped regardless.

        Args:
            guard: The guard to invalidate. None invalidates everything.
        """
        with self._lock:
            if guard is None:
                guards = sorted(set(self.config.guards) | set(self._snapshots))
            else:
                guards = [guard]
            for name in guards:
                self._snapshots.pop(name, None)

        for name in guards:
            try:
                self.backend.set(self.version_key(name), uuid4().hex, None)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.error(f"Failed to rotate the capability version of guard '{name}': {exc}")
        logger.info(f"Invalidated capability snapshots for guards {guards}")

    def close(self) -> None:
        """Drop every local snapshot. Call at process shutdown."""
        with self._lock:
            self._snapshots.clear()

    def cached_guards(self) -> list[str]:
        """Return the guards that currently hold a local snapshot."""
        return sorted(self._snapshots)

    def _current_version(self, guard: str) -> str | None:
        """Read the shared version token of a guard, initializing it if missing.

        Returns:
            str | None: The token, or None if the backend does not keep values
            (e.g. a dummy cache).
        """
        key = self.version_key(guard)
        version = self.backend.get(key)
        if version is None:
            self.backend.add(key, uuid4().hex, None)
            version = self.backend.get(key)
        return version

    def _is_current(self, snapshot: GuardSnapshot | None, version: str) -> bool:
        if snapshot is None or snapshot.version != version:
            return False
        return self._clock() - snapshot.loaded_at < self.config.cache_ttl

    def _build_enforcer(self, guard: str) -> SyncedEnforcer:
        """Create an enforcer and load the guard's full snapshot from the store."""
        adapter = StoreAdapter(self.store, retries=self.config.store_read_retries)
        enforcer = SyncedEnforcer(self.config.casbin_model, adapter)
        enforcer.enable_auto_save(False)
        enforcer.load_filtered_policy(Filter(guard=[guard]))
        logger.info(
            f"Rebuilt capability snapshot for guard '{guard}': "
            f"{len(enforcer.get_policy())} grants, {len(enforcer.get_grouping_policy())} role assignments"
        )
        return enforcer
