"""
Casbin adapter backed by the capability store.

The adapter translates the store's relation tables into casbin policy rules
when an enforcer loads its policy. It is read-only: every change goes through
the store (usually via ``AssignmentManager``) and reaches the enforcers by
invalidating the capability cache, never by casbin's auto-save.
"""

import logging

from casbin.persist.adapter_filtered import FilteredAdapter
from django.db import InterfaceError, OperationalError
from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from guarded_authz.api.store import CapabilityStore
from guarded_authz.engine.filter import Filter
from guarded_authz.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

TRANSIENT_STORE_ERRORS = (OperationalError, InterfaceError)

DEFAULT_RETRY_WAIT = wait_exponential(multiplier=0.1, max=2)


class StoreAdapter(FilteredAdapter):
    """
    Read-only casbin adapter over the capability store.

    Inherits from:
        FilteredAdapter: Casbin interface for filtered policy loading.

    Attributes:
        store (CapabilityStore): The store the rules are read from.
        retries (int): Extra attempts when a read fails with a transient database error.
        wait: Tenacity wait strategy between attempts.
    """

    def __init__(self, store: CapabilityStore | None = None, retries: int = 0, wait=None):
        self.store = store or CapabilityStore()
        self.retries = retries
        self.wait = wait or DEFAULT_RETRY_WAIT

    def is_filtered(self) -> bool:
        """
        Check if the adapter supports filtering.

        Returns:
            bool: Always True, enforcers built on this adapter load one guard at a time.
        """
        return True

    def load_policy(self, model) -> None:
        """Load the rules of every guard into the model."""
        self.load_filtered_policy(model, Filter())

    def load_filtered_policy(self, model, filter: Filter) -> None:  # pylint: disable=redefined-builtin
        """
        Load the rules matching the filter into the model.

        IMPORTANT: This method is used internally by ``enforcer.load_filtered_policy()``.
            Do not call it directly.

        Args:
            model (Model): The casbin model to load rules into.
            filter (Filter): Guards and rule types to load.

        Raises:
            StoreUnavailableError: If the store cannot be read after retrying.
        """
        for ptype, rule in self.read_rules(filter):
            model.add_policy(ptype, ptype, rule)

    def read_rules(self, filter: Filter) -> list:  # pylint: disable=redefined-builtin
        """
        Read the rules matching the filter, retrying transient database errors.

        Reads are idempotent, so retrying them is safe. The rules are fully
        materialized before anything is added to the model.

        Args:
            filter (Filter): Guards and rule types to read.

        Returns:
            list[tuple[str, list[str]]]: The rule types and rule values.
        """
        attempts = self.retries + 1
        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=self.wait,
            retry=retry_if_exception_type(TRANSIENT_STORE_ERRORS),
            before_sleep=self._log_retry,
        )
        try:
            return retrying(lambda: list(self.store.iter_policy_rules(guards=filter.guard, ptypes=filter.ptype)))
        except RetryError as exc:
            raise StoreUnavailableError(
                f"Could not read capabilities for guards {filter.guard or 'all'} after {attempts} attempt(s)."
            ) from exc.last_attempt.exception()

    @staticmethod
    def _log_retry(retry_state) -> None:
        logger.warning(
            f"Transient store error while reading capabilities "
            f"(attempt {retry_state.attempt_number}): {retry_state.outcome.exception()}"
        )

    def save_policy(self, model) -> bool:
        """Refuse to persist casbin's in-memory model, the store is the source of truth."""
        raise NotImplementedError("StoreAdapter is read-only; use AssignmentManager to change capabilities.")

    def add_policy(self, sec, ptype, rule):
        """Refuse casbin-side writes."""
        raise NotImplementedError("StoreAdapter is read-only; use AssignmentManager to change capabilities.")

    def remove_policy(self, sec, ptype, rule):
        """Refuse casbin-side writes."""
        raise NotImplementedError("StoreAdapter is read-only; use AssignmentManager to change capabilities.")

    def remove_filtered_policy(self, sec, ptype, field_index, *field_values):
        """Refuse casbin-side writes."""
        raise NotImplementedError("StoreAdapter is read-only; use AssignmentManager to change capabilities.")
