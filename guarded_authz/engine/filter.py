"""
Filter implementation for guard-scoped policy loading.

The capability cache keeps one casbin enforcer per guard and rebuilds each of
them from the store independently. The Filter class tells the adapter which
guards (and which rule types) to read, so that a rebuild loads exactly one
guard's snapshot.
"""

from typing import Optional

import attr


@attr.define
class Filter:
    """
    Filter class for selective policy loading.

    Note:
        - Empty lists for any attribute means no filtering on that attribute
        - Non-empty lists create an "IN" filter for that attribute
        - All non-empty filters are combined with AND logic
    """

    ptype: Optional[list[str]] = attr.field(factory=list)
    """ptype (Optional[list[str]]): Policy type filter.

    - ``p``  → Permission grants (role ↔ permission and principal ↔ permission).
    - ``g``  → Role assignments (principal ↔ role).
    """

    guard: Optional[list[str]] = attr.field(factory=list)
    """guard (Optional[list[str]]): Guard filter (e.g., ``["web"]``)."""
