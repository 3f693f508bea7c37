"""Public API for the guarded_authz framework.

This module provides the public API of the framework: the data classes and
requirement types, the capability store, the authorizer, the assignment manager,
provisioning helpers and user-centric shortcuts. It abstracts the casbin engine
used for the per-guard capability snapshots.
"""

from guarded_authz.api.data import *
from guarded_authz.api.store import *
from guarded_authz.api.authorization import *
from guarded_authz.api.assignments import *
from guarded_authz.api.registry import *
from guarded_authz.api.provisioning import *
from guarded_authz.api.users import *
