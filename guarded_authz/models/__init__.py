"""Database models for the authorization framework.

These models are the durable store of capabilities: roles and permissions
partitioned by guard, plus the three link tables that attach roles to
principals, permissions to roles, and permissions directly to principals.

Principals are polymorphic. Links reference them by ``principal_type`` (the
``app_label.model_name`` label) and ``principal_id`` rather than by a foreign
key, so any model can hold roles without the store importing it.
"""

from guarded_authz.models.core import *
