"""
Common settings for the guarded_authz app.
"""

import os

from guarded_authz import ROOT_DIRECTORY
from guarded_authz.conf import (
    DEFAULT_CACHE_ALIAS,
    DEFAULT_CACHE_KEY_PREFIX,
    DEFAULT_CACHE_TTL,
    DEFAULT_GUARDS,
    DEFAULT_STORE_READ_RETRIES,
)


def plugin_settings(settings):
    """
    Install the guarded_authz defaults on a settings object.

    Call it from a project's settings module (``plugin_settings(sys.modules[__name__])``)
    or from a settings loader. Values already present are left untouched.

    Args:
        settings: The Django settings object
    """
    app = "guarded_authz.apps.GuardedAuthzConfig"
    if app not in settings.INSTALLED_APPS and "guarded_authz" not in settings.INSTALLED_APPS:
        settings.INSTALLED_APPS = [*settings.INSTALLED_APPS, app]

    # Guards are the authentication contexts roles and permissions are partitioned by.
    # The first one is the default unless GUARDED_AUTHZ_DEFAULT_GUARD says otherwise.
    if not hasattr(settings, "GUARDED_AUTHZ_GUARDS"):
        settings.GUARDED_AUTHZ_GUARDS = list(DEFAULT_GUARDS)

    if not hasattr(settings, "GUARDED_AUTHZ_DEFAULT_GUARD"):
        settings.GUARDED_AUTHZ_DEFAULT_GUARD = settings.GUARDED_AUTHZ_GUARDS[0]

    # Maximum age (seconds or timedelta) of a capability snapshot. Mutations invalidate
    # snapshots explicitly, the TTL only bounds changes made behind the framework's back.
    if not hasattr(settings, "GUARDED_AUTHZ_CACHE_TTL"):
        settings.GUARDED_AUTHZ_CACHE_TTL = DEFAULT_CACHE_TTL

    # Namespace and cache alias of the shared version tokens.
    if not hasattr(settings, "GUARDED_AUTHZ_CACHE_KEY_PREFIX"):
        settings.GUARDED_AUTHZ_CACHE_KEY_PREFIX = DEFAULT_CACHE_KEY_PREFIX

    if not hasattr(settings, "GUARDED_AUTHZ_CACHE_ALIAS"):
        settings.GUARDED_AUTHZ_CACHE_ALIAS = DEFAULT_CACHE_ALIAS

    if not hasattr(settings, "GUARDED_AUTHZ_STORE_READ_RETRIES"):
        settings.GUARDED_AUTHZ_STORE_READ_RETRIES = DEFAULT_STORE_READ_RETRIES

    # Set default CASBIN_MODEL if not already set, this points to the model.conf file
    # which defines how role assignments and grants are matched.
    if not hasattr(settings, "CASBIN_MODEL"):
        settings.CASBIN_MODEL = os.path.join(ROOT_DIRECTORY, "engine", "config", "model.conf")
