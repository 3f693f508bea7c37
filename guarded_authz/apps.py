"""
guarded_authz Django application initialization.
"""

from django.apps import AppConfig


class GuardedAuthzConfig(AppConfig):
    """
    Configuration for the guarded_authz Django application.
    """

    name = "guarded_authz"
    verbose_name = "Guarded AuthZ"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        """Connect the signal handlers and create the process-wide components.

        Nothing here touches the database or the shared cache: capability
        snapshots are built lazily, on the first check of each guard.
        """
        from guarded_authz import handlers  # pylint: disable=import-outside-toplevel,unused-import
        from guarded_authz.api import registry  # pylint: disable=import-outside-toplevel

        registry.configure()
