"""Django management command to seed the built-in roles and permissions.

The command supports:
- Choosing the guard to seed. Default is the configured default guard.
- Optionally deleting the guard's existing roles and permissions first (confirmed interactively).
- Optionally creating one demo account per built-in role.
"""

import click
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from guarded_authz.api.provisioning import seed_catalog
from guarded_authz.api.registry import get_assignment_manager
from guarded_authz.constants.roles import DEFAULT_ROLES
from guarded_authz.exceptions import AuthzError

DEMO_USERNAMES = {
    "super_admin": "superadmin",
    "admin": "admin",
    "manager": "manager",
    "moderator": "moderator",
    "user": "user",
}
DEMO_EMAIL_DOMAIN = "example.com"


class Command(BaseCommand):
    """Django management command to seed the built-in capability catalog.

    Creates the built-in permissions and the ``super_admin``, ``admin``, ``manager``,
    ``moderator`` and ``user`` roles in a guard, and grants each role its permissions.
    Running it again only adds what is missing.

    Example Usage:
        python manage.py seed_permissions
        python manage.py seed_permissions --guard api
        python manage.py seed_permissions --clear-existing --with-demo-users
    """

    help = "Seed the built-in roles and permissions into a guard."

    def add_arguments(self, parser) -> None:
        """Add command-line arguments to the argument parser.

        Args:
            parser: The Django argument parser instance to configure.
        """
        parser.add_argument(
            "--guard",
            type=str,
            default=None,
            help="Guard to seed (defaults to GUARDED_AUTHZ_DEFAULT_GUARD)",
        )
        parser.add_argument(
            "--clear-existing",
            action="store_true",
            help="Flag to delete the guard's existing roles and permissions before seeding",
        )
        parser.add_argument(
            "--with-demo-users",
            action="store_true",
            help="Flag to create one demo user per built-in role",
        )

    def handle(self, *args, **options):
        """Execute the seeding command.

        Args:
            *args: Positional command arguments (unused).
            **options: Command options including 'guard', 'clear_existing' and 'with_demo_users'.

        Raises:
            CommandError: If the guard is not configured or seeding fails.
        """
        manager = get_assignment_manager()
        try:
            guard = manager.config.require_guard(options["guard"])
        except AuthzError as exc:
            raise CommandError(str(exc)) from exc

        if options.get("clear_existing"):
            if click.confirm(
                click.style(
                    f"Do you want to delete existing roles in guard '{guard}'? "
                    "(This will also delete the assignments related to those roles)",
                    fg="yellow",
                    bold=True,
                ),
                default=False,
            ):
                self._delete_existing_roles(manager, guard)

            if click.confirm(
                click.style(
                    f"Do you want to delete existing permissions in guard '{guard}'?",
                    fg="yellow",
                    bold=True,
                ),
                default=False,
            ):
                self._delete_existing_permissions(manager, guard)

        try:
            result = seed_catalog(guard=guard, manager=manager)
        except AuthzError as exc:
            raise CommandError(f"Error seeding guard '{guard}': {exc}") from exc

        self.stdout.write(self.style.SUCCESS(f"✓ Permissions created: {len(result.created_permissions)}"))
        self.stdout.write(self.style.SUCCESS(f"✓ Roles created: {len(result.created_roles)}"))
        for role_name, granted in result.granted.items():
            self.stdout.write(f"  {role_name}: +{len(granted)} permissions")

        if options.get("with_demo_users"):
            self._create_demo_users(manager, guard)

    def _delete_existing_roles(self, manager, guard: str) -> None:
        """Delete every role of the guard.

        Args:
            manager: The AssignmentManager used to delete the roles.
            guard: The guard whose roles are deleted.
        """
        for role in manager.store.all_roles(guard):
            manager.delete_role(role)
            click.echo(f"Deleted role: {role.name}")

    def _delete_existing_permissions(self, manager, guard: str) -> None:
        """Delete every permission of the guard.

        Args:
            manager: The AssignmentManager used to delete the permissions.
            guard: The guard whose permissions are deleted.
        """
        for permission in manager.store.all_permissions(guard):
            manager.delete_permission(permission)
            click.echo(f"Deleted permission: {permission.name}")

    def _create_demo_users(self, manager, guard: str) -> None:
        """Create (or reuse) one demo user per built-in role and assign the role.

        The accounts get unusable passwords; set one with ``changepassword`` to log in.

        Args:
            manager: The AssignmentManager used to assign the roles.
            guard: The guard the roles are assigned in.
        """
        user_model = get_user_model()
        for role in DEFAULT_ROLES:
            username = DEMO_USERNAMES.get(role.name, role.name)
            user, created = user_model.objects.get_or_create(
                username=username,
                defaults={"email": f"{username}@{DEMO_EMAIL_DOMAIN}"},
            )
            if created:
                user.set_unusable_password()
                user.save()
            manager.assign_roles(user, role.name, guard)
            self.stdout.write(f"  ✓ User: {user.email} ({role.name})")
        self.stdout.write(self.style.SUCCESS("✓ Demo users created"))
