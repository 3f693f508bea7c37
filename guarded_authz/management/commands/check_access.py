"""
Django management command for interactive authorization testing.

Operators type a username and a requirement expression per line and get the
decision of the Authorizer, evaluated under the chosen guard.

Example usage:
    python manage.py check_access
    python manage.py check_access --guard api

Example test input:
    >>> alice role:admin|moderator
    ✓ ALLOWED: alice role:admin|moderator
    >>> bob permission:manage_system
    ✗ DENIED: bob permission:manage_system
"""

import argparse

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from guarded_authz.api.data import parse_requirement
from guarded_authz.api.registry import get_authorizer
from guarded_authz.exceptions import AuthzError

EXAMPLE_INPUT = "alice role_or_permission:admin|manage_users"


class Command(BaseCommand):
    """
    Django management command for interactive authorization testing.

    The command resolves each username to a user, parses the requirement
    expression and prints whether the user satisfies it.
    """

    help = (
        "Interactive mode for testing authorization decisions. "
        "Format: <username> <requirement-expression>, e.g. 'alice role:admin|moderator'."
    )

    def __init__(self, *args, **kwargs):
        """Initialize the command with required attributes."""
        super().__init__(*args, **kwargs)
        self._guard = None

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add command-line arguments to the argument parser.

        Args:
            parser (argparse.ArgumentParser): The Django argument parser instance to configure.
        """
        parser.add_argument(
            "-g",
            "--guard",
            type=str,
            default=None,
            help="Guard to evaluate under (defaults to GUARDED_AUTHZ_DEFAULT_GUARD).",
        )

    def handle(self, *args, **options):
        """Execute the access testing command.

        Args:
            *args: Positional command arguments (unused).
            **options: Command options including ``--guard``.

        Raises:
            CommandError: If the guard is not configured.
        """
        authorizer = get_authorizer()
        try:
            self._guard = authorizer.config.require_guard(options["guard"])
        except AuthzError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(self.style.SUCCESS(f"Interactive Access Check (guard '{self._guard}')"))
        self._run_interactive_mode()

    def _run_interactive_mode(self) -> None:
        """Start the interactive testing shell.

        Note:
            Exit the interactive mode with Ctrl+C or Ctrl+D.
        """
        self.stdout.write("Enter 'quit', 'exit', or 'q' to exit the interactive mode.")
        self.stdout.write("")
        self.stdout.write("Format: <username> <requirement-expression>")
        self.stdout.write(f"Example: {EXAMPLE_INPUT}")
        self.stdout.write("")

        while True:
            try:
                user_input = input("Enter access test: ").strip()

                if not user_input:
                    continue

                if user_input.lower() in ["quit", "exit", "q"]:
                    break

                self._test_interactive_request(user_input)
            except (KeyboardInterrupt, EOFError):
                self.stdout.write(self.style.ERROR("Exiting interactive mode..."))
                break

    def _test_interactive_request(self, user_input: str) -> None:
        """Process and test a single request from user input.

        Args:
            user_input (str): The user's input string in format '<username> <requirement-expression>'.
        """
        parts = user_input.split()
        if len(parts) != 2:
            self.stdout.write(self.style.ERROR(f"✗ Invalid format. Expected 2 parts, got {len(parts)}"))
            self.stdout.write("Format: <username> <requirement-expression>")
            self.stdout.write(f"Example: {EXAMPLE_INPUT}")
            return

        username, expression = parts
        user_model = get_user_model()
        try:
            user = user_model.objects.get(username=username)
        except user_model.DoesNotExist:
            self.stdout.write(self.style.ERROR(f"✗ Unknown user: {username}"))
            return

        try:
            requirement = parse_requirement(expression)
        except AuthzError as exc:
            self.stdout.write(self.style.ERROR(f"✗ Error processing request: {exc}"))
            return

        if get_authorizer().check(user, requirement, self._guard):
            self.stdout.write(self.style.SUCCESS(f"✓ ALLOWED: {username} {expression}"))
        else:
            self.stdout.write(self.style.ERROR(f"✗ DENIED: {username} {expression}"))
