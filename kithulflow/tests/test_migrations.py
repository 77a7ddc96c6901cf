from io import StringIO

from django.core.management import call_command
from django.test import TestCase


class MigrationStateTests(TestCase):
    def test_models_have_no_pending_migrations(self) -> None:
        output = StringIO()

        call_command("makemigrations", "--check", "--dry-run", stdout=output, stderr=output)

        self.assertIn("No changes detected", output.getvalue())
