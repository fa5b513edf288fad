"""
Write an encrypted database dump to a file.

Usage:
    python manage.py backup_db --generate-key
    python manage.py backup_db --output /var/backups/taxdesk.enc
    python manage.py backup_db -o dump.enc --key <fernet key>
"""
import io

from cryptography.fernet import Fernet
from django.core.management import call_command
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from backups.services.backup_service import GLOBAL_EXCLUDES, compute_checksum
from core.encryption import encrypt_bytes


class Command(BaseCommand):
    help = "Dump the database with dumpdata and encrypt it with Fernet"

    def add_arguments(self, parser):
        parser.add_argument(
            "--generate-key",
            action="store_true",
            help="Print a new Fernet key and exit",
        )
        parser.add_argument(
            "--output", "-o",
            type=str,
            help="Output file (default: taxdesk_backup_<timestamp>.enc)",
        )
        parser.add_argument(
            "--key", "-k",
            type=str,
            help="Fernet key (default: FIELD_ENCRYPTION_KEY)",
        )

    def handle(self, *args, **options):
        if options["generate_key"]:
            key = Fernet.generate_key().decode()
            self.stdout.write(f"Generated key: {key}")
            return

        output = options.get("output") or f"taxdesk_backup_{timezone.now():%Y%m%d_%H%M%S}.enc"

        dump = io.StringIO()
        call_command(
            "dumpdata",
            "--natural-foreign",
            "--all",
            *[f"--exclude={label}" for label in GLOBAL_EXCLUDES],
            stdout=dump,
        )

        try:
            encrypted = encrypt_bytes(dump.getvalue().encode(), key=options.get("key"))
        except ValueError as e:
            raise CommandError(f"{e}. Pass --key or set FIELD_ENCRYPTION_KEY.")

        with open(output, "wb") as f:
            f.write(encrypted)

        self.stdout.write(self.style.SUCCESS(
            f"Backup written to {output} ({len(encrypted)} bytes, sha256 {compute_checksum(encrypted)})"
        ))
