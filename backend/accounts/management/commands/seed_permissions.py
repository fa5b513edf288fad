# accounts/management/commands/seed_permissions.py


from django.core.management.base import BaseCommand

from accounts.permissions import ensure_permissions, seed_roles


class Command(BaseCommand):
    help = "Seed default permissions and built-in roles to the database"

    def add_arguments(self, parser):
        parser.add_argument(
            "--overwrite",
            action="store_true",
            help="Reset every built-in role to exactly its default permissions",
        )

    def handle(self, *args, **options):
        created, updated = ensure_permissions()
        granted = seed_roles(overwrite=options["overwrite"])

        for slug, count in granted.items():
            self.stdout.write(f"  {slug}: {count} permission(s) granted")
        self.stdout.write(self.style.SUCCESS(f"Done! Created {created}, updated {updated}."))
