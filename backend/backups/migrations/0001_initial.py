import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("clients", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AutoBackupConfiguration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("auto_backup_enabled", models.BooleanField(default=False)),
                ("contacts_threshold", models.PositiveIntegerField(default=10)),
                ("cases_threshold", models.PositiveIntegerField(default=5)),
                ("documents_threshold", models.PositiveIntegerField(default=10)),
                ("corporations_threshold", models.PositiveIntegerField(default=5)),
                ("activity_threshold", models.PositiveIntegerField(default=100)),
                ("days_since_last", models.PositiveIntegerField(default=7)),
                ("include_media", models.BooleanField(default=False)),
                ("retention_days", models.PositiveIntegerField(default=30)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"verbose_name": "automated backup configuration"},
        ),
        migrations.CreateModel(
            name="Backup",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255)),
                (
                    "backup_type",
                    models.CharField(
                        choices=[("global", "Global"), ("tenant", "Tenant")], db_index=True, max_length=10,
                    ),
                ),
                ("include_media", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "source",
                    models.CharField(
                        choices=[("manual", "Manual"), ("automated", "Automated"), ("upload", "Upload")],
                        default="manual",
                        max_length=10,
                    ),
                ),
                ("file_path", models.CharField(blank=True, default="", max_length=500)),
                ("file_size", models.PositiveBigIntegerField(default=0)),
                ("checksum", models.CharField(blank=True, default="", max_length=64)),
                ("error_message", models.TextField(blank=True, default="")),
                ("trigger_reason", models.TextField(blank=True, default="")),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("restored_at", models.DateTimeField(blank=True, null=True)),
                (
                    "corporation",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="backups", to="clients.corporation",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_backups", to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
    ]
