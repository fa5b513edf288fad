import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("create", "Create"),
                            ("update", "Update"),
                            ("delete", "Delete"),
                            ("view", "View"),
                            ("approve", "Approve"),
                            ("reject", "Reject"),
                            ("backup", "Backup"),
                            ("restore", "Restore"),
                        ],
                        db_index=True,
                        max_length=10,
                    ),
                ),
                ("module", models.CharField(db_index=True, max_length=50)),
                ("object_id", models.CharField(max_length=64)),
                ("object_repr", models.CharField(max_length=255)),
                ("changes", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True, default="")),
                ("request_path", models.CharField(blank=True, default="", max_length=500)),
                ("timestamp", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_logs", to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["module", "object_id"], name="auditlog_object_idx"),
                    models.Index(fields=["user", "timestamp"], name="auditlog_user_time_idx"),
                ],
            },
        ),
    ]
