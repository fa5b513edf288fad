import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

MODULE_CHOICES = [
    ("cases", "Cases"),
    ("contacts", "Contacts"),
    ("corporations", "Corporations"),
    ("tasks", "Tasks"),
    ("documents", "Documents"),
    ("appointments", "Appointments"),
]

ACTION_TYPE_CHOICES = [
    ("update_field", "Update Field"),
    ("send_email", "Send Email"),
    ("send_notification", "Send Notification"),
    ("create_task", "Create Task"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Approval",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255)),
                ("module", models.CharField(choices=MODULE_CHOICES, db_index=True, max_length=30)),
                ("is_active", models.BooleanField(default=True)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "trigger",
                    models.CharField(
                        choices=[("on_save", "On Save"), ("via_process", "Via Process")],
                        default="on_save",
                        max_length=20,
                    ),
                ),
                ("entry_criteria_all", models.JSONField(blank=True, default=list)),
                ("entry_criteria_any", models.JSONField(blank=True, default=list)),
                (
                    "apply_on",
                    models.CharField(
                        choices=[("created_by", "Created By"), ("assigned_to", "Assigned To")],
                        default="assigned_to",
                        max_length=20,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_approvals", to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="ApprovalRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("rule_number", models.PositiveSmallIntegerField(default=1)),
                ("conditions", models.JSONField(blank=True, default=list)),
                (
                    "approval",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rules", to="approvals.approval",
                    ),
                ),
                (
                    "approvers",
                    models.ManyToManyField(blank=True, related_name="approval_rules", to=settings.AUTH_USER_MODEL),
                ),
                (
                    "owner_profiles",
                    models.ManyToManyField(blank=True, related_name="approval_rules", to="accounts.role"),
                ),
            ],
            options={"ordering": ["rule_number", "id"], "abstract": False},
        ),
        migrations.CreateModel(
            name="ApprovalAction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "phase",
                    models.CharField(
                        choices=[("approval", "Final Approval"), ("rejection", "Final Rejection")],
                        db_index=True,
                        max_length=10,
                    ),
                ),
                ("action_type", models.CharField(choices=ACTION_TYPE_CHOICES, max_length=30)),
                ("action_title", models.CharField(max_length=255)),
                ("action_config", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "approval",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="actions", to="approvals.approval",
                    ),
                ),
            ],
            options={"ordering": ["phase", "created_at", "id"], "abstract": False},
        ),
        migrations.CreateModel(
            name="ApprovalRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("approval_name", models.CharField(max_length=255)),
                ("module", models.CharField(choices=MODULE_CHOICES, db_index=True, max_length=30)),
                ("object_id", models.CharField(max_length=64)),
                ("object_repr", models.CharField(blank=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                ("comment", models.TextField(blank=True, default="")),
                (
                    "approval",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="requests", to="approvals.approval",
                    ),
                ),
                (
                    "approvers",
                    models.ManyToManyField(
                        blank=True, related_name="approval_requests_to_decide", to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "decided_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="decided_approval_requests", to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "rule",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="requests", to="approvals.approvalrule",
                    ),
                ),
                (
                    "submitted_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="submitted_approval_requests", to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [models.Index(fields=["module", "object_id"], name="approvalrequest_object_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "pending")),
                        fields=("approval", "module", "object_id"),
                        name="one_pending_request_per_record",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ApprovalActionLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action_type", models.CharField(choices=ACTION_TYPE_CHOICES, max_length=30)),
                ("action_title", models.CharField(max_length=255)),
                (
                    "result",
                    models.CharField(choices=[("success", "Success"), ("error", "Error")], max_length=10),
                ),
                ("detail", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "action",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="logs", to="approvals.approvalaction",
                    ),
                ),
                (
                    "request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="action_logs", to="approvals.approvalrequest",
                    ),
                ),
            ],
            options={"ordering": ["created_at", "id"]},
        ),
    ]
