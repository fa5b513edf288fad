import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

PRIORITY_CHOICES = [("low", "Low"), ("medium", "Medium"), ("high", "High"), ("urgent", "Urgent")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("clients", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="TaxCase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("case_number", models.CharField(editable=False, max_length=30, unique=True)),
                ("title", models.CharField(max_length=255)),
                (
                    "case_type",
                    models.CharField(
                        choices=[
                            ("individual_1040", "Individual (1040)"),
                            ("corporate_1120", "Corporate (1120)"),
                            ("s_corp_1120s", "S-Corp (1120-S)"),
                            ("partnership_1065", "Partnership (1065)"),
                            ("nonprofit_990", "Nonprofit (990)"),
                            ("trust_1041", "Trust (1041)"),
                            ("payroll", "Payroll"),
                            ("sales_tax", "Sales Tax"),
                            ("amendment", "Amendment"),
                            ("other", "Other"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                ("fiscal_year", models.PositiveIntegerField(db_index=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("new", "New"),
                            ("waiting_for_documents", "Waiting for Documents"),
                            ("in_progress", "In Progress"),
                            ("under_review", "Under Review"),
                            ("ready_to_file", "Ready to File"),
                            ("filed", "Filed"),
                            ("completed", "Completed"),
                            ("closed", "Closed"),
                        ],
                        db_index=True,
                        default="new",
                        max_length=25,
                    ),
                ),
                ("priority", models.CharField(choices=PRIORITY_CHOICES, default="medium", max_length=10)),
                ("estimated_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("actual_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("due_date", models.DateField(blank=True, db_index=True, null=True)),
                ("extension_date", models.DateField(blank=True, null=True)),
                ("filed_date", models.DateField(blank=True, null=True)),
                ("completed_date", models.DateField(blank=True, null=True)),
                ("closed_date", models.DateField(blank=True, null=True)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "assigned_preparer",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="prepared_cases", to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "contact",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tax_cases", to="clients.contact",
                    ),
                ),
                (
                    "corporation",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tax_cases", to="clients.corporation",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_cases", to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "reviewer",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_cases", to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["status", "assigned_preparer"], name="taxcase_status_preparer_idx"),
                    models.Index(fields=["status", "due_date"], name="taxcase_status_due_idx"),
                    models.Index(fields=["fiscal_year", "status"], name="taxcase_year_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaxCaseNote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("content", models.TextField()),
                ("is_internal", models.BooleanField(default=True)),
                (
                    "author",
                    models.ForeignKey(
                        null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="case_notes", to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "case",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notes", to="cases.taxcase",
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Task",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[("todo", "To Do"), ("in_progress", "In Progress"), ("done", "Done")],
                        db_index=True,
                        default="todo",
                        max_length=20,
                    ),
                ),
                ("priority", models.CharField(choices=PRIORITY_CHOICES, default="medium", max_length=10)),
                ("due_date", models.DateField(blank=True, db_index=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "assigned_to",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_tasks", to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "case",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.CASCADE,
                        related_name="tasks", to="cases.taxcase",
                    ),
                ),
                (
                    "contact",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tasks", to="clients.contact",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_tasks", to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["due_date", "-created_at"], "abstract": False},
        ),
    ]
