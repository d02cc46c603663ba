import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Case",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("title", models.CharField(max_length=255, verbose_name="Case Title")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                ("priority", models.CharField(choices=[("LOW", "Low"), ("MEDIUM", "Medium"), ("HIGH", "High"), ("URGENT", "Urgent")], db_index=True, default="MEDIUM", max_length=10, verbose_name="Priority")),
                ("status", models.CharField(choices=[("OPEN", "Open (unassigned)"), ("PENDING", "Pending Acceptance"), ("IN_PROGRESS", "In Progress"), ("PENDING_COMPLETION", "Pending Completion Review"), ("COMPLETED", "Completed")], db_index=True, default="OPEN", max_length=30, verbose_name="Current Status")),
                ("due_date", models.DateTimeField(blank=True, null=True, verbose_name="Due Date")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="Metadata")),
                ("version", models.PositiveIntegerField(default=0, help_text="Incremented by every workflow transition.", verbose_name="Version")),
                ("assigned_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="assigned_cases", to=settings.AUTH_USER_MODEL, verbose_name="Assigned Caseworker")),
                ("created_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="created_cases", to=settings.AUTH_USER_MODEL, verbose_name="Created By")),
            ],
            options={
                "verbose_name": "Case",
                "verbose_name_plural": "Cases",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["assigned_to", "status"], name="cases_case_assignee_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="CaseLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("created", "Created"), ("assigned", "Assigned"), ("accepted", "Accepted"), ("rejected", "Rejected"), ("completion_requested", "Completion Requested"), ("approved", "Approved"), ("completion_rejected", "Completion Rejected"), ("note", "Manual Note")], max_length=30, verbose_name="Action")),
                ("details", models.TextField(blank=True, default="", verbose_name="Details")),
                ("from_status", models.CharField(blank=True, choices=[("OPEN", "Open (unassigned)"), ("PENDING", "Pending Acceptance"), ("IN_PROGRESS", "In Progress"), ("PENDING_COMPLETION", "Pending Completion Review"), ("COMPLETED", "Completed")], default="", max_length=30, verbose_name="Previous Status")),
                ("to_status", models.CharField(blank=True, choices=[("OPEN", "Open (unassigned)"), ("PENDING", "Pending Acceptance"), ("IN_PROGRESS", "In Progress"), ("PENDING_COMPLETION", "Pending Completion Review"), ("COMPLETED", "Completed")], default="", max_length=30, verbose_name="New Status")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="Timestamp")),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="logs", to="cases.case", verbose_name="Case")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="case_logs", to=settings.AUTH_USER_MODEL, verbose_name="Actor")),
            ],
            options={
                "verbose_name": "Case Log",
                "verbose_name_plural": "Case Logs",
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
