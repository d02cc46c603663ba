import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="OutboxEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("notification", "Notification Request")], max_length=32, verbose_name="Kind")),
                ("payload", models.JSONField(default=dict, verbose_name="Payload")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("dispatched_at", models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="Dispatched At")),
                ("attempts", models.PositiveIntegerField(default=0, verbose_name="Delivery Attempts")),
                ("last_error", models.TextField(blank=True, default="", verbose_name="Last Error")),
            ],
            options={
                "verbose_name": "Outbox Event",
                "verbose_name_plural": "Outbox Events",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("event_type", models.CharField(blank=True, db_index=True, default="", max_length=64, verbose_name="Event Type")),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                ("message", models.TextField(verbose_name="Message")),
                ("is_read", models.BooleanField(default=False, verbose_name="Read")),
                ("object_id", models.PositiveIntegerField(blank=True, null=True, verbose_name="Related Object ID")),
                ("content_type", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, to="contenttypes.contenttype", verbose_name="Related Content Type")),
                ("recipient", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to=settings.AUTH_USER_MODEL, verbose_name="Recipient")),
            ],
            options={
                "verbose_name": "Notification",
                "verbose_name_plural": "Notifications",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["recipient", "is_read"], name="core_notif_recipient_read_idx")],
            },
        ),
    ]
