import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TrackedIssue",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        help_text="Issue title, e.g. '[pagerduty] High error rate'.",
                        max_length=255,
                    ),
                ),
                (
                    "body",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Markdown body with the alert details and stack trace.",
                    ),
                ),
                (
                    "state",
                    models.CharField(
                        choices=[("open", "Open"), ("closed", "Closed")],
                        db_index=True,
                        default="open",
                        max_length=20,
                    ),
                ),
                (
                    "labels",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="List of label names attached to this issue.",
                    ),
                ),
                (
                    "alert_source",
                    models.CharField(
                        db_index=True,
                        help_text="Source system of the alert (e.g., 'pagerduty', 'sentry').",
                        max_length=50,
                    ),
                ),
                (
                    "alert_id",
                    models.CharField(
                        db_index=True,
                        help_text="Identifier of the alert in its source system.",
                        max_length=255,
                    ),
                ),
                (
                    "severity",
                    models.CharField(
                        choices=[
                            ("critical", "Critical"),
                            ("warning", "Warning"),
                            ("info", "Info"),
                        ],
                        db_index=True,
                        default="warning",
                        max_length=20,
                    ),
                ),
                ("service", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["state", "-created_at"], name="alerts_trac_state_5c1e0b_idx"
                    ),
                    models.Index(
                        fields=["alert_source", "alert_id"], name="alerts_trac_alert_s_8d2f4a_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TrackedIssueComment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("body", models.TextField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "issue",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="comments",
                        to="alerts.trackedissue",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
    ]
