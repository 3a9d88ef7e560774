"""
Tracking models for alerts that have been triaged.

A ``TrackedIssue`` is the durable record of one alert: duplicate detection
compares incoming alerts against recent open issues, and duplicates are
recorded as comments on the issue they match.
"""

from django.db import models


class AlertSeverity(models.TextChoices):
    """Severity levels for alerts."""

    CRITICAL = "critical", "Critical"
    WARNING = "warning", "Warning"
    INFO = "info", "Info"


class IssueState(models.TextChoices):
    """State of a tracked issue."""

    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"


class TrackedIssue(models.Model):
    """
    A tracked issue created for an incoming alert.

    Issues carry labels (the tracking label, the severity and
    ``service:<name>``) which duplicate detection filters on.
    """

    title = models.CharField(
        max_length=255,
        help_text="Issue title, e.g. '[pagerduty] High error rate'.",
    )
    body = models.TextField(
        blank=True,
        default="",
        help_text="Markdown body with the alert details and stack trace.",
    )
    state = models.CharField(
        max_length=20,
        choices=IssueState.choices,
        default=IssueState.OPEN,
        db_index=True,
    )
    labels = models.JSONField(
        default=list,
        blank=True,
        help_text="List of label names attached to this issue.",
    )

    # Alert the issue was created from
    alert_source = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Source system of the alert (e.g., 'pagerduty', 'sentry').",
    )
    alert_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Identifier of the alert in its source system.",
    )
    severity = models.CharField(
        max_length=20,
        choices=AlertSeverity.choices,
        default=AlertSeverity.WARNING,
        db_index=True,
    )
    service = models.CharField(
        max_length=255,
        blank=True,
        default="",
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
    )
    updated_at = models.DateTimeField(
        auto_now=True,
    )

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["state", "-created_at"], name="alerts_trac_state_5c1e0b_idx"
            ),
            models.Index(
                fields=["alert_source", "alert_id"], name="alerts_trac_alert_s_8d2f4a_idx"
            ),
        ]

    def __str__(self):
        return f"#{self.pk} [{self.state}] {self.title}"

    @property
    def number(self) -> int:
        return self.pk

    @property
    def is_open(self) -> bool:
        return self.state == IssueState.OPEN

    def close(self, save: bool = True):
        """Mark the issue as closed."""
        self.state = IssueState.CLOSED
        if save:
            self.save(update_fields=["state", "updated_at"])


class TrackedIssueComment(models.Model):
    """
    A comment on a tracked issue, e.g. a duplicate-alert notice.
    """

    issue = models.ForeignKey(
        TrackedIssue,
        on_delete=models.CASCADE,
        related_name="comments",
    )
    body = models.TextField()
    created_at = models.DateTimeField(
        auto_now_add=True,
    )

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Comment on #{self.issue_id}"
