"""
Alert orchestration services.

This module contains the business logic for processing an incoming alert:
normalizing the payload, skipping alerts that are already tracked, recording
duplicates on the issue they match, and creating tracked issues.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings
from django.db import transaction

from apps.alerts import store
from apps.alerts.dedup import DeduplicationConfig, DuplicateDetector
from apps.alerts.parsers import Alert, AlertParseError, parse_alert

logger = logging.getLogger(__name__)


class ActionTaken:
    """Outcome of processing one payload."""

    ISSUE_CREATED = "issue_created"
    DUPLICATE = "duplicate"
    ALREADY_PROCESSED = "already_processed"
    ANALYSIS_ONLY = "analysis_only"
    ERROR = "error"


@dataclass
class ProcessingResult:
    """Result of processing an incoming alert payload."""

    action_taken: str = ActionTaken.ERROR
    alert: Alert | None = None
    issue_number: int | None = None
    duplicate_of: int | None = None
    similarity: float | None = None
    stage: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "action_taken": self.action_taken,
            "alert": self.alert.to_dict() if self.alert else None,
            "issue_number": self.issue_number,
            "duplicate_of": self.duplicate_of,
            "similarity": self.similarity,
            "stage": self.stage,
            "errors": list(self.errors),
        }


def format_issue_body(alert: Alert) -> str:
    """Render the Markdown body of a tracked issue for an alert."""
    rows = [
        ("Source", alert.source.value),
        ("Alert ID", alert.id),
        ("Severity", alert.severity.value),
        ("Service", alert.service or "N/A"),
        ("Time", alert.timestamp),
    ]
    if alert.url:
        rows.append(("Link", f"[View in {alert.source.value}]({alert.url})"))

    lines = [
        "## Alert Details",
        "",
        "| Field | Value |",
        "|-------|-------|",
        *(f"| {name} | {value} |" for name, value in rows),
        "",
        "## Description",
        "",
        alert.description,
    ]

    if alert.stack_trace:
        lines += ["", "## Stack Trace", "", "```", alert.stack_trace, "```"]

    if alert.tags:
        lines += ["", "## Tags", ""]
        lines += [f"- **{key}**: {value}" for key, value in alert.tags.items()]

    lines += ["", "---", "*This issue was created automatically by the alert triage webhook.*", ""]
    return "\n".join(lines)


def format_duplicate_comment(alert: Alert) -> str:
    return (
        "New alert received that appears related to this issue:\n\n"
        f"**{alert.title}**\n\n"
        f"{alert.description}\n\n"
        f"_Alert ID: {alert.id} ({alert.source.value})_"
    )


def issue_labels(alert: Alert, tracking_label: str) -> list[str]:
    labels = [tracking_label, alert.severity.value]
    if alert.service:
        labels.append(f"service:{alert.service}")
    return labels


class AlertOrchestrator:
    """
    Orchestrates the processing of incoming alerts.

    This is the main entry point for alert ingestion. It:
    1. Detects or uses the specified parser to normalize the payload
    2. Skips alerts whose id is already recorded on an open issue
    3. Comments on the best matching issue when the alert is a duplicate
    4. Otherwise creates a new tracked issue

    Usage:
        orchestrator = AlertOrchestrator()
        result = orchestrator.process_webhook(payload)
        # or with a specific source:
        result = orchestrator.process_webhook(payload, source="sentry")
    """

    def __init__(
        self,
        detector: DuplicateDetector | None = None,
        create_issue: bool | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            detector: Duplicate detector; defaults to one over the tracking
                store configured from the ALERT_DEDUPLICATION setting.
            create_issue: Create a tracked issue for new alerts. Defaults to
                the ALERT_CREATE_ISSUE setting (True when unset).
        """
        if detector is None:
            detector = DuplicateDetector(
                store.list_recent_records, DeduplicationConfig.from_settings()
            )
        if create_issue is None:
            create_issue = getattr(settings, "ALERT_CREATE_ISSUE", True)

        self.detector = detector
        self.create_issue = create_issue

    def process_webhook(self, payload: Any, source: str = "auto") -> ProcessingResult:
        """
        Process an incoming webhook payload.

        Args:
            payload: Deserialized JSON payload from the webhook.
            source: Source name, or "auto" for detection.

        Returns:
            ProcessingResult describing the action taken. Normalization
            failures are reported on the result; tracking store errors
            propagate.
        """
        result = ProcessingResult()

        try:
            alert = parse_alert(payload, source)
        except AlertParseError as e:
            logger.warning(f"Could not normalize {source} payload ({e.stage}): {e}")
            result.stage = e.stage
            result.errors.append(str(e))
            return result

        result.alert = alert
        logger.info(
            f"Parsed alert: '{alert.title}' from {alert.source.value} "
            f"(severity: {alert.severity.value})"
        )

        try:
            with transaction.atomic():
                self._handle_alert(alert, result)
        except Exception:
            logger.exception(f"Error recording alert {alert.id}")
            raise

        logger.info(f"Alert {alert.id} processed: {result.action_taken}")
        return result

    def _handle_alert(self, alert: Alert, result: ProcessingResult) -> None:
        processed = self.detector.is_alert_processed(alert)
        if processed.processed:
            result.action_taken = ActionTaken.ALREADY_PROCESSED
            result.issue_number = processed.record_number
            return

        duplicates = self.detector.find_duplicates(alert)
        if duplicates:
            best = duplicates[0]
            store.add_comment(best.number, format_duplicate_comment(alert))
            result.action_taken = ActionTaken.DUPLICATE
            result.duplicate_of = best.number
            result.issue_number = best.number
            result.similarity = best.similarity
            return

        if not self.create_issue:
            result.action_taken = ActionTaken.ANALYSIS_ONLY
            return

        issue = store.create_record(
            title=f"[{alert.source.value}] {alert.title}",
            body=format_issue_body(alert),
            labels=issue_labels(alert, self.detector.config.tracking_label),
            alert_source=alert.source.value,
            alert_id=alert.id,
            severity=alert.severity.value,
            service=alert.service,
        )
        result.action_taken = ActionTaken.ISSUE_CREATED
        result.issue_number = issue.number
