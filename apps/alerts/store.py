"""
Tracking store backed by the ``TrackedIssue`` model.

``list_recent_records`` satisfies the record-listing contract expected by
``apps.alerts.dedup.DuplicateDetector``.
"""

import logging
from collections.abc import Iterable

from django.utils.dateparse import parse_datetime

from apps.alerts.dedup import TrackingRecord
from apps.alerts.models import TrackedIssue, TrackedIssueComment

logger = logging.getLogger(__name__)


def to_record(issue: TrackedIssue) -> TrackingRecord:
    return TrackingRecord(
        number=issue.number,
        title=issue.title,
        body=issue.body or None,
        state=issue.state,
        created_at=issue.created_at.isoformat(),
    )


def list_recent_records(
    *,
    labels: list[str],
    state: str = "all",
    since: str | None = None,
    per_page: int = 50,
) -> list[TrackingRecord]:
    """
    List tracked issues carrying every label in ``labels``, newest first.

    Args:
        labels: Label names that must all be present on the issue.
        state: "open", "closed" or "all".
        since: ISO-8601 lower bound on the creation time.
        per_page: Maximum number of records to return.

    Raises:
        ValueError: If ``since`` is not a valid ISO-8601 datetime.
    """
    queryset = TrackedIssue.objects.all()
    if state != "all":
        queryset = queryset.filter(state=state)
    if since:
        since_dt = parse_datetime(since)
        if since_dt is None:
            raise ValueError(f"Invalid since timestamp: {since}")
        queryset = queryset.filter(created_at__gte=since_dt)

    # JSON containment lookups are not available on every backend (SQLite),
    # so labels are matched in Python while streaming newest first.
    wanted = set(labels)
    records: list[TrackingRecord] = []
    for issue in queryset.order_by("-created_at", "-id").iterator():
        if wanted.issubset(issue.labels or []):
            records.append(to_record(issue))
            if len(records) >= per_page:
                break
    return records


def create_record(
    *,
    title: str,
    body: str,
    labels: Iterable[str],
    alert_source: str,
    alert_id: str,
    severity: str,
    service: str | None = None,
) -> TrackedIssue:
    """Create an open tracked issue."""
    issue = TrackedIssue.objects.create(
        title=title[:255],
        body=body,
        labels=list(dict.fromkeys(labels)),
        alert_source=alert_source,
        alert_id=alert_id,
        severity=severity,
        service=service or "",
    )
    logger.info(f"Created tracked issue #{issue.number}: {issue.title}")
    return issue


def add_comment(number: int, body: str) -> TrackedIssueComment:
    """
    Add a comment to a tracked issue.

    Raises:
        TrackedIssue.DoesNotExist: If no issue has that number.
    """
    issue = TrackedIssue.objects.get(pk=number)
    comment = TrackedIssueComment.objects.create(issue=issue, body=body)
    logger.info(f"Added comment to tracked issue #{number}")
    return comment
