"""
PagerDuty parser.

Handles incoming webhooks from PagerDuty.
See: https://developer.pagerduty.com/docs/webhooks/v3-overview/
"""

from typing import Any

from apps.alerts.parsers.base import (
    Alert,
    AlertSource,
    BaseAlertParser,
    Severity,
    to_iso_timestamp,
)
from apps.alerts.parsers.fields import get_dict, get_id, get_str, scalar_str


class PagerDutyParser(BaseAlertParser):
    """
    Parser for PagerDuty webhooks (V3).

    PagerDuty sends events in the following format:
    {
        "event": {
            "id": "...",
            "event_type": "incident.triggered",
            "occurred_at": "...",
            "data": {
                "id": "...",
                "html_url": "...",
                "number": 123,
                "title": "...",
                "service": {"id": "...", "name": "..."},
                "urgency": "high",
                "created_at": "...",
                "body": {"details": {"stack_trace": "...", "error_message": "..."}},
                "custom_fields": {...}
            }
        }
    }
    """

    name = AlertSource.PAGERDUTY

    def can_parse(self, payload: Any) -> bool:
        """Check if this looks like a PagerDuty payload."""
        if not isinstance(payload, dict):
            return False
        event = payload.get("event")
        return isinstance(event, dict) and isinstance(event.get("data"), dict)

    def parse(self, payload: Any) -> Alert:
        """Parse PagerDuty webhook payload."""
        event = get_dict(payload, "event")
        data = get_dict(event, "data")
        details = get_dict(get_dict(data, "body"), "details")

        title = get_str(data, "title") or "PagerDuty Incident"

        # Prefer the error message over the incident title when they differ
        error_message = get_str(details, "error_message")
        if error_message and error_message != title:
            description = error_message
        else:
            description = get_str(data, "description") or title

        urgency = get_str(data, "urgency")
        severity = Severity.CRITICAL if urgency == "high" else Severity.WARNING

        service = get_dict(data, "service")

        return Alert(
            source=self.name,
            id=get_id(data, "id") or get_id(event, "id") or "",
            title=title,
            description=description,
            severity=severity,
            stack_trace=get_str(details, "stack_trace"),
            service=get_str(service, "name") or get_str(service, "summary"),
            timestamp=to_iso_timestamp(data.get("created_at") or event.get("occurred_at")),
            url=get_str(data, "html_url"),
            tags=self._extract_tags(event, data),
            raw=payload,
        )

    def _extract_tags(self, event: dict[str, Any], data: dict[str, Any]) -> dict[str, str]:
        """Build tags from incident metadata and custom fields."""
        tags: dict[str, str] = {}

        number = scalar_str(data.get("number"))
        if number:
            tags["incident_number"] = number

        service_id = get_id(get_dict(data, "service"), "id")
        if service_id:
            tags["service_id"] = service_id

        event_type = get_str(event, "event_type")
        if event_type:
            tags["event_type"] = event_type

        urgency = get_str(data, "urgency")
        if urgency:
            tags["urgency"] = urgency

        # Add custom fields as tags
        for key, value in get_dict(data, "custom_fields").items():
            text = scalar_str(value)
            if text is not None:
                tags[key] = text

        return tags
