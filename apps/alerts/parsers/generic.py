"""
Generic webhook parser.

Handles alerts from custom/unknown sources by probing common field names.
This serves as the fallback and accepts every payload, including ``null``
and other non-object JSON values.
"""

from typing import Any

from apps.alerts.parsers.base import (
    UNKNOWN_TITLE,
    Alert,
    AlertSource,
    BaseAlertParser,
    Severity,
    find_stack_lines,
    now_iso,
    to_iso_timestamp,
)
from apps.alerts.parsers.fields import (
    first_str,
    get_id,
    get_str,
    parse_tag_list,
    scalar_items,
)

ID_FIELDS = ("id", "incident_id", "alert_id", "event_id", "uuid", "key")
TITLE_FIELDS = ("title", "summary", "subject", "name", "message", "alert")
DESCRIPTION_FIELDS = ("description", "message", "body", "text", "content", "details")
SEVERITY_FIELDS = ("severity", "priority", "urgency", "level", "status")
STACK_FIELDS = ("stack_trace", "stackTrace", "stack", "backtrace", "traceback")
STACK_CONTAINERS = ("details", "data", "error", "exception")
SERVICE_FIELDS = ("service", "service_name", "serviceName", "app", "application", "component")
TIMESTAMP_FIELDS = ("timestamp", "created_at", "createdAt", "time", "date", "occurred_at")
URL_FIELDS = ("url", "link", "href", "html_url", "web_url", "incident_url")

CRITICAL_KEYWORDS = {"critical", "high", "p1", "emergency", "fatal", "error"}
WARNING_KEYWORDS = {"warning", "medium", "p2", "warn"}
INFO_KEYWORDS = {"info", "low", "p3", "p4", "p5", "debug"}


class GenericWebhookParser(BaseAlertParser):
    """
    Parser for generic webhook alerts.

    Accepts any JSON value. For objects, fields are looked up under a list of
    common names, e.g.:
    {
        "id": "...",
        "title": "Alert Name",
        "severity": "high",
        "description": "...",
        "service": "checkout",
        "timestamp": "2024-01-08T10:30:00Z",
        "tags": ["env:prod"],
        "labels": {...}
    }
    """

    name = AlertSource.GENERIC

    def can_parse(self, payload: Any) -> bool:
        """Generic parser accepts every payload as a fallback."""
        return True

    def parse(self, payload: Any) -> Alert:
        """Parse any payload, falling back to defaults for missing fields."""
        if not isinstance(payload, dict):
            return Alert(
                source=self.name,
                id="",
                title=UNKNOWN_TITLE,
                description=self.render_value(payload),
                severity=Severity.WARNING,
                timestamp=now_iso(),
                raw=payload,
            )

        return Alert(
            source=self.name,
            id=self._extract_id(payload),
            title=self._extract_title(payload),
            description=self._extract_description(payload),
            severity=self._extract_severity(payload),
            stack_trace=self._extract_stack_trace(payload),
            service=self._extract_service(payload),
            timestamp=self._extract_timestamp(payload),
            url=first_str(payload, URL_FIELDS),
            tags=self._extract_tags(payload),
            raw=payload,
        )

    def _extract_id(self, payload: dict[str, Any]) -> str:
        for key in ID_FIELDS:
            value = get_id(payload, key)
            if value:
                return value
        return ""

    def _extract_title(self, payload: dict[str, Any]) -> str:
        return first_str(payload, TITLE_FIELDS) or UNKNOWN_TITLE

    def _extract_description(self, payload: dict[str, Any]) -> str:
        for key in DESCRIPTION_FIELDS:
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            # Nested description object
            if isinstance(value, dict):
                nested = get_str(value, "message") or get_str(value, "text")
                if nested:
                    return nested
        return self._extract_title(payload)

    def _extract_severity(self, payload: dict[str, Any]) -> Severity:
        """Classify the first recognisable severity-like field."""
        for key in SEVERITY_FIELDS:
            value = payload.get(key)
            if not isinstance(value, str):
                continue
            level = value.lower()
            if level in CRITICAL_KEYWORDS:
                return Severity.CRITICAL
            if level in WARNING_KEYWORDS:
                return Severity.WARNING
            if level in INFO_KEYWORDS:
                return Severity.INFO
        return Severity.WARNING

    def _extract_stack_trace(self, payload: dict[str, Any]) -> str | None:
        """Direct fields, then nested containers, then the description text."""
        for key in STACK_FIELDS:
            value = get_str(payload, key)
            if value:
                return value

        for key in STACK_CONTAINERS:
            nested = payload.get(key)
            if isinstance(nested, dict):
                found = self._extract_stack_trace(nested)
                if found:
                    return found

        description = self._extract_description(payload)
        if " at " in description and (":" in description or "(" in description):
            return find_stack_lines(description, min_lines=2, python_frames=True)

        return None

    def _extract_service(self, payload: dict[str, Any]) -> str | None:
        service = first_str(payload, SERVICE_FIELDS)
        if service:
            return service

        nested = payload.get("service")
        if isinstance(nested, dict):
            return get_str(nested, "name")

        return None

    def _extract_timestamp(self, payload: dict[str, Any]) -> str:
        for key in TIMESTAMP_FIELDS:
            value = payload.get(key)
            if isinstance(value, bool):
                continue
            if isinstance(value, (str, int, float)):
                return to_iso_timestamp(value)
        return now_iso()

    def _extract_tags(self, payload: dict[str, Any]) -> dict[str, str]:
        tags: dict[str, str] = {}

        raw_tags = payload.get("tags")
        if isinstance(raw_tags, list):
            # e.g. ["env:prod", "team:backend"]
            tags.update(parse_tag_list(raw_tags))
        elif isinstance(raw_tags, dict):
            tags.update(scalar_items(raw_tags))

        labels = payload.get("labels")
        if isinstance(labels, dict):
            tags.update(scalar_items(labels))

        return tags
