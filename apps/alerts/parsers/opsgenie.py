"""
OpsGenie parser.

Handles incoming webhooks from OpsGenie.
See: https://support.atlassian.com/opsgenie/docs/integrate-with-webhook/
"""

from typing import Any

from apps.alerts.parsers.base import (
    Alert,
    AlertSource,
    BaseAlertParser,
    Severity,
    find_stack_lines,
    to_iso_timestamp,
)
from apps.alerts.parsers.exceptions import AlertParseError
from apps.alerts.parsers.fields import (
    find_tag_value,
    get_dict,
    get_id,
    get_list,
    get_str,
    parse_tag_list,
    scalar_str,
)

STACK_DETAIL_KEYS = ("stackTrace", "stack_trace", "stack", "backtrace")


class OpsgenieParser(BaseAlertParser):
    """
    Parser for OpsGenie webhooks.

    OpsGenie sends alerts in the following format:
    {
        "action": "Create",
        "alert": {
            "alertId": "...",
            "message": "...",
            "description": "...",
            "priority": "P1",
            "source": "...",
            "tags": [...],
            "details": {...},
            "createdAt": 1234567890123,
            "tinyId": "..."
        },
        "source": {"name": "...", "type": "..."},
        "integrationId": "...",
        "integrationName": "..."
    }
    """

    name = AlertSource.OPSGENIE

    SEVERITY_MAP = {
        "P1": Severity.CRITICAL,
        "P2": Severity.CRITICAL,
        "P3": Severity.WARNING,
    }

    DETAIL_URL = "https://app.opsgenie.com/alert/detail/{alert_id}/details"

    def can_parse(self, payload: Any) -> bool:
        """OpsGenie webhooks carry an alert object with alertId and message."""
        if not isinstance(payload, dict):
            return False
        alert = payload.get("alert")
        return isinstance(alert, dict) and "alertId" in alert and "message" in alert

    def parse(self, payload: Any) -> Alert:
        """Parse OpsGenie webhook payload."""
        alert = payload.get("alert") if isinstance(payload, dict) else None
        if not isinstance(alert, dict):
            raise AlertParseError("OpsGenie webhook missing alert object")

        alert_id = get_id(alert, "alertId") or ""
        message = get_str(alert, "message") or "OpsGenie Alert"
        description = get_str(alert, "description")
        priority = (get_str(alert, "priority") or "").upper()

        url = None
        if get_str(alert, "tinyId") and alert_id:
            url = self.DETAIL_URL.format(alert_id=alert_id)

        return Alert(
            source=self.name,
            id=alert_id,
            title=message,
            description=description or message,
            severity=self.SEVERITY_MAP.get(priority, Severity.INFO),
            stack_trace=self._extract_stack_trace(get_dict(alert, "details"), description),
            service=self._extract_service(payload, alert),
            timestamp=to_iso_timestamp(alert.get("createdAt")),
            url=url,
            tags=self._build_tags(payload, alert),
            raw=payload,
        )

    def _extract_stack_trace(
        self, details: dict[str, Any], description: str | None
    ) -> str | None:
        """Look in details first, then for frame lines in the description."""
        for key in STACK_DETAIL_KEYS:
            value = get_str(details, key)
            if value:
                return value

        if description and " at " in description and ":" in description:
            return find_stack_lines(description, min_lines=3)

        return None

    def _extract_service(self, payload: dict[str, Any], alert: dict[str, Any]) -> str | None:
        """Service comes from source name, integration name, or a service tag."""
        return (
            get_str(get_dict(payload, "source"), "name")
            or get_str(payload, "integrationName")
            or find_tag_value(get_list(alert, "tags"), "service")
        )

    def _build_tags(self, payload: dict[str, Any], alert: dict[str, Any]) -> dict[str, str]:
        tags: dict[str, str] = {}

        priority = get_str(alert, "priority")
        if priority:
            tags["priority"] = priority
        alert_source = get_str(alert, "source")
        if alert_source:
            tags["alert_source"] = alert_source
        tiny_id = scalar_str(alert.get("tinyId"))
        if tiny_id:
            tags["tiny_id"] = tiny_id
        integration = get_str(payload, "integrationName")
        if integration:
            tags["integration"] = integration
        action = get_str(payload, "action")
        if action:
            tags["action"] = action

        tags.update(parse_tag_list(get_list(alert, "tags")))

        for key, value in get_dict(alert, "details").items():
            if key in STACK_DETAIL_KEYS:
                continue
            text = scalar_str(value)
            if text is not None:
                tags[f"detail:{key}"] = text

        return tags
