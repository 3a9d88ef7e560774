"""
Datadog parser.

Handles incoming webhooks from Datadog.
See: https://docs.datadoghq.com/integrations/webhooks/
"""

import re
from typing import Any

from apps.alerts.parsers.base import (
    Alert,
    AlertSource,
    BaseAlertParser,
    Severity,
    find_stack_lines,
    to_iso_timestamp,
)
from apps.alerts.parsers.fields import (
    find_tag_value,
    first_str,
    get_dict,
    get_id,
    get_str,
    parse_tag_list,
    scalar_str,
)

CODE_BLOCK_PATTERN = re.compile(r"```[\s\S]*?```")


class DatadogParser(BaseAlertParser):
    """
    Parser for Datadog webhooks.

    Datadog sends alerts in the following format:
    {
        "id": "...",
        "event_id": "...",
        "title": "...",
        "text": "...",
        "date": 1705312800,
        "alert_type": "error",
        "priority": "normal",
        "tags": ["service:api", "env:prod"],
        "event_msg": "...",
        "url": "...",
        "snapshot_url": "...",
        "org": {"id": 1, "name": "..."}
    }
    """

    name = AlertSource.DATADOG

    # Any of these alongside a string title marks a Datadog payload
    DATADOG_KEYS = ("date", "date_happened", "alert_type")

    def can_parse(self, payload: Any) -> bool:
        """Check if this looks like a Datadog payload."""
        if not isinstance(payload, dict):
            return False
        if not isinstance(payload.get("title"), str):
            return False
        return any(key in payload for key in self.DATADOG_KEYS)

    def parse(self, payload: Any) -> Alert:
        """Parse Datadog webhook payload."""
        title = get_str(payload, "title") or "Datadog Alert"
        text = get_str(payload, "text") or ""

        return Alert(
            source=self.name,
            id=get_id(payload, "id") or get_id(payload, "event_id") or "",
            title=title,
            description=text or get_str(payload, "event_msg") or title,
            severity=self._map_severity(payload),
            stack_trace=self._extract_stack_trace(text),
            service=find_tag_value(payload.get("tags"), "service"),
            timestamp=to_iso_timestamp(payload.get("date") or payload.get("date_happened")),
            url=first_str(payload, ("url", "snapshot_url")),
            tags=self._build_tags(payload),
            raw=payload,
        )

    def _map_severity(self, payload: dict[str, Any]) -> Severity:
        """Map alert_type and priority to severity."""
        alert_type = (get_str(payload, "alert_type") or "").lower()
        priority = (get_str(payload, "priority") or "").lower()

        if alert_type == "error":
            return Severity.CRITICAL
        if alert_type == "warning":
            return Severity.WARNING
        if priority == "low":
            return Severity.INFO
        return Severity.WARNING

    def _extract_stack_trace(self, text: str) -> str | None:
        """Find a stack trace in a fenced code block or inline frame lines."""
        if not text:
            return None

        # Look for code blocks that might contain stack traces
        match = CODE_BLOCK_PATTERN.search(text)
        if match:
            content = match.group(0).replace("```", "").strip()
            if " at " in content or "Traceback" in content:
                return content

        if " at " in text and ":" in text:
            return find_stack_lines(text, min_lines=1)

        return None

    def _build_tags(self, payload: dict[str, Any]) -> dict[str, str]:
        """Parse Datadog tags plus a few top-level fields."""
        tags = parse_tag_list(payload.get("tags"))

        hostname = get_str(payload, "hostname")
        if hostname:
            tags["hostname"] = hostname

        metric = get_str(payload, "alert_metric")
        if metric:
            tags["metric"] = metric

        org_name = scalar_str(get_dict(payload, "org").get("name"))
        if org_name:
            tags["org"] = org_name

        return tags
