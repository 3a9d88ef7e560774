"""
Sentry parser.

Handles issue/event alert webhooks from Sentry integrations.
See: https://docs.sentry.io/organization/integrations/integration-platform/webhooks/
"""

from typing import Any

from apps.alerts.parsers.base import (
    Alert,
    AlertSource,
    BaseAlertParser,
    Severity,
    to_iso_timestamp,
)
from apps.alerts.parsers.fields import get_dict, get_id, get_list, get_str, scalar_str

MAX_FRAMES = 20


class SentryParser(BaseAlertParser):
    """
    Parser for Sentry webhooks.

    Sentry sends alerts in the following format:
    {
        "action": "triggered",
        "data": {
            "event": {
                "event_id": "...",
                "title": "...",
                "message": "...",
                "level": "error",
                "platform": "python",
                "timestamp": 1705312800.0,
                "tags": [["environment", "production"]],
                "exception": {
                    "values": [
                        {
                            "type": "ValueError",
                            "value": "...",
                            "stacktrace": {"frames": [{"filename": "...", "function": "...", "lineno": 1}]}
                        }
                    ]
                }
            },
            "issue": {
                "id": "...",
                "title": "...",
                "shortId": "PROJ-1",
                "project": {"slug": "...", "name": "..."}
            }
        }
    }
    """

    name = AlertSource.SENTRY

    SEVERITY_MAP = {
        "fatal": Severity.CRITICAL,
        "error": Severity.CRITICAL,
        "warning": Severity.WARNING,
    }

    def can_parse(self, payload: Any) -> bool:
        """Sentry webhooks carry a data object with an event or issue."""
        if not isinstance(payload, dict):
            return False
        data = payload.get("data")
        return isinstance(data, dict) and ("event" in data or "issue" in data)

    def parse(self, payload: Any) -> Alert:
        """Parse Sentry webhook payload."""
        data = get_dict(payload, "data")
        event = get_dict(data, "event")
        issue = get_dict(data, "issue")
        project = get_dict(issue, "project")

        level = (get_str(event, "level") or "").lower()

        return Alert(
            source=self.name,
            id=get_id(event, "event_id") or get_id(issue, "id") or "",
            title=get_str(event, "title") or get_str(issue, "title") or "Unknown Sentry Error",
            description=self._build_description(event, issue),
            severity=self.SEVERITY_MAP.get(level, Severity.INFO),
            stack_trace=self._extract_stack_trace(event),
            service=get_str(project, "name") or get_str(project, "slug"),
            timestamp=to_iso_timestamp(event.get("timestamp")),
            url=self._build_url(event, issue),
            tags=self._extract_tags(payload, event, issue),
            raw=payload,
        )

    def _exceptions(self, event: dict[str, Any]) -> list[dict[str, Any]]:
        values = get_list(get_dict(event, "exception"), "values")
        return [exc for exc in values if isinstance(exc, dict)]

    def _build_description(self, event: dict[str, Any], issue: dict[str, Any]) -> str:
        """Combine the event message with each exception's type and value."""
        parts: list[str] = []

        message = get_str(event, "message")
        if message:
            parts.append(message)

        for exc in self._exceptions(event):
            exc_type = get_str(exc, "type")
            exc_value = get_str(exc, "value")
            if exc_type and exc_value:
                parts.append(f"{exc_type}: {exc_value}")

        if not parts and get_str(issue, "title"):
            parts.append(issue["title"])

        return "\n\n".join(parts) or "No description available"

    def _extract_stack_trace(self, event: dict[str, Any]) -> str | None:
        """Render exception frames, most recent call first."""
        lines: list[str] = []
        for exc in self._exceptions(event):
            exc_type = get_str(exc, "type")
            exc_value = get_str(exc, "value")
            if exc_type and exc_value:
                lines.append(f"{exc_type}: {exc_value}")

            frames = get_list(get_dict(exc, "stacktrace"), "frames")
            # Sentry orders frames oldest first
            for frame in list(reversed(frames))[:MAX_FRAMES]:
                if not isinstance(frame, dict):
                    continue
                location = ":".join(
                    part
                    for part in (get_str(frame, "filename"), scalar_str(frame.get("lineno")))
                    if part
                )
                function = get_str(frame, "function") or "<anonymous>"
                lines.append(f"    at {function} ({location})")

        return "\n".join(lines) if lines else None

    def _build_url(self, event: dict[str, Any], issue: dict[str, Any]) -> str | None:
        url = get_str(issue, "permalink") or get_str(event, "web_url")
        if url:
            return url
        issue_id = get_id(issue, "id")
        if issue_id and get_str(issue, "shortId"):
            return f"https://sentry.io/issues/{issue_id}/"
        return None

    def _extract_tags(
        self,
        payload: dict[str, Any],
        event: dict[str, Any],
        issue: dict[str, Any],
    ) -> dict[str, str]:
        tags: dict[str, str] = {}

        platform = get_str(event, "platform")
        if platform:
            tags["platform"] = platform

        # Event tags come as [key, value] pairs or {"key": ..., "value": ...}
        for tag in get_list(event, "tags"):
            if isinstance(tag, dict):
                key, value = tag.get("key"), tag.get("value")
            elif isinstance(tag, list) and len(tag) == 2:
                key, value = tag
            else:
                continue
            key_text, value_text = scalar_str(key), scalar_str(value)
            if key_text and value_text is not None:
                tags[key_text] = value_text

        short_id = get_str(issue, "shortId")
        if short_id:
            tags["issue_id"] = short_id

        slug = get_str(get_dict(issue, "project"), "slug")
        if slug:
            tags["project"] = slug

        action = get_str(payload, "action")
        if action:
            tags["action"] = action

        return tags
