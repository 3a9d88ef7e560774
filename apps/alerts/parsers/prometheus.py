"""
Prometheus AlertManager parser.

Handles incoming webhooks from Prometheus AlertManager.
See: https://prometheus.io/docs/alerting/latest/configuration/#webhook_config
"""

from typing import Any

from apps.alerts.parsers.base import (
    Alert,
    AlertSource,
    BaseAlertParser,
    Severity,
    to_iso_timestamp,
)
from apps.alerts.parsers.exceptions import EmptyPayloadError
from apps.alerts.parsers.fields import first_str, get_dict, get_list, get_str, scalar_items


class PrometheusParser(BaseAlertParser):
    """
    Parser for Prometheus AlertManager webhooks.

    AlertManager sends alerts in the following format:
    {
        "version": "4",
        "groupKey": "...",
        "receiver": "webhook",
        "status": "firing",
        "alerts": [
            {
                "status": "firing",
                "labels": {...},
                "annotations": {...},
                "startsAt": "...",
                "generatorURL": "...",
                "fingerprint": "..."
            }
        ],
        "groupLabels": {...},
        "commonLabels": {...},
        "commonAnnotations": {...},
        "externalURL": "..."
    }

    Only one alert is normalized per payload: the first firing one, or the
    first alert if none is firing.
    """

    name = AlertSource.PROMETHEUS

    # Labels that identify the affected service, in priority order
    SERVICE_LABELS = (
        "service",
        "job",
        "app",
        "application",
        "deployment",
        "container",
        "namespace",
    )

    CRITICAL_LEVELS = {"critical", "page", "pager"}
    WARNING_LEVELS = {"warning", "warn"}

    def can_parse(self, payload: Any) -> bool:
        """AlertManager payloads have an alerts list and a firing/resolved status."""
        if not isinstance(payload, dict):
            return False
        return isinstance(payload.get("alerts"), list) and payload.get("status") in (
            "firing",
            "resolved",
        )

    def parse(self, payload: Any) -> Alert:
        """Parse AlertManager webhook payload."""
        alerts = [a for a in get_list(payload, "alerts") if isinstance(a, dict)]
        if not alerts:
            raise EmptyPayloadError("Prometheus webhook contains no alerts")

        alert_data = next((a for a in alerts if a.get("status") == "firing"), alerts[0])

        labels = scalar_items(get_dict(alert_data, "labels"))
        annotations = scalar_items(get_dict(alert_data, "annotations"))
        common_labels = scalar_items(get_dict(payload, "commonLabels"))
        common_annotations = scalar_items(get_dict(payload, "commonAnnotations"))

        title = self._get_title(labels, annotations, common_labels)
        status = get_str(alert_data, "status") or get_str(payload, "status") or "firing"

        return Alert(
            source=self.name,
            id=get_str(alert_data, "fingerprint") or self.generate_fingerprint(labels),
            title=title,
            description=self._get_description(annotations, common_annotations, title),
            severity=self._get_severity(labels, common_labels, status),
            service=self._get_service(labels, common_labels),
            timestamp=to_iso_timestamp(alert_data.get("startsAt")),
            url=get_str(alert_data, "generatorURL") or get_str(payload, "externalURL"),
            tags=self._build_tags(payload, labels, status, len(alerts)),
            raw=payload,
        )

    def _get_title(
        self,
        labels: dict[str, str],
        annotations: dict[str, str],
        common_labels: dict[str, str],
    ) -> str:
        return (
            labels.get("alertname")
            or common_labels.get("alertname")
            or annotations.get("summary")
            or "Unknown Prometheus Alert"
        )

    def _get_description(
        self,
        annotations: dict[str, str],
        common_annotations: dict[str, str],
        title: str,
    ) -> str:
        parts: list[str] = []

        description = first_str(annotations, ("description",)) or first_str(
            common_annotations, ("description",)
        )
        if description:
            parts.append(description)

        # Add summary if different from description
        summary = annotations.get("summary")
        if summary and summary not in parts:
            parts.append(summary)

        message = annotations.get("message")
        if message:
            parts.append(message)

        return "\n\n".join(parts) if parts else title

    def _get_severity(
        self,
        labels: dict[str, str],
        common_labels: dict[str, str],
        status: str,
    ) -> Severity:
        level = (labels.get("severity") or common_labels.get("severity") or "").lower()
        if level in self.CRITICAL_LEVELS:
            return Severity.CRITICAL
        if level in self.WARNING_LEVELS:
            return Severity.WARNING
        # Unlabelled firing alerts still need attention
        return Severity.WARNING if status == "firing" else Severity.INFO

    def _get_service(self, labels: dict[str, str], common_labels: dict[str, str]) -> str | None:
        for label in self.SERVICE_LABELS:
            if labels.get(label):
                return labels[label]
            if common_labels.get(label):
                return common_labels[label]
        return None

    def _build_tags(
        self,
        payload: dict[str, Any],
        labels: dict[str, str],
        status: str,
        alert_count: int,
    ) -> dict[str, str]:
        tags = dict(labels)

        for key, value in scalar_items(get_dict(payload, "groupLabels")).items():
            tags[f"group:{key}"] = value

        tags["status"] = status

        receiver = get_str(payload, "receiver")
        if receiver:
            tags["receiver"] = receiver

        if alert_count > 1:
            tags["alert_count"] = str(alert_count)

        return tags
