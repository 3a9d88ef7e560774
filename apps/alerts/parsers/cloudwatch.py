"""
AWS CloudWatch parser.

Handles CloudWatch alarm state changes, either wrapped in an SNS notification
envelope or posted directly.
See: https://docs.aws.amazon.com/AmazonCloudWatch/latest/monitoring/AlarmThatSendsEmail.html
"""

import json
import logging
from typing import Any
from urllib.parse import quote

from apps.alerts.parsers.base import (
    Alert,
    AlertSource,
    BaseAlertParser,
    Severity,
    to_iso_timestamp,
)
from apps.alerts.parsers.fields import get_dict, get_list, get_str, scalar_str

logger = logging.getLogger(__name__)


class CloudWatchParser(BaseAlertParser):
    """
    Parser for CloudWatch alarms delivered via SNS.

    SNS wraps the alarm as a JSON string:
    {
        "Type": "Notification",
        "MessageId": "...",
        "TopicArn": "...",
        "Timestamp": "...",
        "Message": "{\\"AlarmName\\": \\"...\\", \\"NewStateValue\\": \\"ALARM\\", ...}"
    }

    The decoded alarm:
    {
        "AlarmName": "...",
        "AlarmDescription": "...",
        "NewStateValue": "ALARM",
        "NewStateReason": "...",
        "StateChangeTime": "...",
        "Region": "us-east-1",
        "AWSAccountId": "...",
        "Trigger": {
            "MetricName": "...",
            "Namespace": "...",
            "Dimensions": [{"name": "...", "value": "..."}]
        }
    }
    """

    name = AlertSource.CLOUDWATCH

    # Dimension names that identify the affected service, in priority order
    SERVICE_DIMENSIONS = (
        "ServiceName",
        "FunctionName",
        "TableName",
        "QueueName",
        "ClusterName",
        "DBInstanceIdentifier",
        "LoadBalancerName",
        "TargetGroup",
        "AutoScalingGroupName",
    )

    SEVERITY_MAP = {
        "ALARM": Severity.CRITICAL,
        "INSUFFICIENT_DATA": Severity.WARNING,
    }

    CONSOLE_URL = "https://console.aws.amazon.com/cloudwatch/home?region={region}#alarmsV2:alarm/{name}"

    def can_parse(self, payload: Any) -> bool:
        """Check for an SNS-wrapped or bare CloudWatch alarm."""
        if not isinstance(payload, dict):
            return False

        if "Type" in payload and isinstance(payload.get("Message"), str):
            return self._is_alarm(self._decode_message(payload["Message"]))

        return self._is_alarm(payload)

    def parse(self, payload: Any) -> Alert:
        """Parse a CloudWatch alarm payload."""
        sns_timestamp = None
        alarm: dict[str, Any] = payload if isinstance(payload, dict) else {}

        # Handle SNS wrapper
        if "Type" in alarm and isinstance(alarm.get("Message"), str):
            sns_timestamp = get_str(alarm, "Timestamp")
            alarm = self._decode_message(alarm["Message"]) or {}

        name = scalar_str(alarm.get("AlarmName")) or "Unknown CloudWatch Alarm"
        trigger = get_dict(alarm, "Trigger")
        dimensions = self._dimensions(trigger)
        state = get_str(alarm, "NewStateValue") or ""

        return Alert(
            source=self.name,
            id=name,
            title=name,
            description=(
                get_str(alarm, "AlarmDescription") or get_str(alarm, "NewStateReason") or name
            ),
            severity=self.SEVERITY_MAP.get(state, Severity.INFO),
            service=self._extract_service(dimensions),
            timestamp=to_iso_timestamp(get_str(alarm, "StateChangeTime") or sns_timestamp),
            url=self._build_url(alarm, name),
            tags=self._build_tags(alarm, trigger, dimensions, state),
            raw=payload,
        )

    def _decode_message(self, message: str) -> dict[str, Any] | None:
        """Decode the SNS Message string."""
        try:
            decoded = json.loads(message)
        except (ValueError, TypeError):
            logger.debug("SNS Message is not JSON; not a CloudWatch alarm")
            return None
        return decoded if isinstance(decoded, dict) else None

    @staticmethod
    def _is_alarm(obj: Any) -> bool:
        return isinstance(obj, dict) and "AlarmName" in obj and "NewStateValue" in obj

    def _dimensions(self, trigger: dict[str, Any]) -> dict[str, str]:
        """Flatten trigger dimensions to name -> value.

        SNS alarms use lowercase ``name``/``value`` keys; some integrations
        forward them capitalised.
        """
        dimensions: dict[str, str] = {}
        for dim in get_list(trigger, "Dimensions"):
            if not isinstance(dim, dict):
                continue
            name = get_str(dim, "name") or get_str(dim, "Name")
            value = scalar_str(dim.get("value", dim.get("Value")))
            if name and value is not None:
                dimensions[name] = value
        return dimensions

    def _extract_service(self, dimensions: dict[str, str]) -> str | None:
        for key in self.SERVICE_DIMENSIONS:
            if dimensions.get(key):
                return dimensions[key]
        return None

    def _build_url(self, alarm: dict[str, Any], name: str) -> str | None:
        region = get_str(alarm, "Region")
        if not region or not get_str(alarm, "AlarmName"):
            return None
        # SNS reports a display name ("US East (N. Virginia)") rather than a region code
        if " " in region:
            return None
        return self.CONSOLE_URL.format(region=region, name=quote(name, safe=""))

    def _build_tags(
        self,
        alarm: dict[str, Any],
        trigger: dict[str, Any],
        dimensions: dict[str, str],
        state: str,
    ) -> dict[str, str]:
        """Build tags from trigger info."""
        tags: dict[str, str] = {}

        metric = get_str(trigger, "MetricName")
        if metric:
            tags["metric"] = metric
        namespace = get_str(trigger, "Namespace")
        if namespace:
            tags["namespace"] = namespace

        region = get_str(alarm, "Region")
        if region:
            tags["region"] = region
        account = scalar_str(alarm.get("AWSAccountId"))
        if account:
            tags["account"] = account
        if state:
            tags["state"] = state

        for dim_name, dim_value in dimensions.items():
            tags[f"dimension:{dim_name}"] = dim_value

        return tags
