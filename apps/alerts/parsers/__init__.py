"""
Alert parsers for normalizing webhooks from various monitoring sources.
"""

from typing import Any

from apps.alerts.parsers.base import Alert, AlertSource, BaseAlertParser, Severity
from apps.alerts.parsers.cloudwatch import CloudWatchParser
from apps.alerts.parsers.datadog import DatadogParser
from apps.alerts.parsers.exceptions import (
    AlertParseError,
    EmptyPayloadError,
    SourceMismatchError,
    UnknownSourceError,
)
from apps.alerts.parsers.generic import GenericWebhookParser
from apps.alerts.parsers.opsgenie import OpsgenieParser
from apps.alerts.parsers.pagerduty import PagerDutyParser
from apps.alerts.parsers.prometheus import PrometheusParser
from apps.alerts.parsers.sentry import SentryParser

__all__ = [
    "Alert",
    "AlertSource",
    "BaseAlertParser",
    "Severity",
    "AlertParseError",
    "EmptyPayloadError",
    "SourceMismatchError",
    "UnknownSourceError",
    "CloudWatchParser",
    "DatadogParser",
    "GenericWebhookParser",
    "OpsgenieParser",
    "PagerDutyParser",
    "PrometheusParser",
    "SentryParser",
    "PARSER_REGISTRY",
    "get_parser",
    "detect_parser",
    "parse_alert",
]

# Registry of available parsers (order matters for detection).
# Datadog's shape check is the loosest of the specific formats, so it runs
# after the formats with a nested envelope.
PARSER_REGISTRY: dict[str, type[BaseAlertParser]] = {
    "pagerduty": PagerDutyParser,
    "cloudwatch": CloudWatchParser,
    "sentry": SentryParser,
    "opsgenie": OpsgenieParser,
    "prometheus": PrometheusParser,
    "datadog": DatadogParser,
    "generic": GenericWebhookParser,
}


def get_parser(name: str) -> BaseAlertParser:
    """
    Get a parser instance by source name.

    Args:
        name: Source name (e.g., "pagerduty", "sentry", "generic").

    Returns:
        Parser instance.

    Raises:
        UnknownSourceError: If the source name is not registered.
    """
    if name not in PARSER_REGISTRY:
        raise UnknownSourceError(
            f"Unknown alert source: {name}. Available: {', '.join(PARSER_REGISTRY.keys())}"
        )
    return PARSER_REGISTRY[name]()


def detect_parser(payload: Any) -> BaseAlertParser:
    """
    Auto-detect the appropriate parser for a payload.

    Tries each parser's can_parse() in registry order and returns the first
    match. The generic parser accepts everything, so detection never fails.
    """
    for name, parser_class in PARSER_REGISTRY.items():
        if name == "generic":
            continue  # Try generic last
        parser = parser_class()
        if parser.can_parse(payload):
            return parser

    return GenericWebhookParser()


def parse_alert(payload: Any, source: str = "auto") -> Alert:
    """
    Normalize a raw webhook payload into an Alert.

    Args:
        payload: Deserialized webhook body (any JSON value).
        source: Registered source name, or "auto" to detect it.

    Raises:
        UnknownSourceError: If ``source`` names no registered parser.
        SourceMismatchError: If the named parser does not recognise the payload.
        AlertParseError: If the payload has the right shape but cannot be normalized.
    """
    if source == "auto":
        parser = detect_parser(payload)
    else:
        parser = get_parser(source)
        if not parser.can_parse(payload):
            raise SourceMismatchError(f"Parser {source} cannot parse the given payload")

    return parser.parse(payload)
