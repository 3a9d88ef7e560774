"""Base parser and the canonical alert record.

Parsers normalize incoming alert webhook payloads from different sources
(PagerDuty, Datadog, CloudWatch, etc.) into a single ``Alert``.

Public API:
- AlertSource
- Severity
- Alert
- BaseAlertParser
"""

from __future__ import annotations

import hashlib
import json
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from datetime import timezone as dt_tz
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

UNKNOWN_TITLE = "Unknown Alert"

# Lines that look like a frame of a JVM/JS ("at foo (file:1)") or Python trace.
STACK_LINE_PATTERNS = (
    re.compile(r" at "),
    re.compile(r"^\s+at\s+"),
)
PYTHON_FRAME_PATTERN = re.compile(r'File ".*", line \d+')


class AlertSource(str, Enum):
    """Origin systems an alert can be normalized from."""

    PAGERDUTY = "pagerduty"
    DATADOG = "datadog"
    CLOUDWATCH = "cloudwatch"
    SENTRY = "sentry"
    OPSGENIE = "opsgenie"
    PROMETHEUS = "prometheus"
    GENERIC = "generic"


class Severity(str, Enum):
    """Three-level severity scale every source is mapped onto."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @classmethod
    def coerce(cls, value: Any) -> "Severity":
        """Return the matching member, defaulting to WARNING."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").lower())
        except ValueError:
            return cls.WARNING


@dataclass(frozen=True)
class Alert:
    """Canonical alert that all parsers produce.

    Instances are immutable. ``__post_init__`` guarantees the required fields
    are populated even if a parser hands over empty values.
    """

    # Required fields
    source: AlertSource
    id: str
    title: str
    description: str
    severity: Severity
    timestamp: str

    # Optional fields
    stack_trace: str | None = None
    service: str | None = None
    url: str | None = None
    tags: Mapping[str, str] = field(default_factory=dict)
    raw: Any = None

    def __post_init__(self) -> None:
        """Fill fallbacks for required fields."""
        title = self.title if isinstance(self.title, str) and self.title else UNKNOWN_TITLE
        object.__setattr__(self, "title", title)

        if not isinstance(self.description, str) or not self.description:
            object.__setattr__(self, "description", title)

        if not self.id:
            object.__setattr__(self, "id", fallback_id())
        elif not isinstance(self.id, str):
            object.__setattr__(self, "id", str(self.id))

        if not self.timestamp:
            object.__setattr__(self, "timestamp", now_iso())

        object.__setattr__(self, "source", AlertSource(self.source))
        object.__setattr__(self, "severity", Severity.coerce(self.severity))
        object.__setattr__(
            self,
            "tags",
            MappingProxyType({str(k): str(v) for k, v in (self.tags or {}).items()}),
        )

        # Optional strings are either present and non-empty or absent.
        for name in ("stack_trace", "service", "url"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, str) or not value):
                object.__setattr__(self, name, None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "stack_trace": self.stack_trace,
            "service": self.service,
            "timestamp": self.timestamp,
            "url": self.url,
            "tags": dict(self.tags),
            "raw": self.raw,
        }


def now_iso() -> str:
    """Current time as an ISO-8601 string."""
    return timezone.now().isoformat()


def fallback_id() -> str:
    """Identifier derived from the current time (epoch milliseconds)."""
    return str(int(time.time() * 1000))


def epoch_to_iso(value: int | float) -> str:
    """Convert a Unix timestamp (seconds or milliseconds) to ISO-8601."""
    try:
        # Handle milliseconds
        if value > 1e12:
            value = value / 1000
        return datetime.fromtimestamp(value, tz=dt_tz.utc).isoformat()
    except (ValueError, OverflowError, OSError):
        return now_iso()


def to_iso_timestamp(value: Any) -> str:
    """Normalize an epoch number or date string; anything else means now."""
    if isinstance(value, bool) or value is None:
        return now_iso()

    if isinstance(value, (int, float)):
        return epoch_to_iso(value)

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.isdigit():
            return epoch_to_iso(int(text))
        try:
            parsed = parse_datetime(text)
            if parsed is None:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return now_iso()
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=dt_tz.utc)
        return parsed.isoformat()

    return now_iso()


def find_stack_lines(text: str, min_lines: int = 1, python_frames: bool = False) -> str | None:
    """Collect trace-looking lines from free text.

    Returns the matching lines joined by newlines when at least ``min_lines``
    of them are found.
    """
    if not text:
        return None
    patterns = list(STACK_LINE_PATTERNS)
    if python_frames:
        patterns.append(PYTHON_FRAME_PATTERN)
    lines = [
        line for line in text.split("\n") if any(p.search(line) for p in patterns)
    ]
    if lines and len(lines) >= min_lines:
        return "\n".join(lines)
    return None


class BaseAlertParser(ABC):
    """Abstract base class for alert source parsers."""

    name: AlertSource = AlertSource.GENERIC

    @abstractmethod
    def can_parse(self, payload: Any) -> bool:
        """Cheap structural check that a payload is from this source.

        Must never raise.
        """

    @abstractmethod
    def parse(self, payload: Any) -> Alert:
        """Parse a payload accepted by ``can_parse`` into an ``Alert``."""

    def generate_fingerprint(self, labels: dict[str, str]) -> str:
        """Generate a stable identifier from sorted label pairs."""
        label_str = ",".join(f"{k}={v}" for k, v in sorted((labels or {}).items()))
        digest = hashlib.sha256(label_str.encode()).hexdigest()[:16]
        return f"{self.name.value}-{digest}"

    @staticmethod
    def render_value(payload: Any) -> str:
        """Render any JSON value as text for use as a description."""
        try:
            return json.dumps(payload, default=str)
        except (TypeError, ValueError):
            return str(payload)
