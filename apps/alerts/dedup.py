"""
Duplicate detection for normalized alerts.

Candidates are recent open tracking records carrying the tracking label.
Each is scored with a weighted mix of title, stack trace and body
similarity; those at or above the threshold are reported as duplicates.

Records are fetched through an injected listing callable so the detector
stays independent of where records live (see ``apps.alerts.store``).
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from apps.alerts.parsers import Alert
from apps.alerts.similarity import DEFAULT_MIN_TOKEN_LENGTH, jaccard_similarity

logger = logging.getLogger(__name__)

CODE_BLOCK_PATTERN = re.compile(r"```[\s\S]*?```")
OPENING_FENCE_PATTERN = re.compile(r"\A```\w*\n")


@dataclass(frozen=True)
class TrackingRecord:
    """A tracked issue as seen by the detector."""

    number: int
    title: str
    body: str | None
    state: str
    created_at: str


@dataclass
class DuplicateMatch:
    """A tracking record judged similar enough to an alert."""

    number: int
    title: str
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {"number": self.number, "title": self.title, "similarity": self.similarity}


@dataclass
class ProcessedCheck:
    processed: bool
    record_number: int | None = None


class RecordLister(Protocol):
    def __call__(
        self,
        *,
        labels: list[str],
        state: str,
        since: str | None,
        per_page: int,
    ) -> Sequence[TrackingRecord]: ...


@dataclass(frozen=True)
class SimilarityWeights:
    """Weights of the composite score. Each variant sums to 1."""

    title: float = 0.5
    stack: float = 0.3
    body_with_stack: float = 0.2
    body: float = 0.5

    def __post_init__(self) -> None:
        for name in ("title", "stack", "body_with_stack", "body"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ImproperlyConfigured(
                    f"ALERT_DEDUPLICATION['weights']['{name}'] must be a number"
                )
            if not 0.0 <= value <= 1.0:
                raise ImproperlyConfigured(
                    f"ALERT_DEDUPLICATION['weights']['{name}'] must be between 0 and 1"
                )

        with_stack = self.title + self.stack + self.body_with_stack
        without_stack = self.title + self.body
        if not math.isclose(with_stack, 1.0) or not math.isclose(without_stack, 1.0):
            raise ImproperlyConfigured(
                "ALERT_DEDUPLICATION['weights'] must sum to 1 both with a stack trace "
                f"(title + stack + body_with_stack = {with_stack:g}) and without one "
                f"(title + body = {without_stack:g})"
            )


@dataclass
class DeduplicationConfig:
    """Tunables for duplicate detection."""

    enabled: bool = True
    similarity_threshold: float = 0.7
    lookback_hours: int = 24
    tracking_label: str = "oncall-agent"
    candidate_limit: int = 50
    processed_check_limit: int = 100
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH
    weights: SimilarityWeights = field(default_factory=SimilarityWeights)

    def __post_init__(self) -> None:
        if not isinstance(self.enabled, bool):
            raise ImproperlyConfigured("ALERT_DEDUPLICATION['enabled'] must be a boolean")
        if not 0.0 <= float(self.similarity_threshold) <= 1.0:
            raise ImproperlyConfigured(
                "ALERT_DEDUPLICATION['similarity_threshold'] must be between 0 and 1"
            )
        for name in (
            "lookback_hours",
            "candidate_limit",
            "processed_check_limit",
            "min_token_length",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ImproperlyConfigured(
                    f"ALERT_DEDUPLICATION['{name}'] must be a positive integer"
                )
        if not isinstance(self.tracking_label, str) or not self.tracking_label:
            raise ImproperlyConfigured(
                "ALERT_DEDUPLICATION['tracking_label'] must be a non-empty string"
            )

    @classmethod
    def from_settings(cls, overrides: Mapping[str, Any] | None = None) -> "DeduplicationConfig":
        """
        Build the config from the ``ALERT_DEDUPLICATION`` Django setting.

        Unknown keys are rejected. ``overrides`` take precedence over settings.

        Raises:
            ImproperlyConfigured: If a value has the wrong type or range.
        """
        values: dict[str, Any] = dict(getattr(settings, "ALERT_DEDUPLICATION", None) or {})
        values.update(overrides or {})

        known = {f for f in cls.__dataclass_fields__ if f != "weights"}
        unknown = set(values) - known - {"weights"}
        if unknown:
            raise ImproperlyConfigured(
                f"Unknown ALERT_DEDUPLICATION keys: {', '.join(sorted(unknown))}"
            )

        weights = values.pop("weights", None)
        if weights is not None and not isinstance(weights, SimilarityWeights):
            try:
                weights = SimilarityWeights(**weights)
            except TypeError as e:
                raise ImproperlyConfigured(f"Invalid ALERT_DEDUPLICATION['weights']: {e}") from e

        try:
            threshold = float(values.get("similarity_threshold", cls.similarity_threshold))
        except (TypeError, ValueError) as e:
            raise ImproperlyConfigured(
                "ALERT_DEDUPLICATION['similarity_threshold'] must be a number"
            ) from e
        values["similarity_threshold"] = threshold

        if weights is not None:
            values["weights"] = weights
        return cls(**values)


def extract_code_block(body: str | None) -> str | None:
    """Return the contents of the first fenced code block in ``body``."""
    if not body:
        return None
    match = CODE_BLOCK_PATTERN.search(body)
    if not match:
        return None
    block = OPENING_FENCE_PATTERN.sub("", match.group(0), count=1)
    return block.replace("```", "").strip()


def calculate_similarity(
    alert: Alert,
    title: str,
    body: str | None,
    weights: SimilarityWeights | None = None,
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH,
) -> float:
    """
    Composite similarity between an alert and a tracking record.

    With a stack trace on the alert: title, stack and body are weighted
    (0.5 / 0.3 / 0.2 by default); the stack is compared to the first code
    block in the record body. Without one: title and body at 0.5 each.
    """
    weights = weights or SimilarityWeights()

    score = weights.title * jaccard_similarity(alert.title, title, min_token_length)

    if alert.stack_trace:
        record_stack = extract_code_block(body)
        if record_stack:
            score += weights.stack * jaccard_similarity(
                alert.stack_trace, record_stack, min_token_length
            )
        body_weight = weights.body_with_stack
    else:
        body_weight = weights.body

    if body:
        score += body_weight * jaccard_similarity(alert.description, body, min_token_length)

    return score


class DuplicateDetector:
    """
    Finds tracking records that duplicate an incoming alert.

    Usage:
        detector = DuplicateDetector(store.list_recent_records)
        matches = detector.find_duplicates(alert)
    """

    def __init__(
        self,
        list_records: RecordLister | Callable[..., Sequence[TrackingRecord]],
        config: DeduplicationConfig | None = None,
    ):
        self.list_records = list_records
        self.config = config or DeduplicationConfig()

    def find_duplicates(self, alert: Alert) -> list[DuplicateMatch]:
        """Return matching open records, most similar first."""
        if not self.config.enabled:
            return []

        since = timezone.now() - timedelta(hours=self.config.lookback_hours)
        records = self.list_records(
            labels=[self.config.tracking_label],
            state="open",
            since=since.isoformat(),
            per_page=self.config.candidate_limit,
        )

        matches: list[DuplicateMatch] = []
        for record in records:
            similarity = calculate_similarity(
                alert,
                record.title,
                record.body,
                self.config.weights,
                self.config.min_token_length,
            )
            if similarity >= self.config.similarity_threshold:
                matches.append(
                    DuplicateMatch(number=record.number, title=record.title, similarity=similarity)
                )

        matches.sort(key=lambda m: m.similarity, reverse=True)

        if matches:
            logger.info(
                f"Alert {alert.id} matches {len(matches)} tracked record(s); "
                f"best #{matches[0].number} ({matches[0].similarity:.2f})"
            )
        return matches

    def is_alert_processed(self, alert: Alert) -> ProcessedCheck:
        """Check whether an open record already mentions this alert's id."""
        if not self.config.enabled:
            return ProcessedCheck(processed=False)

        records = self.list_records(
            labels=[self.config.tracking_label],
            state="open",
            since=None,
            per_page=self.config.processed_check_limit,
        )
        for record in records:
            if alert.id in record.title or (record.body and alert.id in record.body):
                return ProcessedCheck(processed=True, record_number=record.number)
        return ProcessedCheck(processed=False)
