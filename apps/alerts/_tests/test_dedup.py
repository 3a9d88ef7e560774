from datetime import datetime, timedelta
from datetime import timezone as dt_tz
from unittest.mock import patch

from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from apps.alerts.dedup import (
    DeduplicationConfig,
    DuplicateDetector,
    DuplicateMatch,
    SimilarityWeights,
    TrackingRecord,
    calculate_similarity,
    extract_code_block,
)
from apps.alerts.parsers import Alert, AlertSource, Severity

STACK = "NullPointerException\n    at UserController.getUser(UserController.java:42)"


def make_alert(title="Database connection timeout", description=None, stack_trace=None, id="A-1"):
    return Alert(
        source=AlertSource.GENERIC,
        id=id,
        title=title,
        description=description or title,
        severity=Severity.CRITICAL,
        timestamp="2024-01-15T10:00:00+00:00",
        stack_trace=stack_trace,
    )


def make_record(number, title, body=None, state="open"):
    return TrackingRecord(
        number=number,
        title=title,
        body=body,
        state=state,
        created_at="2024-01-15T09:00:00+00:00",
    )


class FakeLister:
    """Record lister that returns canned records and remembers its calls."""

    def __init__(self, records=()):
        self.records = list(records)
        self.calls = []

    def __call__(self, *, labels, state, since, per_page):
        self.calls.append({"labels": labels, "state": state, "since": since, "per_page": per_page})
        return self.records[:per_page]


class ExtractCodeBlockTests(SimpleTestCase):
    def test_first_block_without_fences(self):
        body = "intro\n```java\nfirst trace\n```\nmore\n```\nsecond\n```"
        self.assertEqual(extract_code_block(body), "first trace")

    def test_inline_block_keeps_first_word(self):
        body = "see ```NullPointerException at UserController.java:42``` above"
        self.assertEqual(
            extract_code_block(body), "NullPointerException at UserController.java:42"
        )

    def test_no_block(self):
        self.assertIsNone(extract_code_block("no fences here"))
        self.assertIsNone(extract_code_block(None))


class CalculateSimilarityTests(SimpleTestCase):
    def test_default_weights_are_pinned(self):
        weights = SimilarityWeights()
        self.assertEqual(
            (weights.title, weights.stack, weights.body_with_stack, weights.body),
            (0.5, 0.3, 0.2, 0.5),
        )
        self.assertEqual(DeduplicationConfig().similarity_threshold, 0.7)
        self.assertEqual(DeduplicationConfig().min_token_length, 3)

    def test_identical_title_and_body_score_one(self):
        alert = make_alert(description="Connection pool exhausted on primary")
        score = calculate_similarity(alert, alert.title, "Connection pool exhausted on primary")
        self.assertEqual(score, 1.0)

    def test_no_shared_vocabulary(self):
        alert = make_alert()
        score = calculate_similarity(alert, "Certificate expired", "TLS handshake failing")
        self.assertLess(score, 0.3)
        self.assertEqual(score, 0.0)

    def test_title_only_match_without_body(self):
        alert = make_alert()
        self.assertEqual(calculate_similarity(alert, alert.title, None), 0.5)

    def test_stack_trace_weighting_takes_effect(self):
        alert = make_alert(description="User lookup failed", stack_trace=STACK)
        with_trace = calculate_similarity(alert, alert.title, f"Unrelated words\n```\n{STACK}\n```")
        title_only = calculate_similarity(alert, alert.title, "Unrelated words")

        self.assertGreater(with_trace, title_only)
        self.assertAlmostEqual(with_trace - title_only, 0.3, places=6)

    def test_stack_alert_against_body_without_block(self):
        alert = make_alert(description="User lookup failed", stack_trace=STACK)
        score = calculate_similarity(alert, alert.title, "User lookup failed")
        # title 0.5 + body 0.2, no stack contribution
        self.assertAlmostEqual(score, 0.7, places=6)

    def test_full_match_with_stack_never_exceeds_one(self):
        alert = make_alert(description="User lookup failed", stack_trace=STACK)
        body = f"User lookup failed\n```\n{STACK}\n```"
        weights = SimilarityWeights(title=0.6, stack=0.3, body_with_stack=0.1, body=0.4)

        score = calculate_similarity(alert, alert.title, body, weights)
        self.assertLessEqual(score, 1.0)
        self.assertGreater(score, 0.9)

    def test_custom_weights(self):
        alert = make_alert()
        weights = SimilarityWeights(title=1.0, stack=0.0, body_with_stack=0.0, body=0.0)
        self.assertEqual(calculate_similarity(alert, alert.title, "other text", weights), 1.0)


class DuplicateDetectorTests(SimpleTestCase):
    def test_matches_sorted_by_similarity(self):
        alert = make_alert(description="Connection pool exhausted on primary")
        lister = FakeLister(
            [
                make_record(1, "Database connection timeout", "Disk almost full"),
                make_record(2, "Database connection timeout", "Connection pool exhausted on primary"),
                make_record(3, "Certificate expired", "TLS handshake failing"),
            ]
        )
        matches = DuplicateDetector(lister).find_duplicates(alert)

        self.assertEqual([m.number for m in matches], [2])
        self.assertEqual(matches[0].similarity, 1.0)
        self.assertEqual(
            matches[0].to_dict(),
            {"number": 2, "title": "Database connection timeout", "similarity": 1.0},
        )

    def test_lower_threshold_returns_descending_matches(self):
        alert = make_alert(description="Connection pool exhausted on primary")
        lister = FakeLister(
            [
                make_record(1, "Database connection timeout", "Disk almost full"),
                make_record(2, "Database connection timeout", "Connection pool exhausted on primary"),
            ]
        )
        config = DeduplicationConfig(similarity_threshold=0.5)
        matches = DuplicateDetector(lister, config).find_duplicates(alert)

        self.assertEqual([m.number for m in matches], [2, 1])
        self.assertIsInstance(matches[1], DuplicateMatch)
        self.assertEqual(matches[1].similarity, 0.5)

    def test_listing_arguments(self):
        fake_now = datetime(2024, 1, 15, 12, 0, 0, tzinfo=dt_tz.utc)
        lister = FakeLister()
        config = DeduplicationConfig(lookback_hours=6, candidate_limit=25, tracking_label="triage")

        with patch("apps.alerts.dedup.timezone") as mock_tz:
            mock_tz.now.return_value = fake_now
            DuplicateDetector(lister, config).find_duplicates(make_alert())

        self.assertEqual(
            lister.calls,
            [
                {
                    "labels": ["triage"],
                    "state": "open",
                    "since": (fake_now - timedelta(hours=6)).isoformat(),
                    "per_page": 25,
                }
            ],
        )

    def test_disabled_returns_no_matches(self):
        alert = make_alert()
        lister = FakeLister([make_record(1, alert.title, alert.description)])
        detector = DuplicateDetector(lister, DeduplicationConfig(enabled=False))

        self.assertEqual(detector.find_duplicates(alert), [])
        self.assertEqual(lister.calls, [])

    def test_lister_errors_propagate(self):
        def failing_lister(**kwargs):
            raise ConnectionError("store unavailable")

        with self.assertRaises(ConnectionError):
            DuplicateDetector(failing_lister).find_duplicates(make_alert())

    def test_is_alert_processed(self):
        lister = FakeLister(
            [
                make_record(4, "[generic] Something else", "| Alert ID | B-9 |"),
                make_record(5, "[generic] Disk full", "| Alert ID | A-1 |"),
            ]
        )
        check = DuplicateDetector(lister).is_alert_processed(make_alert(id="A-1"))

        self.assertTrue(check.processed)
        self.assertEqual(check.record_number, 5)
        self.assertEqual(lister.calls[0]["since"], None)
        self.assertEqual(lister.calls[0]["per_page"], 100)

    def test_is_alert_processed_matches_title(self):
        lister = FakeLister([make_record(7, "Alert A-1 triage", None)])
        check = DuplicateDetector(lister).is_alert_processed(make_alert(id="A-1"))
        self.assertEqual(check.record_number, 7)

    def test_is_alert_processed_disabled(self):
        lister = FakeLister([make_record(5, "[generic] Disk full", "| Alert ID | A-1 |")])
        detector = DuplicateDetector(lister, DeduplicationConfig(enabled=False))

        check = detector.is_alert_processed(make_alert(id="A-1"))
        self.assertFalse(check.processed)
        self.assertEqual(lister.calls, [])

    def test_is_alert_not_processed(self):
        lister = FakeLister([make_record(4, "Other", "| Alert ID | B-9 |")])
        check = DuplicateDetector(lister).is_alert_processed(make_alert(id="A-1"))

        self.assertFalse(check.processed)
        self.assertIsNone(check.record_number)


class DeduplicationConfigTests(SimpleTestCase):
    @override_settings(
        ALERT_DEDUPLICATION={
            "enabled": False,
            "similarity_threshold": "0.8",
            "lookback_hours": 12,
            "tracking_label": "triage",
            "weights": {"title": 0.6, "stack": 0.3, "body_with_stack": 0.1, "body": 0.4},
        }
    )
    def test_from_settings(self):
        config = DeduplicationConfig.from_settings()

        self.assertFalse(config.enabled)
        self.assertEqual(config.similarity_threshold, 0.8)
        self.assertEqual(config.lookback_hours, 12)
        self.assertEqual(config.tracking_label, "triage")
        self.assertEqual(config.weights.title, 0.6)
        self.assertEqual(config.weights.stack, 0.3)
        self.assertEqual(config.weights.body_with_stack, 0.1)

    @override_settings(ALERT_DEDUPLICATION=None)
    def test_defaults_when_unset(self):
        self.assertEqual(DeduplicationConfig.from_settings(), DeduplicationConfig())

    @override_settings(ALERT_DEDUPLICATION={"similarity_threshold": 0.9})
    def test_overrides_take_precedence(self):
        config = DeduplicationConfig.from_settings({"similarity_threshold": 0.5})
        self.assertEqual(config.similarity_threshold, 0.5)

    def test_invalid_values(self):
        invalid = [
            {"similarity_threshold": 1.5},
            {"similarity_threshold": "high"},
            {"lookback_hours": 0},
            {"candidate_limit": "50"},
            {"enabled": "yes"},
            {"tracking_label": ""},
            {"unknown_key": 1},
            {"weights": {"heading": 1.0}},
            {"weights": ["title"]},
            {"weights": {"title": "0.6", "body": "0.4"}},
            {"weights": {"title": True}},
            {"weights": {"title": 1.5, "body": -0.5}},
            {"weights": {"title": 0.6, "body": 0.4}},
        ]
        for values in invalid:
            with self.subTest(values=values):
                with override_settings(ALERT_DEDUPLICATION=values):
                    with self.assertRaises(ImproperlyConfigured):
                        DeduplicationConfig.from_settings()
