from django.test import SimpleTestCase

from apps.alerts.parsers import AlertSource, Severity
from apps.alerts.parsers.generic import GenericWebhookParser


class GenericWebhookParserTests(SimpleTestCase):
    """Tests for the catch-all generic parser."""

    def setUp(self):
        self.parser = GenericWebhookParser()

    def test_can_parse_everything(self):
        for payload in (None, 0, 1.5, True, "text", [], [1, 2], {}, {"anything": 1}):
            with self.subTest(payload=payload):
                self.assertTrue(self.parser.can_parse(payload))

    def test_parse_common_field_names(self):
        payload = {
            "alert_id": 991,
            "subject": "Queue backlog growing",
            "message": "orders queue has 12k messages",
            "priority": "P1",
            "service_name": "order-worker",
            "createdAt": "2024-01-15T10:00:00Z",
            "link": "https://status.example.com/incidents/991",
            "tags": ["env:prod", "team:fulfilment"],
            "labels": {"region": "eu", "shard": 3},
        }
        alert = self.parser.parse(payload)

        self.assertEqual(alert.source, AlertSource.GENERIC)
        self.assertEqual(alert.id, "991")
        self.assertEqual(alert.title, "Queue backlog growing")
        self.assertEqual(alert.description, "orders queue has 12k messages")
        self.assertEqual(alert.severity, Severity.CRITICAL)
        self.assertEqual(alert.service, "order-worker")
        self.assertEqual(alert.timestamp, "2024-01-15T10:00:00+00:00")
        self.assertEqual(alert.url, "https://status.example.com/incidents/991")
        self.assertEqual(
            alert.tags,
            {"env": "prod", "team": "fulfilment", "region": "eu", "shard": "3"},
        )

    def test_severity_keywords(self):
        cases = {
            "fatal": Severity.CRITICAL,
            "medium": Severity.WARNING,
            "debug": Severity.INFO,
            "unheard-of": Severity.WARNING,
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                alert = self.parser.parse({"title": "x", "severity": value})
                self.assertEqual(alert.severity, expected)

    def test_stack_trace_from_nested_container(self):
        payload = {
            "title": "Worker crashed",
            "error": {"stack": "KeyError: 'sku'\n  File \"worker.py\", line 8, in run"},
        }
        alert = self.parser.parse(payload)
        self.assertEqual(alert.stack_trace, "KeyError: 'sku'\n  File \"worker.py\", line 8, in run")

    def test_stack_trace_from_description(self):
        description = (
            "Unhandled error\n"
            "  at handler (index.js:10)\n"
            "  at process (queue.js:4)"
        )
        alert = self.parser.parse({"title": "Crash", "description": description})
        self.assertEqual(alert.stack_trace, "  at handler (index.js:10)\n  at process (queue.js:4)")

    def test_nested_description_and_service(self):
        payload = {
            "title": "Slow queries",
            "details": {"text": "p95 query time 800ms"},
            "service": {"name": "reporting"},
        }
        alert = self.parser.parse(payload)
        self.assertEqual(alert.description, "p95 query time 800ms")
        self.assertEqual(alert.service, "reporting")

    def test_non_object_payloads(self):
        for payload, description in ((None, "null"), (42, "42"), ("boom", '"boom"')):
            with self.subTest(payload=payload):
                alert = self.parser.parse(payload)
                self.assertEqual(alert.title, "Unknown Alert")
                self.assertEqual(alert.description, description)
                self.assertEqual(alert.severity, Severity.WARNING)
                self.assertTrue(alert.id)
                self.assertTrue(alert.timestamp)
                self.assertEqual(alert.raw, payload)

    def test_empty_object_defaults(self):
        alert = self.parser.parse({})

        self.assertEqual(alert.title, "Unknown Alert")
        self.assertEqual(alert.description, "Unknown Alert")
        self.assertEqual(alert.severity, Severity.WARNING)
        self.assertTrue(alert.id.isdigit())
        self.assertTrue(alert.timestamp)
        self.assertIsNone(alert.stack_trace)
        self.assertIsNone(alert.service)
        self.assertIsNone(alert.url)
        self.assertEqual(alert.tags, {})
