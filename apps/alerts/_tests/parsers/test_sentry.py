from django.test import SimpleTestCase

from apps.alerts.parsers import AlertSource, Severity
from apps.alerts.parsers.sentry import SentryParser


def make_payload(level="error"):
    return {
        "action": "triggered",
        "data": {
            "event": {
                "event_id": "e1f2a3b4",
                "title": "ValueError: invalid literal for int()",
                "message": "Failed to parse order quantity",
                "level": level,
                "platform": "python",
                "timestamp": 1705312800.0,
                "web_url": "https://sentry.io/organizations/acme/issues/42/events/e1f2a3b4/",
                "tags": [["environment", "production"], {"key": "release", "value": "1.2.3"}],
                "exception": {
                    "values": [
                        {
                            "type": "ValueError",
                            "value": "invalid literal for int() with base 10: 'abc'",
                            "stacktrace": {
                                "frames": [
                                    {"filename": "app/main.py", "function": "handle", "lineno": 10},
                                    {"filename": "app/orders.py", "function": "parse_qty", "lineno": 57},
                                ]
                            },
                        }
                    ]
                },
            },
            "issue": {
                "id": "42",
                "title": "ValueError in parse_qty",
                "shortId": "SHOP-1A",
                "project": {"slug": "shop", "name": "Shop Backend"},
            },
        },
    }


class SentryParserTests(SimpleTestCase):
    """Tests for Sentry parser."""

    def setUp(self):
        self.parser = SentryParser()

    def test_can_parse(self):
        self.assertTrue(self.parser.can_parse(make_payload()))
        self.assertTrue(self.parser.can_parse({"data": {"issue": {}}}))
        self.assertFalse(self.parser.can_parse({"data": {}}))
        self.assertFalse(self.parser.can_parse({"data": "event"}))
        self.assertFalse(self.parser.can_parse({}))

    def test_parse_all_fields(self):
        alert = self.parser.parse(make_payload())

        self.assertEqual(alert.source, AlertSource.SENTRY)
        self.assertEqual(alert.id, "e1f2a3b4")
        self.assertEqual(alert.title, "ValueError: invalid literal for int()")
        self.assertEqual(
            alert.description,
            "Failed to parse order quantity\n\n"
            "ValueError: invalid literal for int() with base 10: 'abc'",
        )
        self.assertEqual(alert.severity, Severity.CRITICAL)
        self.assertEqual(alert.service, "Shop Backend")
        self.assertEqual(alert.timestamp, "2024-01-15T10:00:00+00:00")
        self.assertEqual(
            alert.url, "https://sentry.io/organizations/acme/issues/42/events/e1f2a3b4/"
        )
        self.assertEqual(
            alert.tags,
            {
                "platform": "python",
                "environment": "production",
                "release": "1.2.3",
                "issue_id": "SHOP-1A",
                "project": "shop",
                "action": "triggered",
            },
        )

    def test_stack_trace_most_recent_frame_first(self):
        alert = self.parser.parse(make_payload())
        self.assertEqual(
            alert.stack_trace,
            "ValueError: invalid literal for int() with base 10: 'abc'\n"
            "    at parse_qty (app/orders.py:57)\n"
            "    at handle (app/main.py:10)",
        )

    def test_stack_trace_is_capped(self):
        payload = make_payload()
        exc = payload["data"]["event"]["exception"]["values"][0]
        exc["stacktrace"]["frames"] = [
            {"filename": f"f{i}.py", "function": f"fn{i}", "lineno": i} for i in range(30)
        ]
        alert = self.parser.parse(payload)
        frame_lines = [line for line in alert.stack_trace.split("\n") if "    at " in line]
        self.assertEqual(len(frame_lines), 20)
        self.assertEqual(frame_lines[0], "    at fn29 (f29.py:29)")

    def test_level_mapping(self):
        self.assertEqual(self.parser.parse(make_payload("fatal")).severity, Severity.CRITICAL)
        self.assertEqual(self.parser.parse(make_payload("warning")).severity, Severity.WARNING)
        self.assertEqual(self.parser.parse(make_payload("info")).severity, Severity.INFO)

    def test_issue_only_payload(self):
        payload = {"data": {"issue": {"id": "77", "title": "Crash", "shortId": "APP-2"}}}
        alert = self.parser.parse(payload)

        self.assertEqual(alert.id, "77")
        self.assertEqual(alert.title, "Crash")
        self.assertEqual(alert.description, "Crash")
        self.assertEqual(alert.url, "https://sentry.io/issues/77/")
        self.assertIsNone(alert.stack_trace)
        self.assertEqual(alert.severity, Severity.INFO)

    def test_minimal_payload_defaults(self):
        alert = self.parser.parse({"data": {"event": {}}})

        self.assertEqual(alert.title, "Unknown Sentry Error")
        self.assertEqual(alert.description, "No description available")
        self.assertTrue(alert.id)
        self.assertTrue(alert.timestamp)
        self.assertIsNone(alert.url)
