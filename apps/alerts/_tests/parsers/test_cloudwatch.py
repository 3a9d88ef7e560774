import json

from django.test import SimpleTestCase

from apps.alerts.parsers import AlertSource, Severity
from apps.alerts.parsers.cloudwatch import CloudWatchParser


def make_alarm(**overrides):
    alarm = {
        "AlarmName": "checkout-5xx-errors",
        "AlarmDescription": "Too many 5xx responses from checkout",
        "AWSAccountId": "123456789012",
        "NewStateValue": "ALARM",
        "NewStateReason": "Threshold Crossed: 1 datapoint [12.0] was greater than 5.0",
        "StateChangeTime": "2024-01-15T10:00:00.000+0000",
        "Region": "us-east-1",
        "OldStateValue": "OK",
        "Trigger": {
            "MetricName": "5XXError",
            "Namespace": "AWS/ApiGateway",
            "Dimensions": [
                {"name": "ApiName", "value": "checkout-api"},
                {"name": "FunctionName", "value": "checkout-handler"},
            ],
        },
    }
    alarm.update(overrides)
    return alarm


def make_sns(alarm=None):
    return {
        "Type": "Notification",
        "MessageId": "b1a2",
        "TopicArn": "arn:aws:sns:us-east-1:123456789012:alarms",
        "Subject": "ALARM: checkout-5xx-errors",
        "Message": json.dumps(alarm or make_alarm()),
        "Timestamp": "2024-01-15T10:00:01.000Z",
    }


class CloudWatchParserTests(SimpleTestCase):
    """Tests for CloudWatch parser."""

    def setUp(self):
        self.parser = CloudWatchParser()

    def test_can_parse_sns_and_bare_alarm(self):
        self.assertTrue(self.parser.can_parse(make_sns()))
        self.assertTrue(self.parser.can_parse(make_alarm()))

    def test_can_parse_rejects_other_payloads(self):
        self.assertFalse(self.parser.can_parse({}))
        self.assertFalse(
            self.parser.can_parse({"Type": "Notification", "Message": "plain text"})
        )
        self.assertFalse(
            self.parser.can_parse({"Type": "Notification", "Message": json.dumps({"a": 1})})
        )
        self.assertFalse(self.parser.can_parse({"AlarmName": "x"}))
        self.assertFalse(self.parser.can_parse("AlarmName"))

    def test_parse_sns_notification(self):
        alert = self.parser.parse(make_sns())

        self.assertEqual(alert.source, AlertSource.CLOUDWATCH)
        self.assertEqual(alert.id, "checkout-5xx-errors")
        self.assertEqual(alert.title, "checkout-5xx-errors")
        self.assertEqual(alert.description, "Too many 5xx responses from checkout")
        self.assertEqual(alert.severity, Severity.CRITICAL)
        self.assertEqual(alert.service, "checkout-handler")
        self.assertEqual(alert.timestamp, "2024-01-15T10:00:00+00:00")
        self.assertEqual(
            alert.url,
            "https://console.aws.amazon.com/cloudwatch/home?region=us-east-1"
            "#alarmsV2:alarm/checkout-5xx-errors",
        )
        self.assertIsNone(alert.stack_trace)
        self.assertEqual(
            alert.tags,
            {
                "metric": "5XXError",
                "namespace": "AWS/ApiGateway",
                "region": "us-east-1",
                "account": "123456789012",
                "state": "ALARM",
                "dimension:ApiName": "checkout-api",
                "dimension:FunctionName": "checkout-handler",
            },
        )

    def test_bare_alarm_matches_sns(self):
        sns_alert = self.parser.parse(make_sns())
        bare_alert = self.parser.parse(make_alarm())
        self.assertEqual(sns_alert.title, bare_alert.title)
        self.assertEqual(sns_alert.tags, bare_alert.tags)

    def test_state_mapping(self):
        alert = self.parser.parse(make_alarm(NewStateValue="INSUFFICIENT_DATA"))
        self.assertEqual(alert.severity, Severity.WARNING)

        alert = self.parser.parse(make_alarm(NewStateValue="OK"))
        self.assertEqual(alert.severity, Severity.INFO)

    def test_description_falls_back_to_state_reason(self):
        alarm = make_alarm()
        del alarm["AlarmDescription"]
        alert = self.parser.parse(alarm)
        self.assertTrue(alert.description.startswith("Threshold Crossed"))

    def test_region_display_name_has_no_url(self):
        alert = self.parser.parse(make_alarm(Region="US East (N. Virginia)"))
        self.assertIsNone(alert.url)
        self.assertEqual(alert.tags["region"], "US East (N. Virginia)")

    def test_timestamp_falls_back_to_sns_timestamp(self):
        alarm = make_alarm()
        del alarm["StateChangeTime"]
        alert = self.parser.parse(make_sns(alarm))
        self.assertEqual(alert.timestamp, "2024-01-15T10:00:01+00:00")

    def test_minimal_alarm_defaults(self):
        alert = self.parser.parse({"AlarmName": "", "NewStateValue": "ALARM"})

        self.assertEqual(alert.title, "Unknown CloudWatch Alarm")
        self.assertEqual(alert.id, "Unknown CloudWatch Alarm")
        self.assertTrue(alert.timestamp)
        self.assertIsNone(alert.service)
        self.assertIsNone(alert.url)
