"""
Management command to process an alert payload from a file or stdin.

Usage:
    # Process a payload file (auto-detect the source)
    python manage.py process_alert --file alert.json

    # Read from stdin with an explicit source
    cat alert.json | python manage.py process_alert --source pagerduty

    # Dry run (normalize and report duplicates, write nothing)
    python manage.py process_alert --file alert.json --dry-run

    # Output as JSON
    python manage.py process_alert --file alert.json --json
"""

import json
import sys

from django.core.management.base import BaseCommand, CommandError

from apps.alerts import store
from apps.alerts.dedup import DeduplicationConfig, DuplicateDetector
from apps.alerts.parsers import PARSER_REGISTRY, AlertParseError, parse_alert
from apps.alerts.services import ActionTaken, AlertOrchestrator


class Command(BaseCommand):
    help = "Normalize an alert webhook payload and record it as a tracked issue"

    def add_arguments(self, parser):
        parser.add_argument(
            "--file",
            type=str,
            help="Path to a JSON payload file. Reads stdin when omitted.",
        )
        parser.add_argument(
            "--source",
            type=str,
            default="auto",
            help=f"Alert source. Available: auto, {', '.join(PARSER_REGISTRY.keys())}",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            dest="json_output",
            help="Output result as JSON.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show the normalized alert and duplicates without writing anything.",
        )

    def handle(self, *args, **options):
        payload = self._load_payload(options.get("file"))
        source = options["source"]

        if options["dry_run"]:
            self._dry_run(payload, source, options)
        else:
            self._process(payload, source, options)

    def _load_payload(self, path):
        try:
            if path:
                with open(path, encoding="utf-8") as f:
                    raw = f.read()
            else:
                raw = sys.stdin.read()
        except OSError as e:
            raise CommandError(f"Could not read payload: {e}")

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CommandError(f"Invalid JSON payload: {e}")

    def _dry_run(self, payload, source, options):
        """Normalize and look for duplicates without touching the store."""
        try:
            alert = parse_alert(payload, source)
        except AlertParseError as e:
            raise CommandError(f"Could not normalize payload ({e.stage}): {e}")

        detector = DuplicateDetector(store.list_recent_records, DeduplicationConfig.from_settings())
        processed = detector.is_alert_processed(alert)
        duplicates = detector.find_duplicates(alert)

        if options["json_output"]:
            output = {
                "dry_run": True,
                "alert": {k: v for k, v in alert.to_dict().items() if k != "raw"},
                "already_processed": processed.processed,
                "processed_in": processed.record_number,
                "duplicates": [d.to_dict() for d in duplicates],
            }
            self.stdout.write(json.dumps(output, indent=2))
            return

        self.stdout.write(self.style.NOTICE("DRY RUN - Nothing will be recorded\n"))
        self._write_alert(alert)
        if processed.processed:
            self.stdout.write(
                self.style.WARNING(f"  → Already tracked in #{processed.record_number}")
            )
        elif duplicates:
            for match in duplicates:
                self.stdout.write(
                    self.style.WARNING(
                        f"  → Duplicate of #{match.number} "
                        f"({match.similarity:.0%}): {match.title}"
                    )
                )
        else:
            self.stdout.write(self.style.SUCCESS("  → Would create a tracked issue"))

    def _process(self, payload, source, options):
        result = AlertOrchestrator().process_webhook(payload, source=source)

        if result.action_taken == ActionTaken.ERROR:
            raise CommandError(
                f"Could not normalize payload ({result.stage}): {'; '.join(result.errors)}"
            )

        if options["json_output"]:
            output = result.to_dict()
            output["alert"].pop("raw", None)
            self.stdout.write(json.dumps(output, indent=2))
            return

        self._write_alert(result.alert)
        self.stdout.write(self.style.SUCCESS(f"\nAction taken: {result.action_taken}"))
        if result.issue_number is not None:
            self.stdout.write(f"Issue: #{result.issue_number}")
        if result.similarity is not None:
            self.stdout.write(f"Similarity: {result.similarity:.0%}")

    def _write_alert(self, alert):
        self.stdout.write(f"[{alert.source.value}] {alert.title}")
        self.stdout.write(f"  Severity: {alert.severity.value}")
        self.stdout.write(f"  Service: {alert.service or 'N/A'}")
        self.stdout.write(f"  Alert ID: {alert.id}")
