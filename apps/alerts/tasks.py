"""Celery tasks for processing alerts in the background.

The webhook view enqueues ``process_alert`` when ENABLE_CELERY_PROCESSING=1,
so slow tracking-store writes never hold up the sender.
"""

from __future__ import annotations

import logging
from typing import Any

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def process_alert(ctx: dict[str, Any]) -> dict[str, Any]:
    """Normalize, deduplicate and record one webhook payload.

    ``ctx`` carries ``payload`` (any JSON value) and an optional ``source``
    (defaults to auto-detection). Returns ``ProcessingResult.to_dict()``
    without the raw payload.
    """
    from apps.alerts.services import AlertOrchestrator

    payload = ctx.get("payload")
    source = ctx.get("source") or "auto"

    result = AlertOrchestrator().process_webhook(payload, source=source)
    if result.has_errors:
        logger.warning(f"Alert processing failed: {result.errors}")

    output = result.to_dict()
    if output["alert"]:
        output["alert"].pop("raw", None)
    return output
