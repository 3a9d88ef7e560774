"""
Webhook views for receiving alerts from external sources.
"""

import json
import logging
import os

from django.conf import settings
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.alerts.services import ActionTaken, AlertOrchestrator

logger = logging.getLogger(__name__)


def celery_processing_enabled() -> bool:
    """Queue webhooks on Celery unless disabled or running eagerly."""
    if os.environ.get("ENABLE_CELERY_PROCESSING", "0") != "1":
        return False
    return not bool(getattr(settings, "CELERY_TASK_ALWAYS_EAGER", False))


@method_decorator(csrf_exempt, name="dispatch")
class AlertWebhookView(View):
    """
    Webhook endpoint for receiving alerts.

    POST /alerts/webhook/
    POST /alerts/webhook/<source>/

    Accepts JSON payloads from the supported monitoring sources.
    The source can be auto-detected or specified in the URL.
    """

    def post(self, request, source=None):
        """Handle incoming alert webhook."""
        try:
            payload = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid JSON payload: {e}")
            return JsonResponse(
                {"status": "error", "message": "Invalid JSON payload"},
                status=400,
            )

        source = source or "auto"

        # With Celery enabled, enqueue and return quickly.
        # (In tests/dev set CELERY_TASK_ALWAYS_EAGER=1 to run inline.)
        if celery_processing_enabled():
            try:
                from apps.alerts.tasks import process_alert

                async_res = process_alert.delay({"payload": payload, "source": source})
                return JsonResponse(
                    {"status": "queued", "task_id": async_res.id},
                    status=202,
                )
            except Exception as enqueue_err:
                # Broker unreachable: don't 500 the webhook, process inline instead.
                logger.warning(
                    "Celery enqueue failed; falling back to sync processing: %s",
                    enqueue_err,
                )

        try:
            result = AlertOrchestrator().process_webhook(payload, source=source)
        except Exception as e:
            logger.exception("Unexpected error processing webhook")
            return JsonResponse(
                {"status": "error", "message": str(e)},
                status=500,
            )

        if result.action_taken == ActionTaken.ERROR:
            return JsonResponse(
                {
                    "status": "error",
                    "stage": result.stage,
                    "message": "; ".join(result.errors),
                },
                status=400,
            )

        response_data = {"status": "success", **result.to_dict()}
        response_data["alert"].pop("raw", None)
        return JsonResponse(response_data)

    def get(self, request, source=None):
        """Health check endpoint."""
        return JsonResponse(
            {
                "status": "ok",
                "message": "Alert webhook endpoint is ready",
                "source": source or "auto-detect",
            }
        )
