"""
Django system checks for alert deduplication settings.

Usage:
    python manage.py check --tag alerts
"""

from django.core.checks import Error, register
from django.core.exceptions import ImproperlyConfigured


@register("alerts")
def check_deduplication_settings(app_configs, **kwargs):
    """Verify that ALERT_DEDUPLICATION builds a valid configuration."""
    from apps.alerts.dedup import DeduplicationConfig

    try:
        DeduplicationConfig.from_settings()
    except ImproperlyConfigured as e:
        return [
            Error(
                "Invalid alert deduplication settings",
                hint=str(e),
                id="alerts.E001",
            )
        ]
    return []
