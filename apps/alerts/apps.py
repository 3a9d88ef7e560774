"""Django app configuration for the alerts app."""

from django.apps import AppConfig


class AlertsConfig(AppConfig):
    """Configuration for the Alert Triage app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.alerts"
    verbose_name = "Alert Triage"

    def ready(self):
        # Import checks module to register system checks with Django
        from apps.alerts import checks  # noqa: F401
