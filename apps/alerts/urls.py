"""
URL configuration for the alerts app.
"""

from django.urls import path

from apps.alerts.views import AlertWebhookView


app_name = "alerts"

urlpatterns = [
    # Generic webhook (auto-detect source)
    path("webhook/", AlertWebhookView.as_view(), name="webhook"),

    # Source-specific webhooks
    path("webhook/<str:source>/", AlertWebhookView.as_view(), name="webhook_source"),
]
