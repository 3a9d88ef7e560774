"""URL configuration for the oncall-triage project."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("alerts/", include("apps.alerts.urls")),
]
