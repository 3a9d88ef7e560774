"""Admin configuration for tracked issue models."""

from django.contrib import admin
from django.db import models as db_models
from django.utils.html import format_html
from django_json_widget.widgets import JSONEditorWidget
from django_object_actions import DjangoObjectActions
from django_object_actions import action as object_action

from apps.alerts.models import IssueState, TrackedIssue, TrackedIssueComment


class TrackedIssueCommentInline(admin.TabularInline):
    """Inline display of comments within an issue."""

    model = TrackedIssueComment
    extra = 0
    readonly_fields = ["body", "created_at"]
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(TrackedIssue)
class TrackedIssueAdmin(DjangoObjectActions, admin.ModelAdmin):
    """Admin for TrackedIssue model."""

    list_display = [
        "number",
        "title",
        "severity_badge",
        "state_badge",
        "alert_source",
        "service",
        "comment_count",
        "created_at",
    ]
    list_filter = ["state", "severity", "alert_source"]
    search_fields = ["title", "body", "alert_id", "service"]
    readonly_fields = ["alert_source", "alert_id", "created_at", "updated_at"]
    date_hierarchy = "created_at"
    inlines = [TrackedIssueCommentInline]
    actions = ["close_selected"]
    change_actions = ["close_issue", "reopen_issue"]
    formfield_overrides = {db_models.JSONField: {"widget": JSONEditorWidget}}

    fieldsets = [
        (
            None,
            {
                "fields": ["title", "state", "severity", "labels"],
            },
        ),
        (
            "Alert",
            {
                "fields": ["alert_source", "alert_id", "service"],
            },
        ),
        (
            "Body",
            {
                "fields": ["body"],
            },
        ),
        (
            "Timestamps",
            {
                "fields": ["created_at", "updated_at"],
            },
        ),
    ]

    @admin.action(description="Close selected issues")
    def close_selected(self, request, queryset):
        updated = queryset.filter(state=IssueState.OPEN).update(state=IssueState.CLOSED)
        self.message_user(request, f"{updated} issue(s) closed.")

    @object_action(label="Close", description="Mark this issue as closed")
    def close_issue(self, request, obj):
        if obj.is_open:
            obj.close()
            self.message_user(request, f"Issue #{obj.number} closed.")
        else:
            self.message_user(request, "Already closed.", level="warning")

    @object_action(label="Reopen", description="Mark this issue as open")
    def reopen_issue(self, request, obj):
        if not obj.is_open:
            obj.state = IssueState.OPEN
            obj.save(update_fields=["state", "updated_at"])
            self.message_user(request, f"Issue #{obj.number} reopened.")
        else:
            self.message_user(request, "Already open.", level="warning")

    @admin.display(description="Severity")
    def severity_badge(self, obj):
        colors = {
            "critical": "#dc3545",
            "warning": "#ffc107",
            "info": "#17a2b8",
        }
        color = colors.get(obj.severity, "#6c757d")
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 8px; '
            'border-radius: 3px; font-size: 11px;">{}</span>',
            color,
            obj.severity.upper(),
        )

    @admin.display(description="State")
    def state_badge(self, obj):
        color = "#dc3545" if obj.is_open else "#6c757d"
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 8px; '
            'border-radius: 3px; font-size: 11px;">{}</span>',
            color,
            obj.state.upper(),
        )

    @admin.display(description="Comments")
    def comment_count(self, obj):
        return obj.comments.count()


@admin.register(TrackedIssueComment)
class TrackedIssueCommentAdmin(admin.ModelAdmin):
    """Admin for TrackedIssueComment model."""

    list_display = ["issue", "created_at"]
    search_fields = ["body", "issue__title"]
    readonly_fields = ["issue", "body", "created_at"]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        """Comments are created programmatically."""
        return False
