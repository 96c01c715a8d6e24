# survey_core/reports/admin.py
from django.contrib import admin

from survey_core.reports.models import Attachment, Report


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "facility_id",
        "survey_type",
        "survey_year",
        "status",
        "compliance_score",
        "version",
        "updated_at",
    )
    list_filter = ("status", "survey_type", "accreditation_body")
    search_fields = ("facility_id", "lead_surveyor")
    ordering = ("-updated_at",)

    # Writes go through ReportService so the version always moves.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ("original_name", "report", "mime_type", "size", "uploaded_by", "created_at")
    search_fields = ("original_name",)
    readonly_fields = ("created_at",)
    ordering = ("-created_at",)
