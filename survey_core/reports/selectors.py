# survey_core/reports/selectors.py
from __future__ import annotations

from typing import Any
from uuid import UUID

from django.db.models import QuerySet

from survey_core.common.api.exceptions import NotFoundError
from survey_core.reports.formatting import ReportQuery, format_report
from survey_core.reports.models import Attachment, Report
from survey_core.reports.repository import ReportRepository

# sortBy query value -> model column
LIST_SORT_COLUMNS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "complianceScore": "compliance_score",
    "status": "status",
}


class ReportSelectors:
    """
    Read-only queries for reports.
    No .save(), no state mutation here.
    """

    @staticmethod
    def get_report(*, report_id: UUID | str) -> Report:
        report = ReportRepository.find(report_id)
        if report is None:
            raise NotFoundError("Report", report_id)
        return report

    @staticmethod
    def get_report_view(*, report_id: UUID | str, query: ReportQuery) -> tuple[Report, dict[str, Any]]:
        """
        One row read, then shaped. Returns the record too so callers can emit its ETag.
        """
        report = ReportSelectors.get_report(report_id=report_id)
        return report, format_report(report, query)

    @staticmethod
    def list_reports(
        *,
        status: str | None = None,
        survey_type: str | None = None,
        facility_id: str | None = None,
        sort_by: str = "updatedAt",
        sort_order: str = "desc",
    ) -> QuerySet[Report]:
        qs = ReportRepository.find_all()

        if status:
            qs = qs.filter(status=status)

        if survey_type:
            qs = qs.filter(survey_type=survey_type)

        if facility_id:
            qs = qs.filter(facility_id=facility_id)

        column = LIST_SORT_COLUMNS.get(sort_by, "updated_at")
        prefix = "-" if sort_order == "desc" else ""
        return qs.order_by(f"{prefix}{column}", f"{prefix}id")

    @staticmethod
    def list_attachments(*, report_id: UUID | str) -> QuerySet[Attachment]:
        report = ReportSelectors.get_report(report_id=report_id)
        return Attachment.objects.filter(report=report).order_by("-created_at")
