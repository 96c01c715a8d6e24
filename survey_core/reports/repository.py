# survey_core/reports/repository.py
from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from django.db.models import F, QuerySet
from django.utils import timezone

from survey_core.reports.models import Report, survey_year_of

# Columns a version-bumped replace may touch. Identity, timestamps and version are owned here.
REPLACEABLE_FIELDS = frozenset(
    {
        "survey_type",
        "survey_date",
        "lead_surveyor",
        "survey_scope",
        "compliance_score",
        "status",
        "accreditation_body",
        "deficiencies",
        "corrective_action_due",
        "follow_up_required",
        "surveyor_notes",
    }
)


class ReportRepository:
    """
    The only writer of Report rows.

    Every write is one statement on one row: insert, or a compare-and-swap
    replace guarded by the stored version. Reads return fresh instances, so
    callers never hold store-owned state.
    """

    @staticmethod
    def find(report_id: UUID | str) -> Report | None:
        return Report.objects.filter(pk=report_id).first()

    @staticmethod
    def find_all() -> QuerySet[Report]:
        return Report.objects.all()

    @staticmethod
    def find_by_facility(facility_id: str) -> list[Report]:
        return list(Report.objects.filter(facility_id=facility_id).order_by("created_at"))

    @staticmethod
    def insert(report: Report) -> Report:
        report.save(force_insert=True)
        return report

    @staticmethod
    def replace(report_id: UUID | str, fields: Mapping[str, Any], *, expected_version: int) -> Report | None:
        """
        UPDATE ... SET <fields>, version = version + 1, updated_at = now
        WHERE id = <id> AND version = <expected_version>

        Returns the new record, or None when no row matched (unknown id, or a
        concurrent writer already moved the version on).
        """
        unknown = set(fields) - REPLACEABLE_FIELDS
        if unknown:
            raise ValueError(f"Not replaceable: {', '.join(sorted(unknown))}")

        changes = dict(fields)
        if "survey_date" in changes:
            changes["survey_year"] = survey_year_of(changes["survey_date"])

        matched = Report.objects.filter(pk=report_id, version=expected_version).update(
            **changes,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if matched == 0:
            return None

        return Report.objects.get(pk=report_id)
