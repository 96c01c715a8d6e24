# survey_core/reports/services.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from survey_core.common.api.exceptions import ConflictError, ForbiddenError, NotFoundError
from survey_core.common.events import publish_on_commit
from survey_core.iam.auth import Actor
from survey_core.reports import rules
from survey_core.reports.models import Report, SurveyStatus, survey_year_of
from survey_core.reports.notifications import REPORT_CREATED
from survey_core.reports.repository import ReportRepository

logger = logging.getLogger(__name__)

DEFAULT_CORRECTIVE_ACTION_DAYS = 30


def iso_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    if timezone.is_naive(value):
        value = value.replace(tzinfo=dt_timezone.utc)
    return value.astimezone(dt_timezone.utc).isoformat().replace("+00:00", "Z")


def _duplicate_survey(*, facility_id: str, survey_type: str, year: int, existing_id: Any) -> ConflictError:
    return ConflictError(
        f"A {survey_type} survey already exists for facility {facility_id} in {year}",
        details={
            "facilityId": facility_id,
            "surveyType": str(survey_type),
            "existingReportId": str(existing_id) if existing_id else None,
        },
    )


def _stale_version(*, report_id: Any, expected: int, current: int) -> ConflictError:
    return ConflictError(
        f"Report has been modified by another user. Expected version {expected}, found version {current}",
        details={
            "expectedVersion": expected,
            "currentVersion": current,
            "reportId": str(report_id),
        },
    )


def _find_same_survey(*, facility_id: str, survey_type: str, year: int, exclude_id: Any = None) -> Report | None:
    for existing in ReportRepository.find_by_facility(facility_id):
        if exclude_id is not None and str(existing.id) == str(exclude_id):
            continue
        if existing.survey_type == survey_type and existing.survey_year == year:
            return existing
    return None


class ReportService:
    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def _load_for_edit(*, actor: Actor, report_id: UUID | str, version: int) -> Report:
        """
        Edit guard, in order: NotFound -> Forbidden -> Conflict.

        A Forbidden raised while the version is also stale carries
        `versionConflict`, so neither failure hides the other.
        """
        report = ReportRepository.find(report_id)
        if report is None:
            raise NotFoundError("Report", report_id)

        stale = report.version != version
        extra = None
        if stale:
            extra = {"versionConflict": {"expectedVersion": version, "currentVersion": report.version}}

        try:
            rules.check_edit_permission(actor.role, report.status, extra_details=extra)
        except ForbiddenError:
            logger.info(
                "edit forbidden report_id=%s role=%s status=%s",
                report.id,
                actor.role,
                report.status,
            )
            raise

        if stale:
            logger.info(
                "version conflict report_id=%s expected=%s current=%s",
                report.id,
                version,
                report.version,
            )
            raise _stale_version(report_id=report.id, expected=version, current=report.version)

        return report

    @staticmethod
    def _replace(*, report: Report, changes: dict[str, Any], version: int) -> Report:
        updated = ReportRepository.replace(report.id, changes, expected_version=version)
        if updated is None:
            # A concurrent writer won the compare-and-swap.
            current = ReportRepository.find(report.id)
            if current is None:
                raise NotFoundError("Report", report.id)
            logger.info(
                "version conflict report_id=%s expected=%s current=%s",
                report.id,
                version,
                current.version,
            )
            raise _stale_version(report_id=report.id, expected=version, current=current.version)

        return updated

    # ---------------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def create_report(
        *,
        actor: Actor,
        facility_id: str,
        survey_type: str,
        survey_date: datetime,
        lead_surveyor: str,
        survey_scope: list[str],
        accreditation_body: str,
        corrective_action_due: datetime | None = None,
        follow_up_required: bool = False,
    ) -> Report:
        rules.check_create_permission(actor.role)

        year = survey_year_of(survey_date)
        existing = _find_same_survey(facility_id=facility_id, survey_type=survey_type, year=year)
        if existing is not None:
            logger.info(
                "duplicate survey facility_id=%s survey_type=%s year=%s existing=%s",
                facility_id,
                survey_type,
                year,
                existing.id,
            )
            raise _duplicate_survey(
                facility_id=facility_id,
                survey_type=survey_type,
                year=year,
                existing_id=existing.id,
            )

        now = timezone.now()
        report = Report(
            id=uuid.uuid4(),
            facility_id=facility_id,
            survey_type=survey_type,
            survey_date=survey_date,
            lead_surveyor=lead_surveyor,
            survey_scope=list(survey_scope),
            compliance_score=0,
            status=SurveyStatus.COMPLIANT,
            accreditation_body=accreditation_body,
            deficiencies=[],
            corrective_action_due=corrective_action_due or now + timedelta(days=DEFAULT_CORRECTIVE_ACTION_DAYS),
            follow_up_required=bool(follow_up_required),
            surveyor_notes=[],
            created_by=actor.actor_id,
            created_at=now,
            updated_at=now,
            version=1,
        )

        ReportRepository.insert(report)

        # A concurrent creator may have committed the same survey since the scan.
        # Raising here rolls the insert back with the enclosing transaction.
        rival = _find_same_survey(
            facility_id=facility_id,
            survey_type=survey_type,
            year=year,
            exclude_id=report.id,
        )
        if rival is not None:
            logger.info(
                "duplicate survey on insert facility_id=%s survey_type=%s year=%s existing=%s",
                facility_id,
                survey_type,
                year,
                rival.id,
            )
            raise _duplicate_survey(
                facility_id=facility_id,
                survey_type=survey_type,
                year=year,
                existing_id=rival.id,
            )

        logger.info(
            "report created report_id=%s facility_id=%s survey_type=%s by=%s",
            report.id,
            facility_id,
            survey_type,
            actor.actor_id,
        )

        publish_on_commit(
            REPORT_CREATED,
            {
                "report_id": str(report.id),
                "facility_id": facility_id,
                "survey_type": str(survey_type),
                "actor_id": actor.actor_id,
            },
        )
        return report

    @staticmethod
    @transaction.atomic
    def update_report(
        *,
        actor: Actor,
        report_id: UUID | str,
        changes: dict[str, Any],
        version: int,
    ) -> Report:
        """
        Partial update: only keys present in `changes` are written.
        """
        report = ReportService._load_for_edit(actor=actor, report_id=report_id, version=version)
        updated = ReportService._replace(report=report, changes=changes, version=version)

        logger.info(
            "report updated report_id=%s by=%s version %s -> %s fields=%s",
            updated.id,
            actor.actor_id,
            version,
            updated.version,
            ",".join(sorted(changes)),
        )
        return updated

    @staticmethod
    @transaction.atomic
    def add_deficiency(
        *,
        actor: Actor,
        report_id: UUID | str,
        version: int,
        standard_code: str,
        description: str,
        severity: str,
        due_date: datetime | None = None,
    ) -> Report:
        """
        Append one finding. Same guard as update_report; existing findings are never rewritten.
        """
        report = ReportService._load_for_edit(actor=actor, report_id=report_id, version=version)

        deficiency = {
            "id": str(uuid.uuid4()),
            "standardCode": standard_code,
            "description": description,
            "severity": str(severity),
            "dueDate": iso_utc(due_date),
        }
        deficiencies = [dict(d) for d in report.deficiencies] + [deficiency]

        updated = ReportService._replace(report=report, changes={"deficiencies": deficiencies}, version=version)

        logger.info(
            "deficiency added report_id=%s deficiency_id=%s severity=%s by=%s version -> %s",
            updated.id,
            deficiency["id"],
            deficiency["severity"],
            actor.actor_id,
            updated.version,
        )
        return updated
