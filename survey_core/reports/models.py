# survey_core/reports/models.py
from __future__ import annotations

from datetime import timezone as dt_timezone

from django.db import models
from django.utils import timezone

from survey_core.common.models import TimeStampedModel, UUIDModel


class SurveyType(models.TextChoices):
    COMPREHENSIVE = "comprehensive", "Comprehensive"
    MEDICATION_MANAGEMENT = "medication_management", "Medication management"
    INFECTION_CONTROL = "infection_control", "Infection control"
    PATIENT_SAFETY = "patient_safety", "Patient safety"


class SurveyStatus(models.TextChoices):
    COMPLIANT = "compliant", "Compliant"
    DEFICIENT = "deficient", "Deficient"
    IMMEDIATE_JEOPARDY = "immediate_jeopardy", "Immediate jeopardy"


class AccreditationBody(models.TextChoices):
    JOINT_COMMISSION = "Joint Commission", "Joint Commission"
    ACHC = "ACHC", "ACHC"
    DNV = "DNV", "DNV"


class DeficiencySeverity(models.TextChoices):
    MINOR = "minor", "Minor"
    MAJOR = "major", "Major"
    IMMEDIATE_JEOPARDY = "immediate_jeopardy", "Immediate jeopardy"


class Report(UUIDModel):
    """
    One accreditation survey.

    The whole aggregate is a single row: deficiencies, scope and notes are
    JSON columns, so an insert or a version-bumped replace is one statement
    and every read is a consistent snapshot.

    Deficiency element shape (stored as served):
        {"id", "standardCode", "description", "severity", "dueDate" (ISO-8601 | None)}
    """
    facility_id = models.CharField(max_length=128, db_index=True)
    survey_type = models.CharField(max_length=32, choices=SurveyType.choices)
    survey_date = models.DateTimeField()
    # Calendar (UTC) year of survey_date; keys the duplicate-survey check on create.
    survey_year = models.PositiveSmallIntegerField(editable=False)

    lead_surveyor = models.CharField(max_length=255)
    survey_scope = models.JSONField(default=list)
    compliance_score = models.PositiveSmallIntegerField(default=0)
    status = models.CharField(
        max_length=32,
        choices=SurveyStatus.choices,
        default=SurveyStatus.COMPLIANT,
        db_index=True,
    )
    accreditation_body = models.CharField(max_length=32, choices=AccreditationBody.choices)

    deficiencies = models.JSONField(default=list)
    corrective_action_due = models.DateTimeField()
    follow_up_required = models.BooleanField(default=False)
    surveyor_notes = models.JSONField(default=list)

    created_by = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now, db_index=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "reports_report"
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["facility_id", "survey_type", "survey_year"]),
            models.Index(fields=["status", "updated_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(compliance_score__gte=0) & models.Q(compliance_score__lte=100),
                name="ck_report_compliance_score_range",
            ),
            models.CheckConstraint(
                condition=models.Q(version__gte=1),
                name="ck_report_version_positive",
            ),
        ]

    def save(self, *args, **kwargs):
        if self.survey_date is not None:
            self.survey_year = survey_year_of(self.survey_date)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.facility_id} {self.survey_type} {self.survey_year} v{self.version}"


def survey_year_of(value) -> int:
    """
    Calendar year in UTC for aware datetimes, as-is for naive ones.
    """
    if timezone.is_aware(value):
        value = value.astimezone(dt_timezone.utc)
    return value.year


def attachment_upload_to(instance: "Attachment", filename: str) -> str:
    return f"reports/{instance.report_id}/{instance.id}-{filename}"


class Attachment(UUIDModel, TimeStampedModel):
    """
    A file uploaded against a report. Does not bump the report version.
    """
    report = models.ForeignKey(Report, on_delete=models.CASCADE, related_name="attachments")
    file = models.FileField(upload_to=attachment_upload_to, max_length=512)
    original_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=128)
    size = models.PositiveIntegerField()
    uploaded_by = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        db_table = "reports_attachment"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.original_name} ({self.size} bytes)"
