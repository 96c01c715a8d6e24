from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.db.models import F
from django.utils import timezone

from survey_core.common.api.exceptions import ConflictError, ForbiddenError, NotFoundError
from survey_core.reports import notifications, services
from survey_core.reports.models import Report
from survey_core.reports.repository import ReportRepository
from survey_core.reports.services import ReportService
from survey_core.tests.helpers import actor_for, deficiency, make_report

pytestmark = pytest.mark.django_db


def _create(actor, **overrides):
    payload = {
        "facility_id": "mercy",
        "survey_type": "infection_control",
        "survey_date": datetime(2024, 3, 1, tzinfo=dt_timezone.utc),
        "lead_surveyor": "Dr. Jones",
        "survey_scope": ["ICU", "ED"],
        "accreditation_body": "Joint Commission",
    }
    payload.update(overrides)
    return ReportService.create_report(actor=actor, **payload)


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
def test_create_applies_defaults(editor):
    before = timezone.now()
    report = _create(actor_for(editor))

    stored = Report.objects.get(pk=report.pk)
    assert stored.version == 1
    assert stored.compliance_score == 0
    assert stored.status == "compliant"
    assert stored.deficiencies == []
    assert stored.surveyor_notes == []
    assert stored.follow_up_required is False
    assert stored.survey_year == 2024
    assert stored.created_by == str(editor.pk)
    assert stored.created_at == stored.updated_at
    assert stored.corrective_action_due >= before + timedelta(days=30)
    assert stored.corrective_action_due <= timezone.now() + timedelta(days=30)


def test_create_keeps_given_corrective_action_due(editor):
    due = datetime(2024, 5, 1, tzinfo=dt_timezone.utc)
    report = _create(actor_for(editor), corrective_action_due=due, follow_up_required=True)
    assert report.corrective_action_due == due
    assert report.follow_up_required is True


def test_create_rejects_same_survey_in_same_year(editor):
    first = _create(actor_for(editor))

    with pytest.raises(ConflictError) as exc_info:
        _create(actor_for(editor), survey_date=datetime(2024, 11, 30, tzinfo=dt_timezone.utc))

    details = exc_info.value.details
    assert details["facilityId"] == "mercy"
    assert details["surveyType"] == "infection_control"
    assert details["existingReportId"] == str(first.id)
    assert Report.objects.count() == 1


def test_create_allows_same_survey_in_another_year(editor):
    _create(actor_for(editor))
    _create(actor_for(editor), survey_date=datetime(2025, 1, 1, tzinfo=dt_timezone.utc))
    assert Report.objects.filter(facility_id="mercy").count() == 2


def test_create_allows_other_survey_type_in_same_year(editor):
    _create(actor_for(editor))
    _create(actor_for(editor), survey_type="comprehensive")
    assert Report.objects.count() == 2


def test_survey_year_is_the_utc_calendar_year(editor):
    # 2024-12-31 23:30 at UTC-5 is already 2025 in UTC
    late = datetime(2024, 12, 31, 23, 30, tzinfo=dt_timezone(timedelta(hours=-5)))
    report = _create(actor_for(editor), survey_date=late)
    assert report.survey_year == 2025


def test_reader_cannot_create(reader):
    with pytest.raises(ForbiddenError):
        _create(actor_for(reader))
    assert Report.objects.count() == 0


def test_create_publishes_notification_after_commit(editor, monkeypatch, django_capture_on_commit_callbacks):
    sent = []
    monkeypatch.setattr(notifications, "dispatch_report_created", sent.append)

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        report = _create(actor_for(editor))
        assert sent == []

    assert len(callbacks) == 1
    assert sent == [
        {
            "report_id": str(report.id),
            "facility_id": "mercy",
            "survey_type": "infection_control",
            "actor_id": str(editor.pk),
        }
    ]


def test_rejected_create_publishes_nothing(editor, monkeypatch, django_capture_on_commit_callbacks):
    _create(actor_for(editor))
    sent = []
    monkeypatch.setattr(notifications, "dispatch_report_created", sent.append)

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(ConflictError):
            _create(actor_for(editor))

    assert callbacks == []
    assert sent == []


# ---------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------
def test_version_counts_successful_updates(editor):
    report = make_report()
    actor = actor_for(editor)

    for n in range(1, 6):
        updated = ReportService.update_report(
            actor=actor,
            report_id=report.id,
            changes={"compliance_score": 50 + n},
            version=n,
        )
        assert updated.version == 1 + n

    assert Report.objects.get(pk=report.pk).version == 6


def test_update_bumps_updated_at_only(editor):
    created = timezone.now() - timedelta(days=3)
    report = make_report(created_at=created, updated_at=created)

    updated = ReportService.update_report(
        actor=actor_for(editor),
        report_id=report.id,
        changes={"follow_up_required": True},
        version=1,
    )

    assert updated.created_at == created
    assert updated.updated_at > created


def test_partial_update_leaves_other_fields_untouched(reader):
    report = make_report(
        compliance_score=77,
        lead_surveyor="Dr. Keep",
        survey_scope=["Lab", "Pharmacy"],
        surveyor_notes=["keep me"],
        deficiencies=[deficiency("KEEP.1", "minor")],
    )
    before = Report.objects.filter(pk=report.pk).values().get()

    ReportService.update_report(
        actor=actor_for(reader),
        report_id=report.id,
        changes={"follow_up_required": True},
        version=1,
    )

    after = Report.objects.filter(pk=report.pk).values().get()
    changed = {key for key in before if before[key] != after[key]}
    assert changed == {"follow_up_required", "version", "updated_at"}


def test_stale_version_is_a_conflict_and_writes_nothing(editor):
    report = make_report(version=3)

    with pytest.raises(ConflictError) as exc_info:
        ReportService.update_report(
            actor=actor_for(editor),
            report_id=report.id,
            changes={"compliance_score": 10},
            version=2,
        )

    details = exc_info.value.details
    assert details == {"expectedVersion": 2, "currentVersion": 3, "reportId": str(report.id)}
    stored = Report.objects.get(pk=report.pk)
    assert stored.version == 3
    assert stored.compliance_score == 80


def test_second_writer_with_same_version_loses(reader, editor):
    report = make_report()

    ReportService.update_report(
        actor=actor_for(reader),
        report_id=report.id,
        changes={"follow_up_required": True},
        version=1,
    )
    with pytest.raises(ConflictError) as exc_info:
        ReportService.update_report(
            actor=actor_for(editor),
            report_id=report.id,
            changes={"compliance_score": 90},
            version=1,
        )

    assert exc_info.value.details["expectedVersion"] == 1
    assert exc_info.value.details["currentVersion"] == 2
    stored = Report.objects.get(pk=report.pk)
    assert stored.follow_up_required is True
    assert stored.compliance_score == 80


def test_concurrent_writer_between_check_and_replace_is_detected():
    report = make_report()
    stale = Report.objects.get(pk=report.pk)

    # another request commits after the guard passed
    Report.objects.filter(pk=report.pk).update(version=F("version") + 1, lead_surveyor="Other")

    with pytest.raises(ConflictError) as exc_info:
        ReportService._replace(report=stale, changes={"lead_surveyor": "Mine"}, version=1)

    assert exc_info.value.details["expectedVersion"] == 1
    assert exc_info.value.details["currentVersion"] == 2
    stored = Report.objects.get(pk=report.pk)
    assert stored.lead_surveyor == "Other"
    assert stored.version == 2


def test_unknown_report_is_not_found(editor):
    with pytest.raises(NotFoundError):
        ReportService.update_report(
            actor=actor_for(editor),
            report_id="00000000-0000-0000-0000-000000000000",
            changes={"compliance_score": 1},
            version=1,
        )


def test_editor_cannot_edit_immediate_jeopardy_but_admin_can(editor, admin):
    report = make_report(status="immediate_jeopardy")

    with pytest.raises(ForbiddenError) as exc_info:
        ReportService.update_report(
            actor=actor_for(editor),
            report_id=report.id,
            changes={"compliance_score": 90},
            version=1,
        )
    assert exc_info.value.details["requiredRole"] == "admin"
    assert "versionConflict" not in exc_info.value.details

    updated = ReportService.update_report(
        actor=actor_for(admin),
        report_id=report.id,
        changes={"compliance_score": 90},
        version=1,
    )
    assert updated.version == 2
    assert updated.compliance_score == 90


def test_forbidden_with_stale_version_reports_both(editor):
    report = make_report(status="immediate_jeopardy", version=4)

    with pytest.raises(ForbiddenError) as exc_info:
        ReportService.update_report(
            actor=actor_for(editor),
            report_id=report.id,
            changes={"compliance_score": 90},
            version=2,
        )

    details = exc_info.value.details
    assert details["requiredRole"] == "admin"
    assert details["versionConflict"] == {"expectedVersion": 2, "currentVersion": 4}


def test_policy_uses_status_before_the_update(editor, admin):
    report = make_report(status="deficient")

    # editor may move a deficient report to immediate_jeopardy...
    ReportService.update_report(
        actor=actor_for(editor),
        report_id=report.id,
        changes={"status": "immediate_jeopardy"},
        version=1,
    )
    # ...but may not touch it afterwards
    with pytest.raises(ForbiddenError):
        ReportService.update_report(
            actor=actor_for(editor),
            report_id=report.id,
            changes={"status": "deficient"},
            version=2,
        )


def test_update_may_move_a_report_onto_an_existing_survey(editor):
    # one-survey-per-year is checked on create only
    year_2024 = datetime(2024, 6, 1, tzinfo=dt_timezone.utc)
    make_report(facility_id="fac", survey_type="infection_control", survey_date=year_2024)
    other = make_report(facility_id="fac", survey_type="comprehensive", survey_date=year_2024)

    updated = ReportService.update_report(
        actor=actor_for(editor),
        report_id=other.id,
        changes={"survey_type": "infection_control"},
        version=1,
    )

    assert updated.version == 2
    assert updated.survey_type == "infection_control"
    assert Report.objects.filter(facility_id="fac", survey_type="infection_control", survey_year=2024).count() == 2


def test_create_rechecks_for_a_survey_committed_after_the_scan(editor, monkeypatch):
    rival = make_report(
        facility_id="mercy",
        survey_type="infection_control",
        survey_date=datetime(2024, 1, 15, tzinfo=dt_timezone.utc),
    )
    scan = services._find_same_survey
    calls = []

    def scan_before_rival_commits(**kwargs):
        calls.append(kwargs)
        # the first scan runs before the rival row is visible
        return None if len(calls) == 1 else scan(**kwargs)

    monkeypatch.setattr(services, "_find_same_survey", scan_before_rival_commits)

    with pytest.raises(ConflictError) as exc_info:
        _create(actor_for(editor))

    assert len(calls) == 2
    assert exc_info.value.details["existingReportId"] == str(rival.id)
    assert list(Report.objects.values_list("id", flat=True)) == [rival.id]


# ---------------------------------------------------------------------
# Deficiencies
# ---------------------------------------------------------------------
def test_add_deficiency_appends_and_bumps_version(editor):
    report = make_report(status="deficient", deficiencies=[deficiency("OLD.1", "minor")])

    updated = ReportService.add_deficiency(
        actor=actor_for(editor),
        report_id=report.id,
        version=1,
        standard_code="NEW.1",
        description="Expired supplies",
        severity="major",
        due_date=datetime(2024, 9, 1, tzinfo=dt_timezone.utc),
    )

    assert updated.version == 2
    assert [d["standardCode"] for d in updated.deficiencies] == ["OLD.1", "NEW.1"]
    added = updated.deficiencies[-1]
    assert added["severity"] == "major"
    assert added["dueDate"] == "2024-09-01T00:00:00Z"
    assert added["id"]


def test_add_deficiency_is_guarded_like_update(reader):
    report = make_report(status="deficient")

    with pytest.raises(ForbiddenError):
        ReportService.add_deficiency(
            actor=actor_for(reader),
            report_id=report.id,
            version=1,
            standard_code="X",
            description="y",
            severity="minor",
        )
    assert Report.objects.get(pk=report.pk).deficiencies == []


# ---------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------
def test_replace_returns_none_when_version_moved_on():
    report = make_report(version=2)
    assert ReportRepository.replace(report.id, {"compliance_score": 5}, expected_version=1) is None
    assert Report.objects.get(pk=report.pk).compliance_score == 80


def test_replace_rejects_owned_columns():
    report = make_report()
    with pytest.raises(ValueError):
        ReportRepository.replace(report.id, {"version": 9}, expected_version=1)


def test_replace_recomputes_survey_year():
    report = make_report(survey_date=datetime(2024, 6, 1, tzinfo=dt_timezone.utc))
    updated = ReportRepository.replace(
        report.id,
        {"survey_date": datetime(2026, 2, 1, tzinfo=dt_timezone.utc)},
        expected_version=1,
    )
    assert updated.survey_year == 2026
    assert updated.version == 2


def test_find_by_facility_is_ordered_by_creation():
    now = timezone.now()
    second = make_report(facility_id="f", survey_type="comprehensive", created_at=now)
    first = make_report(facility_id="f", survey_type="patient_safety", created_at=now - timedelta(days=1))
    make_report(facility_id="g")

    assert [r.id for r in ReportRepository.find_by_facility("f")] == [first.id, second.id]
