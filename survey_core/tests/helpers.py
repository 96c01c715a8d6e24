# survey_core/tests/helpers.py
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.utils import timezone
from rest_framework.test import APIClient

from survey_core.iam.auth import resolve_actor
from survey_core.reports.models import Report


def make_user(username: str, role: str | None, *, password: str = "Pass@12345"):
    """
    User in the Django group named after `role` (no group when role is None).
    """
    User = get_user_model()
    user = User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=password,
        is_active=True,
    )
    if role:
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
    return user


def client_for(user) -> APIClient:
    c = APIClient()
    c.force_authenticate(user=user)
    return c


def actor_for(user):
    return resolve_actor(user)


def make_report(**overrides) -> Report:
    """
    Persist a report directly (bypassing ReportService) with sensible defaults.
    """
    now = timezone.now()
    fields = {
        "facility_id": "test-facility",
        "survey_type": "comprehensive",
        "survey_date": now,
        "lead_surveyor": "Dr. Test",
        "survey_scope": ["ICU"],
        "compliance_score": 80,
        "status": "compliant",
        "accreditation_body": "Joint Commission",
        "deficiencies": [],
        "corrective_action_due": now + timedelta(days=30),
        "follow_up_required": False,
        "surveyor_notes": [],
        "created_at": now,
        "updated_at": now,
        "version": 1,
    }
    fields.update(overrides)
    report = Report(**fields)
    report.save(force_insert=True)
    return report


def deficiency(code: str, severity: str, due: str | None = None, description: str | None = None, id: str | None = None) -> dict:
    return {
        "id": id or f"def-{code}",
        "standardCode": code,
        "description": description or f"Finding {code}",
        "severity": severity,
        "dueDate": due,
    }


def envelope_error(response) -> dict:
    body = response.json()
    assert body["success"] is False, body
    return body["error"]
