# survey_core/reports/fixtures.py
"""
Demo data: five sample surveys and one user per role.
Loaded by `manage.py seed_demo_data` and by the test suite.
"""
from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone as dt_timezone
from typing import Any

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.db import transaction

from survey_core.common.permissions import ALL_ROLES, ROLE_ADMIN, ROLE_EDITOR, ROLE_READER
from survey_core.reports.models import Report

DEMO_USERS = [
    {"username": "reader", "email": "reader@medlaunch.com", "password": "ReadPass123", "name": "Report Reader", "role": ROLE_READER},
    {"username": "editor", "email": "editor@medlaunch.com", "password": "EditPass123", "name": "Report Editor", "role": ROLE_EDITOR},
    {"username": "admin", "email": "admin@medlaunch.com", "password": "AdminPass123", "name": "System Admin", "role": ROLE_ADMIN},
]


def _d(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=dt_timezone.utc)


def _deficiency(report_id: str, code: str, description: str, severity: str, due: datetime | None) -> dict[str, Any]:
    return {
        # Stable across re-seeds
        "id": str(uuid.uuid5(uuid.UUID(report_id), code)),
        "standardCode": code,
        "description": description,
        "severity": severity,
        "dueDate": due.isoformat().replace("+00:00", "Z") if due else None,
    }


MERCY_ID = "550e8400-e29b-41d4-a716-446655440100"
ST_MARYS_ID = "550e8400-e29b-41d4-a716-446655440101"
RIVERSIDE_ID = "550e8400-e29b-41d4-a716-446655440102"
METRO_ID = "550e8400-e29b-41d4-a716-446655440103"
NORTHSIDE_ID = "550e8400-e29b-41d4-a716-446655440104"


SAMPLE_REPORTS: list[dict[str, Any]] = [
    {
        "id": MERCY_ID,
        "facility_id": "mercy-general-hospital",
        "survey_type": "infection_control",
        "survey_date": _d(2024, 7, 15),
        "lead_surveyor": "Dr. Sarah Johnson",
        "survey_scope": ["ICU", "Emergency Department", "Surgical Services", "Medical Floors"],
        "compliance_score": 78,
        "status": "deficient",
        "accreditation_body": "Joint Commission",
        "deficiencies": [
            _deficiency(MERCY_ID, "IC.01.01", "Hand hygiene compliance rate observed at 72% in ICU, below required 85% threshold", "major", _d(2024, 9, 15)),
            _deficiency(MERCY_ID, "IC.02.01", "Isolation precaution signage missing from 3 patient rooms in Medical Floor East", "minor", _d(2024, 8, 30)),
            _deficiency(MERCY_ID, "IC.01.03", "CRITICAL: Contaminated surgical instruments found in sterile processing area", "immediate_jeopardy", _d(2024, 7, 20)),
        ],
        "corrective_action_due": _d(2024, 9, 15),
        "follow_up_required": True,
        "surveyor_notes": [
            "Overall infection control program is well-structured",
            "Staff training records are comprehensive",
            "Immediate attention needed for surgical instrument processing",
        ],
        "created_at": _d(2024, 7, 15),
        "updated_at": _d(2024, 7, 18),
        "version": 2,
    },
    {
        "id": ST_MARYS_ID,
        "facility_id": "st-marys-medical-center",
        "survey_type": "medication_management",
        "survey_date": _d(2024, 6, 20),
        "lead_surveyor": "PharmD Lisa Chen",
        "survey_scope": ["Pharmacy", "ICU", "Emergency Department", "Medical/Surgical Units"],
        "compliance_score": 92,
        "status": "compliant",
        "accreditation_body": "Joint Commission",
        "deficiencies": [
            _deficiency(ST_MARYS_ID, "MM.01.01", "Two high-alert medications found without proper labeling in ED medication room", "minor", _d(2024, 8, 20)),
        ],
        "corrective_action_due": _d(2024, 8, 20),
        "follow_up_required": False,
        "surveyor_notes": [
            "Excellent medication reconciliation processes",
            "Pharmacy oversight is exemplary",
            "Minor labeling issue easily correctable",
        ],
        "created_at": _d(2024, 6, 20),
        "updated_at": _d(2024, 6, 20),
        "version": 1,
    },
    {
        "id": RIVERSIDE_ID,
        "facility_id": "riverside-community-hospital",
        "survey_type": "comprehensive",
        "survey_date": _d(2024, 5, 10),
        "lead_surveyor": "RN Michael Rodriguez",
        "survey_scope": ["All Departments", "Patient Safety", "Quality Management", "Leadership"],
        "compliance_score": 95,
        "status": "compliant",
        "accreditation_body": "ACHC",
        "deficiencies": [],
        "corrective_action_due": _d(2024, 6, 10),
        "follow_up_required": False,
        "surveyor_notes": [
            "Outstanding performance across all standards",
            "Leadership commitment to quality is evident",
            "Patient satisfaction scores consistently high",
        ],
        "created_at": _d(2024, 5, 10),
        "updated_at": _d(2024, 5, 12),
        "version": 1,
    },
    {
        "id": METRO_ID,
        "facility_id": "metro-general-hospital",
        "survey_type": "patient_safety",
        "survey_date": _d(2024, 8, 1),
        "lead_surveyor": "Dr. Amanda Foster",
        "survey_scope": ["Surgery", "Emergency Department", "Radiology", "Laboratory"],
        "compliance_score": 65,
        "status": "immediate_jeopardy",
        "accreditation_body": "DNV",
        "deficiencies": [
            _deficiency(METRO_ID, "PS.01.01", "IMMEDIATE JEOPARDY: Patient identification protocol failures resulted in wrong-site surgery incident", "immediate_jeopardy", _d(2024, 8, 5)),
            _deficiency(METRO_ID, "PS.02.01", "Fall prevention protocols not consistently followed in 60% of patient rooms observed", "major", _d(2024, 9, 1)),
            _deficiency(METRO_ID, "PS.03.01", "Medication administration records show timing discrepancies in 15% of cases reviewed", "major", _d(2024, 8, 25)),
            _deficiency(METRO_ID, "PS.01.02", "Patient wristbands found to be illegible or missing in 8 cases during survey", "minor", _d(2024, 8, 15)),
        ],
        "corrective_action_due": _d(2024, 8, 5),
        "follow_up_required": True,
        "surveyor_notes": [
            "URGENT: Immediate action required to address patient identification failures",
            "Overall patient safety culture needs significant improvement",
            "Recommend comprehensive staff retraining program",
            "Follow-up survey scheduled within 30 days",
        ],
        "created_at": _d(2024, 8, 1),
        "updated_at": _d(2024, 8, 3),
        "version": 3,
    },
    {
        "id": NORTHSIDE_ID,
        "facility_id": "northside-medical-center",
        "survey_type": "medication_management",
        "survey_date": _d(2024, 4, 18),
        "lead_surveyor": "PharmD Robert Kim",
        "survey_scope": ["Central Pharmacy", "ICU", "Pediatrics", "Oncology"],
        "compliance_score": 88,
        "status": "deficient",
        "accreditation_body": "Joint Commission",
        "deficiencies": [
            _deficiency(NORTHSIDE_ID, "MM.02.01", "Chemotherapy medication storage temperatures exceeded acceptable range for 4-hour period", "major", _d(2024, 6, 18)),
            _deficiency(NORTHSIDE_ID, "MM.03.01", "Pediatric medication dosing calculations found to lack double-verification in 3 instances", "major", _d(2024, 6, 1)),
            _deficiency(NORTHSIDE_ID, "MM.01.02", "High-alert medication storage area lacks adequate security measures", "minor", _d(2024, 5, 30)),
        ],
        "corrective_action_due": _d(2024, 6, 18),
        "follow_up_required": True,
        "surveyor_notes": [
            "Pharmacy staff demonstrate strong clinical knowledge",
            "Temperature monitoring systems need upgrade",
            "Pediatric protocols require immediate attention",
        ],
        "created_at": _d(2024, 4, 18),
        "updated_at": _d(2024, 4, 20),
        "version": 1,
    },
]


@transaction.atomic
def seed_roles() -> dict[str, Group]:
    return {name: Group.objects.get_or_create(name=name)[0] for name in ALL_ROLES}


@transaction.atomic
def seed_users() -> list:
    groups = seed_roles()
    User = get_user_model()
    users = []
    for entry in DEMO_USERS:
        first, _, last = entry["name"].partition(" ")
        user, created = User.objects.get_or_create(
            username=entry["username"],
            defaults={"email": entry["email"], "first_name": first, "last_name": last},
        )
        if created:
            user.set_password(entry["password"])
            user.save(update_fields=["password"])
        user.groups.set([groups[entry["role"]]])
        users.append(user)
    return users


@transaction.atomic
def seed_reports() -> int:
    """
    Insert missing sample reports; existing rows are left as they are.
    Bypasses ReportService: ids and versions are restored as given.
    """
    created = 0
    for row in SAMPLE_REPORTS:
        if Report.objects.filter(pk=row["id"]).exists():
            continue
        Report(**copy.deepcopy(row)).save(force_insert=True)
        created += 1
    return created
