# survey_core/reports/rules.py
"""
Authorization policy for reports. Pure: no queries, no request objects.
"""
from __future__ import annotations

from survey_core.common.api.exceptions import ForbiddenError
from survey_core.common.permissions import ROLE_ADMIN, ROLE_EDITOR, ROLE_PRECEDENCE, ROLE_READER
from survey_core.reports.models import SurveyStatus

CREATE_ROLES = frozenset({ROLE_EDITOR, ROLE_ADMIN})
UPLOAD_ROLES = frozenset({ROLE_EDITOR, ROLE_ADMIN})

# Keyed by the report's current (pre-update) status.
EDIT_ROLES_BY_STATUS: dict[str, frozenset[str]] = {
    SurveyStatus.IMMEDIATE_JEOPARDY.value: frozenset({ROLE_ADMIN}),
    SurveyStatus.DEFICIENT.value: frozenset({ROLE_EDITOR, ROLE_ADMIN}),
    # Readers may edit compliant reports; which fields they touch is not restricted.
    SurveyStatus.COMPLIANT.value: frozenset({ROLE_READER, ROLE_EDITOR, ROLE_ADMIN}),
}


def can_create(role: str) -> bool:
    return role in CREATE_ROLES


def can_upload(role: str) -> bool:
    return role in UPLOAD_ROLES


def edit_roles_for_status(status: str) -> frozenset[str]:
    """
    Unrecognized statuses map to the empty set: deny.
    """
    return EDIT_ROLES_BY_STATUS.get(str(status), frozenset())


def can_edit(role: str, status: str) -> bool:
    return role in edit_roles_for_status(status)


def minimum_role(roles: frozenset[str]) -> str | None:
    if not roles:
        return None
    return min(roles, key=ROLE_PRECEDENCE.__getitem__)


def _ordered(roles: frozenset[str]) -> list[str]:
    return sorted(roles, key=ROLE_PRECEDENCE.__getitem__)


def edit_denial_details(role: str, status: str) -> dict:
    allowed = edit_roles_for_status(status)
    return {
        "userRole": role,
        "reportStatus": str(status),
        "requiredRole": minimum_role(allowed),
        "allowedRoles": _ordered(allowed),
    }


def check_edit_permission(role: str, status: str, *, extra_details: dict | None = None) -> None:
    """
    Raise ForbiddenError unless `role` may edit a report currently in `status`.
    """
    if can_edit(role, status):
        return

    details = edit_denial_details(role, status)
    if extra_details:
        details.update(extra_details)
    raise ForbiddenError(
        f"Role '{role}' cannot edit reports with status '{status}'",
        details=details,
    )


def check_create_permission(role: str) -> None:
    if not can_create(role):
        raise ForbiddenError(
            "Insufficient permissions to create reports",
            details={"userRole": role, "requiredRoles": _ordered(CREATE_ROLES)},
        )


def check_upload_permission(role: str) -> None:
    if not can_upload(role):
        raise ForbiddenError(
            "Insufficient permissions to upload attachments",
            details={"userRole": role, "requiredRoles": _ordered(UPLOAD_ROLES)},
        )
