import pytest

from survey_core.common.api.exceptions import ForbiddenError
from survey_core.reports import rules

# (role, status) -> may edit
EDIT_MATRIX = [
    ("reader", "compliant", True),
    ("editor", "compliant", True),
    ("admin", "compliant", True),
    ("reader", "deficient", False),
    ("editor", "deficient", True),
    ("admin", "deficient", True),
    ("reader", "immediate_jeopardy", False),
    ("editor", "immediate_jeopardy", False),
    ("admin", "immediate_jeopardy", True),
    ("reader", "archived", False),
    ("editor", "archived", False),
    ("admin", "archived", False),
]


@pytest.mark.parametrize("role,status,allowed", EDIT_MATRIX)
def test_edit_matrix(role, status, allowed):
    assert rules.can_edit(role, status) is allowed


@pytest.mark.parametrize("role,status,allowed", EDIT_MATRIX)
def test_check_edit_permission_raises_only_when_denied(role, status, allowed):
    if allowed:
        rules.check_edit_permission(role, status)
        return

    with pytest.raises(ForbiddenError) as exc_info:
        rules.check_edit_permission(role, status)

    err = exc_info.value
    assert err.status_code == 403
    assert err.details["userRole"] == role
    assert err.details["reportStatus"] == status


def test_immediate_jeopardy_denial_names_admin_as_required_role():
    with pytest.raises(ForbiddenError) as exc_info:
        rules.check_edit_permission("editor", "immediate_jeopardy")

    details = exc_info.value.details
    assert details["requiredRole"] == "admin"
    assert details["allowedRoles"] == ["admin"]
    assert str(exc_info.value.detail) == "Role 'editor' cannot edit reports with status 'immediate_jeopardy'"


def test_deficient_denial_lists_allowed_roles_least_privileged_first():
    details = rules.edit_denial_details("reader", "deficient")
    assert details["requiredRole"] == "editor"
    assert details["allowedRoles"] == ["editor", "admin"]


def test_unknown_status_has_no_required_role():
    details = rules.edit_denial_details("admin", "archived")
    assert details["requiredRole"] is None
    assert details["allowedRoles"] == []


def test_extra_details_are_merged_into_denial():
    extra = {"versionConflict": {"expectedVersion": 1, "currentVersion": 4}}
    with pytest.raises(ForbiddenError) as exc_info:
        rules.check_edit_permission("editor", "immediate_jeopardy", extra_details=extra)

    details = exc_info.value.details
    assert details["versionConflict"] == {"expectedVersion": 1, "currentVersion": 4}
    assert details["requiredRole"] == "admin"


def test_edit_roles_accept_text_choices_members():
    from survey_core.reports.models import SurveyStatus

    assert rules.can_edit("editor", SurveyStatus.DEFICIENT)
    assert not rules.can_edit("editor", SurveyStatus.IMMEDIATE_JEOPARDY)


@pytest.mark.parametrize("role,allowed", [("reader", False), ("editor", True), ("admin", True)])
def test_create_and_upload_roles(role, allowed):
    assert rules.can_create(role) is allowed
    assert rules.can_upload(role) is allowed


def test_reader_cannot_create():
    with pytest.raises(ForbiddenError) as exc_info:
        rules.check_create_permission("reader")
    assert exc_info.value.details["requiredRoles"] == ["editor", "admin"]


def test_reader_cannot_upload():
    with pytest.raises(ForbiddenError):
        rules.check_upload_permission("reader")
