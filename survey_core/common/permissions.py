# survey_core/common/permissions.py

from __future__ import annotations

from typing import Set

from rest_framework.permissions import BasePermission, SAFE_METHODS

# Group/role names (Django auth Group names)
ROLE_READER = "reader"
ROLE_EDITOR = "editor"
ROLE_ADMIN = "admin"

ALL_ROLES = (ROLE_READER, ROLE_EDITOR, ROLE_ADMIN)

# Least privileged first.
ROLE_PRECEDENCE = {ROLE_READER: 1, ROLE_EDITOR: 2, ROLE_ADMIN: 3}


def _user_roles(user) -> Set[str]:
    """
    Resolve roles from Django groups.

    Default behavior:
    - Superuser is treated as admin.
    - If an authenticated user has no known group, treat them as reader.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(
            name for name in user.groups.values_list("name", flat=True) if name in ROLE_PRECEDENCE
        )

    if not roles:
        roles.add(ROLE_READER)

    return roles


def primary_role(user) -> str | None:
    """
    The single role an actor acts under: the most privileged one they hold.
    """
    roles = _user_roles(user)
    if not roles:
        return None
    return max(roles, key=ROLE_PRECEDENCE.__getitem__)


class BaseRolePermission(BasePermission):
    """
    Base permission class for role-based access control.

    Key behavior:
    - Requires authentication.
    - ADMIN bypass.
    - Uses allowed_roles_per_action for the coarse role gate.
    - If action is unknown and request is SAFE, fall back to list/retrieve.
    """
    message = "Insufficient permissions"

    # action -> allowed roles
    allowed_roles_per_action: dict[str, set[str]] = {}

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs or "id" in kwargs

        method = request.method.upper()
        if method in ("GET", "HEAD", "OPTIONS"):
            return "retrieve" if is_detail else "list"
        if method == "POST":
            return "create"
        if method == "PUT":
            return "update"
        if method == "PATCH":
            return "partial_update"
        if method == "DELETE":
            return "destroy"
        return None

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        roles = _user_roles(user)

        if ROLE_ADMIN in roles:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            is_detail = "pk" in kwargs or "id" in kwargs
            allowed = self.allowed_roles_per_action.get("retrieve" if is_detail else "list")

        if allowed is not None:
            return bool(roles & allowed)

        # Unknown action => deny
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class ReportPermission(BaseRolePermission):
    """
    Coarse gate for survey reports.

    Edits are open to every role here; the status-based policy
    (reports.rules.check_edit_permission) decides per report.
    """
    allowed_roles_per_action = {
        "list": {ROLE_READER, ROLE_EDITOR, ROLE_ADMIN},
        "retrieve": {ROLE_READER, ROLE_EDITOR, ROLE_ADMIN},
        "create": {ROLE_EDITOR, ROLE_ADMIN},
        "update": {ROLE_READER, ROLE_EDITOR, ROLE_ADMIN},
        "partial_update": {ROLE_READER, ROLE_EDITOR, ROLE_ADMIN},
        "destroy": set(),
        # Custom actions
        "deficiencies": {ROLE_READER, ROLE_EDITOR, ROLE_ADMIN},
        "attachment": {ROLE_EDITOR, ROLE_ADMIN},
        "attachments": {ROLE_READER, ROLE_EDITOR, ROLE_ADMIN},
    }
