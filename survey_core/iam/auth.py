# survey_core/iam/auth.py

from __future__ import annotations

from dataclasses import dataclass

from rest_framework.exceptions import NotAuthenticated
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.tokens import RefreshToken

from survey_core.common.permissions import primary_role


@dataclass(frozen=True)
class Actor:
    """
    The resolved caller the report pipeline works with.
    """
    actor_id: str
    role: str


def resolve_actor(user) -> Actor:
    role = primary_role(user)
    if role is None:
        raise NotAuthenticated("Access token required")
    return Actor(actor_id=str(user.pk), role=role)


def get_actor(request) -> Actor:
    """
    Actor for the current request.

    Set by ActorJWTAuthentication; resolved from request.user otherwise
    (force_authenticate in tests, session auth in the browsable API).
    """
    actor = getattr(request, "actor", None)
    if actor is None:
        actor = resolve_actor(request.user)
        request.actor = actor
    return actor


def display_name(user) -> str:
    full = user.get_full_name() if hasattr(user, "get_full_name") else ""
    return full or getattr(user, "username", "") or ""


def issue_tokens(user) -> RefreshToken:
    """
    Refresh token carrying role/email claims; they are copied onto its access token.
    """
    refresh = RefreshToken.for_user(user)
    refresh["role"] = primary_role(user)
    refresh["email"] = getattr(user, "email", "") or ""
    return refresh


class ActorJWTAuthentication(JWTAuthentication):
    """
    Authenticate using Authorization: Bearer <access>.

    The role is re-resolved from the user's groups on every request, so a
    revoked group takes effect before the token expires.
    """

    def authenticate(self, request):
        auth_result = super().authenticate(request)
        if auth_result is None:
            return None

        user, token = auth_result
        request.actor = resolve_actor(user)
        return user, token
