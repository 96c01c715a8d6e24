# survey_core/iam/api/me.py

from __future__ import annotations

from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema

from survey_core.common.api.responses import success_response
from survey_core.iam.api.serializers import UserSummarySerializer
from survey_core.iam.auth import display_name, get_actor


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: UserSummarySerializer}, tags=["IAM"])
    def get(self, request):
        """
        The caller as the report pipeline sees them.
        """
        actor = get_actor(request)
        return success_response(
            {
                "id": actor.actor_id,
                "email": getattr(request.user, "email", "") or "",
                "name": display_name(request.user),
                "role": actor.role,
            }
        )
