# survey_core/iam/openapi.py
from drf_spectacular.extensions import OpenApiAuthenticationExtension


class ActorJWTAuthenticationScheme(OpenApiAuthenticationExtension):
    target_class = "survey_core.iam.auth.ActorJWTAuthentication"
    name = "BearerJWT"

    def get_security_definition(self, auto_schema):
        return {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Send the access token from /auth/login/ as `Authorization: Bearer <token>`.",
        }
