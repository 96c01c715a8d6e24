# survey_core/iam/api/serializers.py
from __future__ import annotations

from django.contrib.auth import authenticate, get_user_model
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed


class LoginRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)

    def validate(self, attrs):
        User = get_user_model()
        candidate = User.objects.filter(email__iexact=attrs["email"]).order_by("pk").first()

        user = None
        if candidate is not None:
            user = authenticate(
                request=self.context.get("request"),
                username=getattr(candidate, User.USERNAME_FIELD),
                password=attrs["password"],
            )

        if user is None:
            raise AuthenticationFailed("Invalid email or password")

        attrs["user"] = user
        return attrs


class RefreshRequestSerializer(serializers.Serializer):
    refreshToken = serializers.CharField()


class UserSummarySerializer(serializers.Serializer):
    id = serializers.CharField()
    email = serializers.EmailField(allow_blank=True)
    name = serializers.CharField(allow_blank=True)
    role = serializers.CharField()


class LoginResponseSerializer(serializers.Serializer):
    token = serializers.CharField()
    refreshToken = serializers.CharField()
    user = UserSummarySerializer()
    expiresIn = serializers.CharField()


class RefreshResponseSerializer(serializers.Serializer):
    token = serializers.CharField()
    expiresIn = serializers.CharField()
