# survey_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from survey_core.iam.api.auth import LoginView, RefreshView
from survey_core.iam.api.me import MeView
from survey_core.reports.api.views import ReportViewSet

router = DefaultRouter()
router.register(r"reports", ReportViewSet, basename="reports")

urlpatterns = [
    # Auth + /me
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("me/", MeView.as_view(), name="me"),
]

urlpatterns += router.urls
