# config/urls.py
from django.contrib import admin
from django.urls import include, path

from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from survey_core.common.views import HealthView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", HealthView.as_view(), name="health"),

    # OpenAPI
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),

    # Primary versioned API
    path("api/v1/", include("survey_core.api.urls")),

    # Unversioned alias, kept after schema/docs so those explicit routes win.
    path("api/", include("survey_core.api.urls")),
]

handler404 = "survey_core.common.views.not_found"
handler500 = "survey_core.common.views.server_error"
