# survey_core/reports/apps.py
from django.apps import AppConfig


class ReportsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "survey_core.reports"
    label = "reports"

    def ready(self):
        # Registers the report.created subscriber
        from survey_core.reports import notifications  # noqa: F401
