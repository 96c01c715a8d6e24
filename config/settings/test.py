# config/settings/test.py
import tempfile

from .base import *  # noqa

DEBUG = False
ENVIRONMENT = "test"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

MEDIA_ROOT = Path(tempfile.mkdtemp(prefix="survey-reports-media-"))

# Keep the detached notification thread fast and deterministic in tests.
NOTIFICATION_DELAY_SECONDS = 0
NOTIFICATION_FAILURE_RATE = 0.0

LOGGING["root"]["level"] = "WARNING"
LOGGING["loggers"]["survey_core"]["level"] = "INFO"
