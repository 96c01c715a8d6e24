# survey_core/common/spectacular_hooks.py
from __future__ import annotations


def preprocess_exclude_legacy_api(endpoints):
    """
    ROOT_URLCONF mounts the API twice:
      /api/v1/  (primary)
      /api/     (unversioned alias)

    Left alone, drf-spectacular documents both and suffixes operationIds
    (retrieve2, list2, ...). Keep only /api/v1/* in the schema.
    """
    return [
        (path, path_regex, method, callback)
        for path, path_regex, method, callback in endpoints
        if not (path.startswith("/api/") and not path.startswith("/api/v1/"))
    ]
