# survey_core/common/models.py
from __future__ import annotations

import uuid

from django.db import models


class UUIDModel(models.Model):
    """
    Server-generated UUID primary key.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class TimeStampedModel(models.Model):
    """
    Standard timestamps for append-only entities.

    Versioned entities set their own timestamps: queryset.update() skips auto_now.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
