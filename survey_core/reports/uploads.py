# survey_core/reports/uploads.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError, transaction

from survey_core.common.api.exceptions import PayloadTooLarge, ValidationFailed
from survey_core.iam.auth import Actor
from survey_core.reports import rules
from survey_core.reports.models import Attachment
from survey_core.reports.selectors import ReportSelectors

logger = logging.getLogger(__name__)

TYPE_REJECTED = "type_rejected"
SIZE_EXCEEDED = "size_exceeded"


@dataclass(frozen=True)
class UploadDecision:
    accepted: bool
    reason: str | None = None

    @classmethod
    def accept(cls) -> "UploadDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "UploadDecision":
        return cls(accepted=False, reason=reason)


def allowed_types() -> list[str]:
    return list(getattr(settings, "UPLOAD_ALLOWED_TYPES", []))


def max_upload_bytes() -> int:
    return int(getattr(settings, "UPLOAD_MAX_BYTES", 10 * 1024 * 1024))


def validate_upload(mime_type: str | None, size: int) -> UploadDecision:
    """
    Size is checked before type: an oversized file is rejected as such whatever it is.
    """
    if size > max_upload_bytes():
        return UploadDecision.reject(SIZE_EXCEEDED)
    if (mime_type or "").split(";")[0].strip().lower() not in allowed_types():
        return UploadDecision.reject(TYPE_REJECTED)
    return UploadDecision.accept()


def raise_for_decision(decision: UploadDecision, *, mime_type: str | None, size: int) -> None:
    if decision.accepted:
        return
    if decision.reason == SIZE_EXCEEDED:
        limit = max_upload_bytes()
        raise PayloadTooLarge(
            f"File size exceeds limit of {limit // (1024 * 1024)}MB",
            details={"maxBytes": limit, "size": size},
        )
    raise ValidationFailed(
        f"File type {mime_type} not allowed",
        details={"mimetype": mime_type, "allowedTypes": allowed_types()},
    )


class AttachmentService:
    @staticmethod
    @transaction.atomic
    def attach(*, actor: Actor, report_id: UUID | str, upload) -> Attachment:
        """
        Store one uploaded file against a report.
        Rejected files never reach storage; the report version is untouched.
        """
        rules.check_upload_permission(actor.role)
        report = ReportSelectors.get_report(report_id=report_id)

        mime_type = getattr(upload, "content_type", None)
        size = int(getattr(upload, "size", 0) or 0)
        decision = validate_upload(mime_type, size)
        if not decision.accepted:
            logger.info(
                "upload rejected report_id=%s reason=%s mimetype=%s size=%s",
                report.id,
                decision.reason,
                mime_type,
                size,
            )
        raise_for_decision(decision, mime_type=mime_type, size=size)

        attachment = Attachment(
            report=report,
            original_name=getattr(upload, "name", "") or "upload",
            mime_type=mime_type,
            size=size,
            uploaded_by=actor.actor_id,
        )
        attachment.file.save(attachment.original_name, upload, save=False)
        try:
            attachment.save()
        except DatabaseError:
            # No row points at the stored file any more.
            logger.warning("attachment row failed report_id=%s file=%s", report.id, attachment.file.name)
            attachment.file.delete(save=False)
            raise

        logger.info(
            "attachment stored report_id=%s file_id=%s size=%s by=%s",
            report.id,
            attachment.id,
            size,
            actor.actor_id,
        )
        return attachment
