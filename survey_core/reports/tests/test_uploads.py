import pytest
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError

from survey_core.common.api.exceptions import PayloadTooLarge, ValidationFailed
from survey_core.reports.models import Attachment, Report
from survey_core.reports.uploads import (
    SIZE_EXCEEDED,
    TYPE_REJECTED,
    AttachmentService,
    UploadDecision,
    raise_for_decision,
    validate_upload,
)
from survey_core.tests.helpers import actor_for, envelope_error, make_report


def upload_url(report_id) -> str:
    return f"/api/v1/reports/{report_id}/attachment/"


def pdf(name="findings.pdf", content=b"%PDF-1.4 test"):
    return SimpleUploadedFile(name, content, content_type="application/pdf")


# ---------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------
def test_accepts_allowed_type_within_limit():
    assert validate_upload("application/pdf", 1024) == UploadDecision.accept()


def test_type_check_ignores_parameters_and_case():
    assert validate_upload("Text/Plain; charset=utf-8", 10).accepted


def test_rejects_unlisted_type():
    assert validate_upload("application/x-msdownload", 10) == UploadDecision.reject(TYPE_REJECTED)
    assert validate_upload(None, 10).reason == TYPE_REJECTED


def test_size_is_checked_before_type(settings):
    settings.UPLOAD_MAX_BYTES = 100
    assert validate_upload("application/x-msdownload", 101).reason == SIZE_EXCEEDED
    assert validate_upload("application/pdf", 100).accepted


def test_raise_for_decision():
    raise_for_decision(UploadDecision.accept(), mime_type="application/pdf", size=1)

    with pytest.raises(PayloadTooLarge) as exc_info:
        raise_for_decision(UploadDecision.reject(SIZE_EXCEEDED), mime_type="application/pdf", size=11 * 1024 * 1024)
    assert str(exc_info.value.detail) == "File size exceeds limit of 10MB"

    with pytest.raises(ValidationFailed) as exc_info:
        raise_for_decision(UploadDecision.reject(TYPE_REJECTED), mime_type="video/mp4", size=1)
    assert str(exc_info.value.detail) == "File type video/mp4 not allowed"


# ---------------------------------------------------------------------
# API
# ---------------------------------------------------------------------
@pytest.mark.django_db
def test_editor_uploads_attachment(editor_client, editor):
    report = make_report()

    r = editor_client.post(upload_url(report.id), {"attachment": pdf()}, format="multipart")
    assert r.status_code == 201, r.json()
    assert r.json()["message"] == "File uploaded successfully"

    data = r.json()["data"]
    assert data["originalName"] == "findings.pdf"
    assert data["mimetype"] == "application/pdf"
    assert data["size"] == len(b"%PDF-1.4 test")
    assert data["uploadedBy"] == str(editor.pk)
    assert data["downloadUrl"].startswith("http://testserver/media/reports/")

    attachment = Attachment.objects.get(pk=data["fileId"])
    assert attachment.report_id == report.id
    # uploads never move the report version
    assert Report.objects.get(pk=report.pk).version == 1


@pytest.mark.django_db
def test_oversized_upload_is_rejected(editor_client, settings):
    settings.UPLOAD_MAX_BYTES = 8
    report = make_report()

    r = editor_client.post(upload_url(report.id), {"attachment": pdf()}, format="multipart")
    assert r.status_code == 413

    err = envelope_error(r)
    assert err["code"] == "FILE_TOO_LARGE"
    assert err["details"]["maxBytes"] == 8
    assert Attachment.objects.count() == 0


@pytest.mark.django_db
def test_disallowed_type_is_rejected(editor_client):
    report = make_report()
    exe = SimpleUploadedFile("tool.exe", b"MZ", content_type="application/x-msdownload")

    r = editor_client.post(upload_url(report.id), {"attachment": exe}, format="multipart")
    assert r.status_code == 400

    err = envelope_error(r)
    assert err["code"] == "VALIDATION_ERROR"
    assert err["message"] == "File type application/x-msdownload not allowed"
    assert Attachment.objects.count() == 0


@pytest.mark.django_db
def test_missing_file_is_rejected(editor_client):
    report = make_report()
    r = editor_client.post(upload_url(report.id), {}, format="multipart")
    assert r.status_code == 400
    assert envelope_error(r)["message"] == "No file uploaded"


@pytest.mark.django_db
def test_reader_cannot_upload(reader_client):
    report = make_report()
    r = reader_client.post(upload_url(report.id), {"attachment": pdf()}, format="multipart")
    assert r.status_code == 403
    assert Attachment.objects.count() == 0


@pytest.mark.django_db
def test_upload_to_unknown_report_is_not_found(editor_client):
    r = editor_client.post(
        upload_url("11111111-2222-3333-4444-555555555555"),
        {"attachment": pdf()},
        format="multipart",
    )
    assert r.status_code == 404


@pytest.mark.django_db
def test_list_attachments(editor_client, reader_client):
    report = make_report()
    editor_client.post(upload_url(report.id), {"attachment": pdf("a.pdf")}, format="multipart")
    editor_client.post(upload_url(report.id), {"attachment": pdf("b.pdf")}, format="multipart")

    r = reader_client.get(f"/api/v1/reports/{report.id}/attachments/")
    assert r.status_code == 200

    body = r.json()
    assert body["meta"] == {"total": 2}
    assert {row["originalName"] for row in body["data"]} == {"a.pdf", "b.pdf"}


@pytest.mark.django_db
def test_stored_file_is_removed_when_the_row_insert_fails(editor, monkeypatch):
    report = make_report()
    written = []

    def failing_save(self, *args, **kwargs):
        written.append(self.file.name)
        raise DatabaseError("insert failed")

    monkeypatch.setattr(Attachment, "save", failing_save)

    with pytest.raises(DatabaseError):
        AttachmentService.attach(actor=actor_for(editor), report_id=report.id, upload=pdf())

    assert len(written) == 1
    assert written[0].startswith(f"reports/{report.id}/")
    assert not default_storage.exists(written[0])
