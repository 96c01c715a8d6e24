# survey_core/reports/api/views.py
from __future__ import annotations

from uuid import UUID

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.parsers import FormParser, MultiPartParser

from drf_spectacular.utils import OpenApiParameter, extend_schema

from survey_core.common.api.exceptions import ValidationFailed
from survey_core.common.api.pagination import PageWindow
from survey_core.common.api.responses import etag_for, success_response
from survey_core.common.permissions import ReportPermission
from survey_core.iam.auth import get_actor
from survey_core.reports.api.serializers import (
    AttachmentSerializer,
    AttachmentUploadSerializer,
    DeficiencyCreateSerializer,
    ReportCreateSerializer,
    ReportListQuerySerializer,
    ReportQuerySerializer,
    ReportSerializer,
    ReportUpdateSerializer,
)
from survey_core.reports.formatting import ReportQuery
from survey_core.reports.models import Report
from survey_core.reports.selectors import ReportSelectors
from survey_core.reports.services import ReportService
from survey_core.reports.uploads import AttachmentService

# query param -> ReportQuerySerializer field
REPORT_QUERY_PARAMS = {
    "view": "view",
    "include": "include",
    "page": "page",
    "limit": "limit",
    "deficiencies.severity": "deficiency_severity",
    "deficiencies.sortBy": "deficiency_sort_by",
    "deficiencies.order": "deficiency_order",
}
_FIELD_TO_PARAM = {field: param for param, field in REPORT_QUERY_PARAMS.items()}

UPLOAD_FIELD = "attachment"


def _parse_report_id(pk) -> UUID:
    try:
        return UUID(str(pk))
    except (TypeError, ValueError):
        raise ValidationFailed(
            "Invalid report id",
            details={"fields": {"id": "Must be a valid UUID."}},
        )


def _report_query(request) -> ReportQuery:
    params = request.query_params
    raw = {field: params.get(param) for param, field in REPORT_QUERY_PARAMS.items() if param in params}

    ser = ReportQuerySerializer(data=raw)
    if not ser.is_valid():
        # Report errors under the names the client sent.
        raise DRFValidationError({_FIELD_TO_PARAM.get(k, k): v for k, v in ser.errors.items()})

    data = ser.validated_data
    return ReportQuery(
        view=data["view"],
        include=data.get("include") or None,
        page=data["page"],
        limit=data["limit"],
        page_supplied="page" in params,
        limit_supplied="limit" in params,
        deficiency_severity=data.get("deficiency_severity"),
        deficiency_sort_by=data["deficiency_sort_by"],
        deficiency_order=data["deficiency_order"],
    )


def _resolve_version(request, validated: dict) -> int:
    """
    Body `version` wins; otherwise If-Match ("3", 3 or W/"3").
    """
    if "version" in validated:
        return validated["version"]

    header = (request.headers.get("If-Match") or "").strip()
    if header:
        raw = header[2:] if header.startswith("W/") else header
        raw = raw.strip().strip('"')
        if raw.isdigit() and int(raw) >= 1:
            return int(raw)
        raise ValidationFailed(
            "Invalid If-Match header",
            details={"fields": {"If-Match": "Must be a positive integer version."}},
        )

    raise ValidationFailed(
        "Validation failed",
        details={"fields": {"version": "This field is required."}},
    )


class ReportViewSet(viewsets.ViewSet):
    permission_classes = [ReportPermission]
    serializer_class = ReportSerializer
    queryset = Report.objects.none()

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    @extend_schema(parameters=[ReportListQuerySerializer], tags=["Reports"])
    def list(self, request):
        ser = ReportListQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        q = ser.validated_data

        qs = ReportSelectors.list_reports(
            status=q.get("status"),
            survey_type=q.get("surveyType"),
            facility_id=q.get("facilityId"),
            sort_by=q["sortBy"],
            sort_order=q["sortOrder"],
        )
        total = qs.count()
        meta: dict = {"total": total}

        if "page" in q or "limit" in q:
            window = PageWindow(page=q.get("page", 1), limit=q.get("limit", 20), total_items=total)
            qs = qs[window.start:window.end]
            meta["pagination"] = window.as_dict()

        return success_response(ReportSerializer(qs, many=True).data, meta=meta)

    @extend_schema(
        parameters=[
            OpenApiParameter("view", str, enum=["default", "summary"]),
            OpenApiParameter("include", str, description="Comma-separated field names, or `basic`."),
            OpenApiParameter("page", int),
            OpenApiParameter("limit", int),
            OpenApiParameter("deficiencies.severity", str, enum=["minor", "major", "immediate_jeopardy"]),
            OpenApiParameter("deficiencies.sortBy", str, enum=["dueDate", "severity", "standardCode"]),
            OpenApiParameter("deficiencies.order", str, enum=["asc", "desc"]),
        ],
        tags=["Reports"],
    )
    def retrieve(self, request, pk=None):
        report_id = _parse_report_id(pk)
        query = _report_query(request)
        report, data = ReportSelectors.get_report_view(report_id=report_id, query=query)
        return success_response(data, headers=etag_for(report.version))

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------
    @extend_schema(request=ReportCreateSerializer, responses={201: ReportSerializer}, tags=["Reports"])
    def create(self, request):
        ser = ReportCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        d = ser.validated_data

        report = ReportService.create_report(
            actor=get_actor(request),
            facility_id=d["facilityId"],
            survey_type=d["surveyType"],
            survey_date=d["surveyDate"],
            lead_surveyor=d["leadSurveyor"],
            survey_scope=d["surveyScope"],
            accreditation_body=d["accreditationBody"],
            corrective_action_due=d.get("correctiveActionDue"),
            follow_up_required=d.get("followUpRequired", False),
        )

        return success_response(
            ReportSerializer(report).data,
            message="Survey report created successfully",
            status=status.HTTP_201_CREATED,
            headers=etag_for(report.version),
        )

    @extend_schema(request=ReportUpdateSerializer, responses={200: ReportSerializer}, tags=["Reports"])
    def update(self, request, pk=None):
        report_id = _parse_report_id(pk)
        ser = ReportUpdateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        version = _resolve_version(request, ser.validated_data)

        report = ReportService.update_report(
            actor=get_actor(request),
            report_id=report_id,
            changes=ser.changes(),
            version=version,
        )

        return success_response(
            ReportSerializer(report).data,
            message="Survey report updated successfully",
            headers=etag_for(report.version),
        )

    @extend_schema(request=ReportUpdateSerializer, responses={200: ReportSerializer}, tags=["Reports"])
    def partial_update(self, request, pk=None):
        # PUT is already partial: omitted fields are left untouched.
        return self.update(request, pk=pk)

    @extend_schema(request=DeficiencyCreateSerializer, responses={201: ReportSerializer}, tags=["Reports"])
    @action(detail=True, methods=["post"], url_path="deficiencies")
    def deficiencies(self, request, pk=None):
        report_id = _parse_report_id(pk)
        ser = DeficiencyCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        d = ser.validated_data

        report = ReportService.add_deficiency(
            actor=get_actor(request),
            report_id=report_id,
            version=_resolve_version(request, d),
            standard_code=d["standardCode"],
            description=d["description"],
            severity=d["severity"],
            due_date=d.get("dueDate"),
        )

        return success_response(
            ReportSerializer(report).data,
            message="Deficiency added successfully",
            status=status.HTTP_201_CREATED,
            headers=etag_for(report.version),
        )

    # ------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------
    @extend_schema(
        request={"multipart/form-data": AttachmentUploadSerializer},
        responses={201: AttachmentSerializer},
        tags=["Reports"],
    )
    @action(detail=True, methods=["post"], url_path="attachment", parser_classes=[MultiPartParser, FormParser])
    def attachment(self, request, pk=None):
        report_id = _parse_report_id(pk)
        upload = request.FILES.get(UPLOAD_FIELD)
        if upload is None:
            raise ValidationFailed(
                "No file uploaded",
                details={"fields": {UPLOAD_FIELD: "A file is required."}},
            )

        attachment = AttachmentService.attach(
            actor=get_actor(request),
            report_id=report_id,
            upload=upload,
        )

        return success_response(
            AttachmentSerializer(attachment, context={"request": request}).data,
            message="File uploaded successfully",
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(responses={200: AttachmentSerializer(many=True)}, tags=["Reports"])
    @action(detail=True, methods=["get"], url_path="attachments")
    def attachments(self, request, pk=None):
        report_id = _parse_report_id(pk)
        qs = ReportSelectors.list_attachments(report_id=report_id)
        data = AttachmentSerializer(qs, many=True, context={"request": request}).data
        return success_response(data, meta={"total": len(data)})
