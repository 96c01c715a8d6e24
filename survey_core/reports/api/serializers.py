# survey_core/reports/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from survey_core.common.api.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT
from survey_core.reports.models import (
    AccreditationBody,
    Attachment,
    DeficiencySeverity,
    SurveyStatus,
    SurveyType,
)

DEFICIENCY_SORT_KEYS = ("dueDate", "severity", "standardCode")
SORT_ORDERS = ("asc", "desc")
REPORT_SORT_KEYS = ("createdAt", "updatedAt", "complianceScore", "status")


# ---------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------
class DeficiencySerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    standardCode = serializers.CharField(read_only=True)
    description = serializers.CharField(read_only=True)
    severity = serializers.CharField(read_only=True)
    dueDate = serializers.CharField(read_only=True, allow_null=True)


class ReportSerializer(serializers.Serializer):
    """
    Full report shape, camelCase on the wire.
    """
    id = serializers.UUIDField(read_only=True)
    facilityId = serializers.CharField(source="facility_id", read_only=True)
    surveyType = serializers.CharField(source="survey_type", read_only=True)
    surveyDate = serializers.DateTimeField(source="survey_date", read_only=True)
    leadSurveyor = serializers.CharField(source="lead_surveyor", read_only=True)
    surveyScope = serializers.ListField(source="survey_scope", child=serializers.CharField(), read_only=True)
    complianceScore = serializers.IntegerField(source="compliance_score", read_only=True)
    status = serializers.CharField(read_only=True)
    accreditationBody = serializers.CharField(source="accreditation_body", read_only=True)
    deficiencies = DeficiencySerializer(many=True, read_only=True)
    correctiveActionDue = serializers.DateTimeField(source="corrective_action_due", read_only=True)
    followUpRequired = serializers.BooleanField(source="follow_up_required", read_only=True)
    surveyorNotes = serializers.ListField(source="surveyor_notes", child=serializers.CharField(), read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)
    version = serializers.IntegerField(read_only=True)


class AttachmentSerializer(serializers.ModelSerializer):
    fileId = serializers.UUIDField(source="id", read_only=True)
    originalName = serializers.CharField(source="original_name", read_only=True)
    mimetype = serializers.CharField(source="mime_type", read_only=True)
    downloadUrl = serializers.SerializerMethodField()
    uploadedAt = serializers.DateTimeField(source="created_at", read_only=True)
    uploadedBy = serializers.CharField(source="uploaded_by", read_only=True)

    class Meta:
        model = Attachment
        fields = ["fileId", "originalName", "size", "mimetype", "downloadUrl", "uploadedAt", "uploadedBy"]

    def get_downloadUrl(self, obj: Attachment) -> str:
        url = obj.file.url
        request = self.context.get("request")
        return request.build_absolute_uri(url) if request is not None else url


# ---------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------
class ReportCreateSerializer(serializers.Serializer):
    facilityId = serializers.CharField(max_length=128)
    surveyType = serializers.ChoiceField(choices=SurveyType.choices)
    surveyDate = serializers.DateTimeField()
    leadSurveyor = serializers.CharField(max_length=255)
    surveyScope = serializers.ListField(child=serializers.CharField(max_length=255), allow_empty=False)
    accreditationBody = serializers.ChoiceField(choices=AccreditationBody.choices)
    correctiveActionDue = serializers.DateTimeField(required=False)
    followUpRequired = serializers.BooleanField(required=False, default=False)


class VersionedInputSerializer(serializers.Serializer):
    """
    `version` may come from the body or, failing that, the If-Match header.
    The view resolves which; here it is optional.
    """
    version = serializers.IntegerField(min_value=1, required=False)


class ReportUpdateSerializer(VersionedInputSerializer):
    surveyType = serializers.ChoiceField(choices=SurveyType.choices, required=False)
    leadSurveyor = serializers.CharField(max_length=255, required=False)
    surveyScope = serializers.ListField(child=serializers.CharField(max_length=255), required=False)
    complianceScore = serializers.IntegerField(min_value=0, max_value=100, required=False)
    status = serializers.ChoiceField(choices=SurveyStatus.choices, required=False)
    correctiveActionDue = serializers.DateTimeField(required=False)
    followUpRequired = serializers.BooleanField(required=False)
    surveyorNotes = serializers.ListField(child=serializers.CharField(), required=False)

    FIELD_MAP = {
        "surveyType": "survey_type",
        "leadSurveyor": "lead_surveyor",
        "surveyScope": "survey_scope",
        "complianceScore": "compliance_score",
        "status": "status",
        "correctiveActionDue": "corrective_action_due",
        "followUpRequired": "follow_up_required",
        "surveyorNotes": "surveyor_notes",
    }

    def changes(self) -> dict:
        """
        Only the fields the client sent, keyed by model column.
        """
        data = self.validated_data
        return {column: data[name] for name, column in self.FIELD_MAP.items() if name in data}


class DeficiencyCreateSerializer(VersionedInputSerializer):
    standardCode = serializers.CharField(max_length=64)
    description = serializers.CharField()
    severity = serializers.ChoiceField(choices=DeficiencySeverity.choices)
    dueDate = serializers.DateTimeField(required=False, allow_null=True)


class ReportQuerySerializer(serializers.Serializer):
    """
    Retrieval options. Dotted query params (deficiencies.sortBy, ...) are
    mapped onto the deficiency_* fields by the view.
    """
    view = serializers.ChoiceField(choices=["default", "summary"], default="default")
    include = serializers.CharField(required=False, allow_blank=True)
    page = serializers.IntegerField(min_value=1, default=DEFAULT_PAGE)
    limit = serializers.IntegerField(min_value=1, max_value=MAX_LIMIT, default=DEFAULT_LIMIT)
    deficiency_severity = serializers.ChoiceField(choices=DeficiencySeverity.choices, required=False)
    deficiency_sort_by = serializers.ChoiceField(choices=DEFICIENCY_SORT_KEYS, default="severity")
    deficiency_order = serializers.ChoiceField(choices=SORT_ORDERS, default="desc")


class ReportListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=SurveyStatus.choices, required=False)
    surveyType = serializers.ChoiceField(choices=SurveyType.choices, required=False)
    facilityId = serializers.CharField(required=False, max_length=128)
    sortBy = serializers.ChoiceField(choices=REPORT_SORT_KEYS, default="updatedAt")
    sortOrder = serializers.ChoiceField(choices=SORT_ORDERS, default="desc")
    page = serializers.IntegerField(min_value=1, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=MAX_LIMIT, required=False)


class AttachmentUploadSerializer(serializers.Serializer):
    attachment = serializers.FileField(allow_empty_file=True)
