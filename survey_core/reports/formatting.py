# survey_core/reports/formatting.py
"""
Report retrieval shapes: full, summary, include.

Pure over one already-loaded Report, so a response never mixes two versions.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, time, timezone as dt_timezone
from typing import Any, Callable

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from survey_core.common.api.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, paginate_sequence
from survey_core.reports.api.serializers import ReportSerializer
from survey_core.reports.models import DeficiencySeverity, Report

VIEW_DEFAULT = "default"
VIEW_SUMMARY = "summary"

SEVERITY_RANK = {
    DeficiencySeverity.IMMEDIATE_JEOPARDY.value: 3,
    DeficiencySeverity.MAJOR.value: 2,
    DeficiencySeverity.MINOR.value: 1,
}

# include=<name> -> key of the full report shape
INCLUDE_FIELDS: dict[str, str] = {
    "deficiencies": "deficiencies",
    "notes": "surveyorNotes",
    "surveyorNotes": "surveyorNotes",
    "complianceScore": "complianceScore",
    "status": "status",
    "surveyType": "surveyType",
    "facilityId": "facilityId",
    "leadSurveyor": "leadSurveyor",
    "surveyDate": "surveyDate",
    "accreditationBody": "accreditationBody",
    "surveyScope": "surveyScope",
    "correctiveActionDue": "correctiveActionDue",
    "followUpRequired": "followUpRequired",
    "version": "version",
}

INCLUDE_BASIC = "basic"
BASIC_FIELDS = ("facilityId", "surveyType", "complianceScore", "status", "surveyDate")


@dataclass(frozen=True)
class ReportQuery:
    view: str = VIEW_DEFAULT
    include: str | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    page_supplied: bool = False
    limit_supplied: bool = False
    deficiency_severity: str | None = None
    deficiency_sort_by: str = "severity"
    deficiency_order: str = "desc"

    @property
    def wants_pagination_envelope(self) -> bool:
        return self.page_supplied or self.limit_supplied


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def report_document(report: Report) -> dict[str, Any]:
    return dict(ReportSerializer(report).data)


def parse_due_date(value: Any) -> datetime | None:
    """
    Stored dueDate (ISO string, date-only string, datetime or None) -> aware datetime.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parse_datetime(str(value))
        if parsed is None:
            day = parse_date(str(value))
            if day is None:
                return None
            parsed = datetime.combine(day, time.min)
    if timezone.is_naive(parsed):
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def _due_sort_value(deficiency: dict) -> float:
    due = parse_due_date(deficiency.get("dueDate"))
    return due.timestamp() if due is not None else math.inf


# Ascending base ordering per key: earliest date (undated last), lowest rank, A to Z.
_SORT_KEYS: dict[str, Callable[[dict], Any]] = {
    "dueDate": _due_sort_value,
    "severity": lambda d: SEVERITY_RANK.get(d.get("severity"), 0),
    "standardCode": lambda d: d.get("standardCode") or "",
}


# ---------------------------------------------------------------------
# Deficiency sub-collection
# ---------------------------------------------------------------------
def filter_deficiencies(items: list[dict], severity: str | None) -> list[dict]:
    if not severity:
        return list(items)
    return [d for d in items if d.get("severity") == severity]


def sort_deficiencies(items: list[dict], sort_by: str = "severity", order: str = "desc") -> list[dict]:
    """
    Stable: ties keep stored order in both directions.
    desc with severity puts immediate_jeopardy first.
    """
    key = _SORT_KEYS.get(sort_by, _SORT_KEYS["severity"])
    return sorted(items, key=key, reverse=(order == "desc"))


def process_deficiencies(items: list[dict], query: ReportQuery) -> list[dict] | dict[str, Any]:
    """
    filter -> sort -> paginate.

    The {items, pagination} envelope appears only when page or limit was
    given explicitly; otherwise the page is returned as a bare list.
    """
    filtered = filter_deficiencies(items, query.deficiency_severity)
    ordered = sort_deficiencies(filtered, query.deficiency_sort_by, query.deficiency_order)
    page_items, window = paginate_sequence(ordered, page=query.page, limit=query.limit)

    if query.wants_pagination_envelope:
        return {"items": page_items, "pagination": window.as_dict()}
    return page_items


# ---------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------
def executive_summary(*, total: int, ij_count: int, major: int, score: int, follow_up: bool) -> str:
    if ij_count > 0:
        return (
            f"URGENT: Survey identified {ij_count} immediate jeopardy finding(s) requiring immediate action. "
            f"{total} total deficiencies found. Compliance score: {score}%."
        )
    follow = "Follow-up survey required." if follow_up else "No follow-up required."
    return f"Survey found {total} deficiencies ({major} major). Overall compliance score: {score}%. {follow}"


def risk_level(*, ij_count: int, major: int) -> str:
    if ij_count > 0:
        return "high"
    if major > 2:
        return "medium"
    return "low"


def summary_shape(report: Report, doc: dict[str, Any], now: datetime) -> dict[str, Any]:
    deficiencies = doc["deficiencies"]
    total = len(deficiencies)
    ij_count = sum(1 for d in deficiencies if d.get("severity") == DeficiencySeverity.IMMEDIATE_JEOPARDY)
    major = sum(1 for d in deficiencies if d.get("severity") == DeficiencySeverity.MAJOR)

    overdue = 0
    for d in deficiencies:
        due = parse_due_date(d.get("dueDate"))
        if due is not None and due < now:
            overdue += 1

    critical = [
        d.get("description")
        for d in deficiencies
        if d.get("severity") in (DeficiencySeverity.IMMEDIATE_JEOPARDY, DeficiencySeverity.MAJOR)
    ][:3]

    estimated_days = None
    if report.follow_up_required:
        seconds = (report.corrective_action_due - now).total_seconds()
        estimated_days = math.ceil(seconds / 86400)

    return {
        "id": doc["id"],
        "facilityId": doc["facilityId"],
        "surveyType": doc["surveyType"],
        "surveyDate": doc["surveyDate"],
        "status": doc["status"],
        "complianceScore": doc["complianceScore"],
        "riskLevel": risk_level(ij_count=ij_count, major=major),
        "keyMetrics": {
            "totalDeficiencies": total,
            "immediateJeopardyCount": ij_count,
            "majorDeficiencies": major,
            "minorDeficiencies": total - ij_count - major,
            "overdueTasks": overdue,
            "complianceRate": doc["complianceScore"],
        },
        "criticalIssues": critical,
        "actionRequired": {
            "correctiveActionDue": doc["correctiveActionDue"],
            "followUpRequired": doc["followUpRequired"],
            "estimatedResolutionDays": estimated_days,
        },
        "executiveSummary": executive_summary(
            total=total,
            ij_count=ij_count,
            major=major,
            score=doc["complianceScore"],
            follow_up=doc["followUpRequired"],
        ),
    }


def include_shape(doc: dict[str, Any], include: str, query: ReportQuery) -> dict[str, Any]:
    """
    `id` always; `basic` overrides any other names; unknown names are ignored.
    """
    names = [name.strip() for name in include.split(",") if name.strip()]
    result: dict[str, Any] = {"id": doc["id"]}

    if INCLUDE_BASIC in names:
        for key in BASIC_FIELDS:
            result[key] = doc[key]
        return result

    for name in names:
        key = INCLUDE_FIELDS.get(name)
        if key is None:
            continue
        if name == "deficiencies":
            result[name] = process_deficiencies(doc["deficiencies"], query)
        else:
            result[name] = doc[key]
    return result


def format_report(report: Report, query: ReportQuery | None = None, now: datetime | None = None) -> dict[str, Any]:
    """
    Resolution order, first match wins:
      1. view=summary  -> summary shape (include ignored)
      2. include given -> include shape
      3. otherwise     -> full report
    """
    query = query or ReportQuery()
    doc = report_document(report)

    if query.view == VIEW_SUMMARY:
        return summary_shape(report, doc, now or timezone.now())

    if query.include:
        return include_shape(doc, query.include, query)

    return doc
