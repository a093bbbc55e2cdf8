"""
Projector: Read-models for the dashboard and detail views

Combines the pure core views (filters, stats, activity, KPIs, timeline)
into the shapes the HTML pages and the dashboard API return.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from tradebarriers.core.activity import (
    ActivityRange,
    MonthBucket,
    bucket_activity,
    chart_labels,
    flatten_history,
)
from tradebarriers.core.deadlines import DeadlineBucket, classify_deadline, days_until_deadline
from tradebarriers.core.errors import ValidationError
from tradebarriers.core.filters import FilterEngine, FilterSpec, filter_options
from tradebarriers.core.kpis import KPISummary, compute_kpis
from tradebarriers.core.service import TrackerService
from tradebarriers.core.stats import AgreementStats
from tradebarriers.core.timeline import TimelineLayout, build_timeline
from tradebarriers.schemas import Agreement, JurisdictionParticipation, participating_jurisdictions


# Query parameter for each filter facet (repeatable)
FACET_PARAMS = {
    "status": "statuses",
    "deadline": "deadline_buckets",
    "jurisdiction": "jurisdictions",
    "theme": "themes",
}


def filter_spec_from_query(query_params) -> FilterSpec:
    """
    Build a FilterSpec from repeated query parameters, e.g.
    ?status=Implemented&status=Deferred&jurisdiction=Ontario

    Raises:
        ValidationError: a value is not valid for its facet
    """
    values = {
        spec_field: [v for v in query_params.getlist(param) if v]
        for param, spec_field in FACET_PARAMS.items()
    }
    try:
        return FilterSpec(**values)
    except PydanticValidationError as e:
        bad = ", ".join(str(err["input"]) for err in e.errors())
        raise ValidationError(f"Invalid filter value: {bad}") from e


def parse_activity_range(value: Optional[str]) -> ActivityRange:
    try:
        return ActivityRange(value or ActivityRange.TWELVE_MONTHS.value)
    except ValueError:
        raise ValidationError(
            f"Invalid range: {value}. Valid values: "
            f"{', '.join(r.value for r in ActivityRange)}"
        ) from None


@dataclass
class DashboardView:
    agreements: list[Agreement]
    stats: AgreementStats
    total_count: int
    spec: FilterSpec
    search: str
    options: dict[str, list[str]]
    activity: list[MonthBucket] = field(default_factory=list)
    activity_labels: list[str] = field(default_factory=list)
    activity_range: ActivityRange = ActivityRange.TWELVE_MONTHS
    kpis: Optional[KPISummary] = None

    @property
    def activity_max(self) -> int:
        return max((b.changes for b in self.activity), default=0)


@dataclass
class AgreementDetail:
    agreement: Agreement
    timeline: Optional[TimelineLayout]
    participating: list[JurisdictionParticipation]
    deadline_bucket: DeadlineBucket
    days_until_deadline: Optional[int]

    @property
    def is_overdue(self) -> bool:
        return self.deadline_bucket == DeadlineBucket.OVERDUE


class Projector:
    """
    Read-model builder shared by the HTML pages and the REST API.

    Holds the memoized FilterEngine, so one instance should live for the
    lifetime of the app.
    """

    def __init__(self, service: TrackerService):
        self.service = service
        self.engine = FilterEngine()

    def dashboard(
        self,
        spec: Optional[FilterSpec] = None,
        search: Optional[str] = None,
        activity_range: ActivityRange = ActivityRange.TWELVE_MONTHS,
        today: Optional[date] = None,
    ) -> DashboardView:
        today = today or date.today()
        spec = spec or FilterSpec()
        agreements = self.service.list_agreements()

        view = self.engine.view(agreements, spec=spec, search=search, today=today)
        activity = bucket_activity(flatten_history(agreements), activity_range, today)

        return DashboardView(
            agreements=view.agreements,
            stats=view.stats,
            total_count=len(agreements),
            spec=spec,
            search=(search or "").strip(),
            options=filter_options(agreements),
            activity=activity,
            activity_labels=chart_labels(activity),
            activity_range=activity_range,
            kpis=compute_kpis(agreements, today),
        )

    def agreement_detail(
        self,
        agreement_id: str,
        now: Optional[datetime] = None,
    ) -> AgreementDetail:
        now = now or datetime.now(timezone.utc)
        agreement = self.service.get_agreement(agreement_id)
        today = now.date()

        return AgreementDetail(
            agreement=agreement,
            timeline=build_timeline(agreement.agreement_history, now),
            participating=participating_jurisdictions(agreement.jurisdictions),
            deadline_bucket=classify_deadline(agreement.deadline, agreement.status, today),
            days_until_deadline=days_until_deadline(agreement.deadline, today),
        )
