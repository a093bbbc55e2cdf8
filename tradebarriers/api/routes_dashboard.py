"""
Dashboard API Routes

Read-only derived views over the whole agreement collection:

- /api/dashboard: filtered + searched agreements with their stats
- /api/activity: status changes per month
- /api/kpis: stale agreements and negotiations started

Filters are repeated query parameters:
    /api/dashboard?status=Implemented&status=Deferred&jurisdiction=Ontario&q=labour
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Request

from tradebarriers.api.common import OutputCase, dump, dump_all
from tradebarriers.core.activity import bucket_activity, chart_labels, flatten_history
from tradebarriers.core.kpis import compute_kpis
from tradebarriers.web.deps import get_projector, get_service
from tradebarriers.web.projector import filter_spec_from_query, parse_activity_range


router = APIRouter(prefix="/api", tags=["Dashboard"])


@router.get("/dashboard")
def dashboard(
    request: Request,
    q: Optional[str] = None,
    range: Optional[str] = None,
    case: OutputCase = "snake",
):
    spec = filter_spec_from_query(request.query_params)
    view = get_projector(request).dashboard(
        spec=spec,
        search=q,
        activity_range=parse_activity_range(range),
    )
    return {
        "agreements": dump_all(view.agreements, case),
        "stats": dump(view.stats, case),
        "total": view.total_count,
        "active_filters": spec.active_count,
        "filter_options": view.options,
    }


@router.get("/activity")
def activity(request: Request, range: Optional[str] = None):
    activity_range = parse_activity_range(range)
    agreements = get_service(request).list_agreements()
    buckets = bucket_activity(flatten_history(agreements), activity_range, date.today())
    return {
        "range": activity_range.value,
        "months": [b.to_dict() for b in buckets],
        "labels": chart_labels(buckets),
        "total_changes": sum(b.changes for b in buckets),
    }


@router.get("/kpis")
def kpis(request: Request, case: OutputCase = "snake"):
    agreements = get_service(request).list_agreements()
    return dump(compute_kpis(agreements, date.today()), case)
