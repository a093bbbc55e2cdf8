"""
Public Routes: Read-only agreement views

These pages are public - anyone can browse the dashboard and agreements.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from tradebarriers.web.deps import get_projector, get_templates
from tradebarriers.web.projector import filter_spec_from_query, parse_activity_range


router = APIRouter()


@router.get("/", response_class=HTMLResponse)
def dashboard(request: Request, q: str | None = None, range: str | None = None):
    """Dashboard: KPIs, stats, activity chart, filters and the agreement list."""
    templates = get_templates(request)
    view = get_projector(request).dashboard(
        spec=filter_spec_from_query(request.query_params),
        search=q,
        activity_range=parse_activity_range(range),
    )
    return templates.TemplateResponse(
        request,
        "public/dashboard.html",
        {"view": view},
    )


@router.get("/agreements/{agreement_id}", response_class=HTMLResponse)
def agreement_detail(request: Request, agreement_id: str):
    """One agreement with jurisdictions and its status timeline."""
    templates = get_templates(request)
    detail = get_projector(request).agreement_detail(agreement_id)
    return templates.TemplateResponse(
        request,
        "public/agreement_detail.html",
        {"detail": detail},
    )
