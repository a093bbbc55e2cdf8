"""
Jinja2 filters for the HTML pages.
"""

from datetime import date, datetime
from typing import Optional, Union

from jinja2 import Environment

from tradebarriers.core.timeline import status_bar_color
from tradebarriers.schemas import AgreementStatus, JurisdictionStatus


STATUS_BADGE_CLASSES = {
    AgreementStatus.DEFERRED: "badge badge-red",
    AgreementStatus.AWAITING_SPONSORSHIP: "badge badge-gray",
    AgreementStatus.UNDER_NEGOTIATION: "badge badge-yellow",
    AgreementStatus.AGREEMENT_REACHED: "badge badge-orange",
    AgreementStatus.PARTIALLY_IMPLEMENTED: "badge badge-blue",
    AgreementStatus.IMPLEMENTED: "badge badge-green",
}

JURISDICTION_BADGE_CLASSES = {
    JurisdictionStatus.UNKNOWN: "badge badge-gray",
    JurisdictionStatus.AWARE: "badge badge-blue",
    JurisdictionStatus.CONSIDERING: "badge badge-yellow",
    JurisdictionStatus.ENGAGED: "badge badge-purple",
    JurisdictionStatus.COMMITTED: "badge badge-green",
    JurisdictionStatus.IMPLEMENTING: "badge badge-orange",
    JurisdictionStatus.COMPLETE: "badge badge-green-strong",
    JurisdictionStatus.DECLINED: "badge badge-red",
    JurisdictionStatus.NOT_APPLICABLE: "badge badge-muted",
}


def format_date(value: Optional[Union[date, datetime, str]], empty: str = "No date set") -> str:
    """e.g. "Jan 1, 2025"."""
    if not value:
        return empty
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def status_badge(status) -> str:
    return STATUS_BADGE_CLASSES.get(status, "badge badge-gray")


def jurisdiction_badge(status) -> str:
    return JURISDICTION_BADGE_CLASSES.get(status, "badge badge-gray")


def register_template_filters(env: Environment) -> None:
    env.filters["format_date"] = format_date
    env.filters["status_badge"] = status_badge
    env.filters["jurisdiction_badge"] = jurisdiction_badge
    env.filters["bar_color"] = status_bar_color
