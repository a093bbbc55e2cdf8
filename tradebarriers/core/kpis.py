"""
Headline KPIs for the public dashboard.

- Stale agreements: in progress but without a status change for over a year
- Negotiations started: agreements that entered Under Negotiation in a period

Both are reported for the current year to date and compared against the
previous calendar year.
"""

from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..schemas import Agreement, AgreementStatus


# Statuses never counted as stale
NOT_STALE_STATUSES = frozenset({
    AgreementStatus.AWAITING_SPONSORSHIP,
    AgreementStatus.IMPLEMENTED,
})


class KPISummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int
    stale_count: int
    stale_percentage: float
    previous_stale_percentage: float
    stale_percentage_change: float
    negotiations_started: int
    previous_negotiations_started: int
    negotiations_change: int
    comparison_year: int


def one_year_before(d: date) -> date:
    try:
        return d.replace(year=d.year - 1)
    except ValueError:
        # Feb 29
        return d.replace(year=d.year - 1, day=28)


def is_stale(agreement: Agreement, as_of: date) -> bool:
    if agreement.status in NOT_STALE_STATUSES:
        return False
    history = agreement.sorted_history()
    if not history:
        return True
    return history[-1].date_entered < one_year_before(as_of)


def stale_agreements(agreements: Iterable[Agreement], as_of: date) -> list[Agreement]:
    return [a for a in agreements if is_stale(a, as_of)]


def negotiation_start(agreement: Agreement) -> Optional[date]:
    """Date the agreement first entered Under Negotiation, if it ever did."""
    previous = None
    for entry in agreement.sorted_history():
        if entry.status == AgreementStatus.UNDER_NEGOTIATION and previous != entry.status:
            return entry.date_entered
        previous = entry.status
    return None


def negotiations_started(
    agreements: Iterable[Agreement],
    start: date,
    end: date,
) -> list[Agreement]:
    started = []
    for agreement in agreements:
        when = negotiation_start(agreement)
        if when is not None and start <= when <= end:
            started.append(agreement)
    return started


def _percentage(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def compute_kpis(agreements: list[Agreement], today: Optional[date] = None) -> KPISummary:
    today = today or date.today()
    previous_year = today.year - 1
    previous_year_end = date(previous_year, 12, 31)
    total = len(agreements)

    stale_now = len(stale_agreements(agreements, today))
    stale_then = len(stale_agreements(agreements, previous_year_end))
    stale_pct = _percentage(stale_now, total)
    previous_stale_pct = _percentage(stale_then, total)

    started_now = len(negotiations_started(agreements, date(today.year, 1, 1), today))
    started_then = len(
        negotiations_started(agreements, date(previous_year, 1, 1), previous_year_end)
    )

    return KPISummary(
        total=total,
        stale_count=stale_now,
        stale_percentage=stale_pct,
        previous_stale_percentage=previous_stale_pct,
        stale_percentage_change=stale_pct - previous_stale_pct,
        negotiations_started=started_now,
        previous_negotiations_started=started_then,
        negotiations_change=started_now - started_then,
        comparison_year=previous_year,
    )
