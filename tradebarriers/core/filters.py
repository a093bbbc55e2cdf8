"""
Filter Engine

Applies the dashboard filters to an agreement collection:

- Four facets: status, deadline bucket, jurisdiction, theme
- OR within a facet, AND across facets
- An empty facet matches everything
- A separate case-insensitive title search

FilterEngine memoizes the last result so repeated renders with the same
inputs do not rescan the collection.
"""

from dataclasses import dataclass
from datetime import date
from threading import Lock
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..schemas import (
    Agreement,
    AgreementStatus,
    JurisdictionName,
    PROVINCES_AND_TERRITORIES,
    is_participating,
    unique_themes,
)
from .deadlines import DeadlineBucket, classify_deadline
from .stats import AgreementStats, get_agreement_stats


class FilterSpec(BaseModel):
    """
    Selected values per facet. Frozen so it can be compared and hashed.
    """
    model_config = ConfigDict(frozen=True)

    statuses: frozenset[AgreementStatus] = Field(default_factory=frozenset)
    deadline_buckets: frozenset[DeadlineBucket] = Field(default_factory=frozenset)
    jurisdictions: frozenset[JurisdictionName] = Field(default_factory=frozenset)
    themes: frozenset[str] = Field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (self.statuses or self.deadline_buckets or self.jurisdictions or self.themes)

    @property
    def active_count(self) -> int:
        return (
            len(self.statuses)
            + len(self.deadline_buckets)
            + len(self.jurisdictions)
            + len(self.themes)
        )


def matches_filters(agreement: Agreement, spec: FilterSpec, today: Optional[date] = None) -> bool:
    if spec.statuses and agreement.status not in spec.statuses:
        return False

    if spec.deadline_buckets:
        bucket = classify_deadline(agreement.deadline, agreement.status, today)
        if bucket not in spec.deadline_buckets:
            return False

    if spec.jurisdictions:
        if not any(
            record.name in spec.jurisdictions and is_participating(record)
            for record in agreement.jurisdictions
        ):
            return False

    if spec.themes and agreement.theme not in spec.themes:
        return False

    return True


def apply_filters(
    agreements: Iterable[Agreement],
    spec: FilterSpec,
    today: Optional[date] = None,
) -> list[Agreement]:
    today = today or date.today()
    return [a for a in agreements if matches_filters(a, spec, today)]


def search_by_title(agreements: Iterable[Agreement], query: Optional[str]) -> list[Agreement]:
    """Case-insensitive substring match on title. Blank query keeps everything."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(agreements)
    return [a for a in agreements if needle in a.title.lower()]


@dataclass(frozen=True)
class FilteredView:
    """Filtered agreements and the stats derived from them."""
    agreements: list[Agreement]
    stats: AgreementStats


def source_fingerprint(agreements: Iterable[Agreement]) -> tuple:
    """
    Identity of a fetched collection: (id, updated_at) per row, in order.

    Rows without an updated_at stamp are identified by their full content.
    """
    return tuple(
        (a.id, a.updated_at) if a.updated_at is not None else a.model_dump_json()
        for a in agreements
    )


class FilterEngine:
    """
    Memoized filter + search + stats.

    The cached view is reused while the source collection, the filter spec,
    the normalized search string and the reference date are unchanged. The
    collection is identified by `source_fingerprint` of the rows passed in,
    so writes made by other processes on a shared database are picked up on
    the next call. An optional `version` is folded into the key as well.
    """

    def __init__(self):
        self._lock = Lock()
        self._key: Optional[tuple[Any, ...]] = None
        self._view: Optional[FilteredView] = None
        self.recompute_count = 0

    def view(
        self,
        agreements: list[Agreement],
        spec: Optional[FilterSpec] = None,
        search: Optional[str] = None,
        today: Optional[date] = None,
        version: Optional[int] = None,
    ) -> FilteredView:
        spec = spec or FilterSpec()
        today = today or date.today()
        needle = (search or "").strip().lower()
        key = (version, source_fingerprint(agreements), spec, needle, today)

        with self._lock:
            if self._view is not None and self._key == key:
                return self._view

            filtered = search_by_title(apply_filters(agreements, spec, today), needle)
            self._view = FilteredView(agreements=filtered, stats=get_agreement_stats(filtered))
            self._key = key
            self.recompute_count += 1
            return self._view

    def invalidate(self) -> None:
        with self._lock:
            self._key = None
            self._view = None


def filter_options(agreements: list[Agreement]) -> dict[str, list[str]]:
    """
    Values offered by the filter panel, per facet. Canada is listed after
    the provinces and territories, and only when an agreement names it.
    """
    jurisdictions = list(PROVINCES_AND_TERRITORIES)
    if any(
        record.name == JurisdictionName.CANADA
        for agreement in agreements
        for record in agreement.jurisdictions
    ):
        jurisdictions.append(JurisdictionName.CANADA)

    return {
        "statuses": [s.value for s in AgreementStatus],
        "deadline_buckets": [b.value for b in DeadlineBucket],
        "jurisdictions": [j.value for j in jurisdictions],
        "themes": unique_themes(agreements),
    }
