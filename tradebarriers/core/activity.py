"""
Activity bucketing.

Flattens every agreement's status history into a stream of changes and
counts them per calendar month for the activity chart. Output is dense:
months with no changes are present with a count of 0.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from ..schemas import Agreement, AgreementStatus


MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# All-time window start when there is no history at all
FALLBACK_START = date(2018, 1, 1)

TRAILING_MONTHS = 12


class ActivityRange(str, Enum):
    TWELVE_MONTHS = "12months"
    ALL_TIME = "alltime"


@dataclass(frozen=True)
class StatusChange:
    date: date
    status: AgreementStatus


@dataclass(frozen=True)
class MonthBucket:
    month: str
    year: int
    month_name: str
    changes: int

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "month_name": self.month_name,
            "changes": self.changes,
        }


def flatten_history(agreements: Iterable[Agreement]) -> list[StatusChange]:
    return [
        StatusChange(date=entry.date_entered, status=entry.status)
        for agreement in agreements
        for entry in agreement.agreement_history
    ]


def _month_index(d: date) -> int:
    return d.year * 12 + (d.month - 1)


def _month_from_index(index: int) -> tuple[int, int]:
    year, month0 = divmod(index, 12)
    return year, month0 + 1


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def bucket_activity(
    changes: Iterable[StatusChange],
    range_: ActivityRange = ActivityRange.TWELVE_MONTHS,
    today: Optional[date] = None,
) -> list[MonthBucket]:
    """
    Count changes per month.

    12months: the current month and the 11 before it.
    alltime: from the month of the earliest change (or 2018-01) to the
    current month. Changes outside the window are ignored.
    """
    today = today or date.today()
    changes = list(changes)
    range_ = ActivityRange(range_)

    end_index = _month_index(today)
    if range_ == ActivityRange.TWELVE_MONTHS:
        start_index = end_index - (TRAILING_MONTHS - 1)
    else:
        earliest = min((c.date for c in changes), default=FALLBACK_START)
        start_index = min(_month_index(earliest), end_index)

    counts = Counter(
        _month_index(c.date)
        for c in changes
        if start_index <= _month_index(c.date) <= end_index
    )

    buckets = []
    for index in range(start_index, end_index + 1):
        year, month = _month_from_index(index)
        buckets.append(
            MonthBucket(
                month=month_key(year, month),
                year=year,
                month_name=MONTH_NAMES[month - 1],
                changes=counts.get(index, 0),
            )
        )
    return buckets


def chart_labels(buckets: list[MonthBucket]) -> list[str]:
    """
    Axis labels: the month name, with the year appended on January, on the
    first bucket and wherever the year changes.
    """
    labels = []
    previous_year = None
    for i, bucket in enumerate(buckets):
        show_year = i == 0 or bucket.month_name == "Jan" or bucket.year != previous_year
        labels.append(f"{bucket.month_name} {bucket.year}" if show_year else bucket.month_name)
        previous_year = bucket.year
    return labels
