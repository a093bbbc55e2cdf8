"""
Timeline Layout Engine

Lays out one agreement's status history on a 0-100% axis running from the
earliest entry to now. Produces:

- Label positions, nudged apart so adjacent labels do not overlap
- Colored progress-bar segments between consecutive entries

A Deferred entry freezes the bar: the previous segment runs to 100% and
nothing is drawn after it.

Constants:
    MIN_SPACING   = 7    minimum gap between adjacent labels (%)
    MIN_POSITION  = 2    leftmost position for any label but the first
    MAX_POSITION  = 95   rightmost label position
    CENTER        = 50   nudges prefer to stay on the label's side of this
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from ..schemas import AgreementStatus, HistoryEntry


MIN_SPACING = 7.0
MIN_POSITION = 2.0
MAX_POSITION = 95.0
CENTER = 50.0

# Axis start when no entry carries a usable date
FALLBACK_EPOCH = date(2018, 1, 1)

DEFAULT_BAR_COLOR = "bg-gray-400"

STATUS_BAR_COLORS: dict[AgreementStatus, str] = {
    AgreementStatus.AWAITING_SPONSORSHIP: "bg-gray-400",
    AgreementStatus.UNDER_NEGOTIATION: "bg-yellow-400",
    AgreementStatus.AGREEMENT_REACHED: "bg-orange-400",
    AgreementStatus.PARTIALLY_IMPLEMENTED: "bg-green-400",
    AgreementStatus.IMPLEMENTED: "bg-green-600",
    AgreementStatus.DEFERRED: "bg-red-400",
}


def status_bar_color(status) -> str:
    try:
        return STATUS_BAR_COLORS[AgreementStatus(status)]
    except ValueError:
        return DEFAULT_BAR_COLOR


@dataclass
class TimelineSegment:
    status: AgreementStatus
    color: str
    start_position: float
    end_position: float
    start_date: date
    end_date: date

    @property
    def width(self) -> float:
        return self.end_position - self.start_position


@dataclass
class TimelineLabel:
    status: AgreementStatus
    date_entered: date
    raw_position: float
    position: float
    is_first: bool = False
    is_last: bool = False
    # Deferred labels are shown at the end marker, not on the axis
    hidden: bool = False


@dataclass
class TimelineLayout:
    start_date: date
    end_date: date
    total_days: int
    labels: list[TimelineLabel] = field(default_factory=list)
    segments: list[TimelineSegment] = field(default_factory=list)
    # Set when the chronologically last entry is Deferred
    deferred_entry: Optional[HistoryEntry] = None

    @property
    def end_marker(self) -> str:
        if self.deferred_entry is not None:
            return self.deferred_entry.status.value
        return "Today"

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "end_marker": self.end_marker,
            "labels": [
                {
                    "status": l.status.value,
                    "date_entered": l.date_entered.isoformat(),
                    "raw_position": round(l.raw_position, 4),
                    "position": round(l.position, 4),
                    "is_first": l.is_first,
                    "is_last": l.is_last,
                    "hidden": l.hidden,
                }
                for l in self.labels
            ],
            "segments": [
                {
                    "status": s.status.value,
                    "color": s.color,
                    "start_position": round(s.start_position, 4),
                    "end_position": round(s.end_position, 4),
                    "width": round(s.width, 4),
                    "start_date": s.start_date.isoformat(),
                    "end_date": s.end_date.isoformat(),
                }
                for s in self.segments
            ],
        }


def _ceil_days(start: date, end: date) -> int:
    return math.ceil((end - start).days)


def adjust_label_positions(
    raw_positions: Sequence[float],
    min_spacing: float = MIN_SPACING,
    min_position: float = MIN_POSITION,
    max_position: float = MAX_POSITION,
    center: float = CENTER,
) -> list[float]:
    """
    Nudge label positions apart.

    The first label is pinned to 0. A later label closer than min_spacing to
    the previous adjusted label is pushed: labels left of center try
    center - spacing first and fall back to center + spacing; labels right
    of center try center + spacing first and fall back to center - spacing
    when that overshoots max_position. Every label but the first is clamped
    to [min_position, max_position].
    """
    adjusted: list[float] = []

    for i, raw in enumerate(raw_positions):
        if i == 0:
            adjusted.append(0.0)
            continue

        position = raw
        required = adjusted[i - 1] + min_spacing

        if position < required:
            if raw < center:
                position = min(required, center - min_spacing)
                if position < required:
                    position = max(required, center + min_spacing)
            else:
                position = max(required, center + min_spacing)
                if position > max_position:
                    position = min(required, center - min_spacing)

        adjusted.append(max(min_position, min(max_position, position)))

    return adjusted


def build_timeline(
    history: Sequence[HistoryEntry],
    now: Optional[datetime] = None,
) -> Optional[TimelineLayout]:
    """
    Lay out a status history. Returns None for an empty history.
    """
    if not history:
        return None

    now = now or datetime.now(timezone.utc)
    end_date = now.date() if isinstance(now, datetime) else now

    # sorted() is stable, so same-day entries keep their input order
    entries = sorted(history, key=lambda h: h.date_entered)

    start_date = entries[0].date_entered or FALLBACK_EPOCH
    total_days = max(1, _ceil_days(start_date, end_date))

    raw_positions = [
        _ceil_days(start_date, entry.date_entered) / total_days * 100
        for entry in entries
    ]
    positions = adjust_label_positions(raw_positions)

    last_index = len(entries) - 1
    labels = [
        TimelineLabel(
            status=entry.status,
            date_entered=entry.date_entered,
            raw_position=raw_positions[i],
            position=positions[i],
            is_first=i == 0,
            is_last=i == last_index,
            hidden=entry.status == AgreementStatus.DEFERRED,
        )
        for i, entry in enumerate(entries)
    ]

    segments: list[TimelineSegment] = []
    for i, entry in enumerate(entries):
        if entry.status == AgreementStatus.DEFERRED:
            # Freeze: stretch the previous segment to the end and stop
            if segments:
                previous = segments[-1]
                previous.end_position = 100.0
                previous.end_date = end_date
            break

        has_next = i < last_index
        segments.append(
            TimelineSegment(
                status=entry.status,
                color=status_bar_color(entry.status),
                start_position=0.0 if i == 0 else positions[i],
                end_position=positions[i + 1] if has_next else 100.0,
                start_date=entry.date_entered,
                end_date=entries[i + 1].date_entered if has_next else end_date,
            )
        )

    deferred_entry = entries[-1] if entries[-1].status == AgreementStatus.DEFERRED else None

    return TimelineLayout(
        start_date=start_date,
        end_date=end_date,
        total_days=total_days,
        labels=labels,
        segments=segments,
        deferred_entry=deferred_entry,
    )
