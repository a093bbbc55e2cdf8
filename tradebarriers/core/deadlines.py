"""
Deadline bucketing.

Every agreement falls in exactly one bucket:

    no deadline                      -> No Deadline
    past deadline, not Implemented   -> Overdue
    past deadline, Implemented       -> On Track (deadline is the completion date)
    0..30 days out                   -> Due Soon
    more than 30 days out            -> On Track
"""

from datetime import date
from enum import Enum
from typing import Optional

from ..schemas import AgreementStatus


DUE_SOON_DAYS = 30


class DeadlineBucket(str, Enum):
    OVERDUE = "Overdue"
    DUE_SOON = "Due Soon (30 days)"
    ON_TRACK = "On Track"
    NO_DEADLINE = "No Deadline"


def days_until_deadline(deadline: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """
    Whole days from today to the deadline.

    Equals ceil((deadline - now) / 1 day) for any time of day: a deadline of
    today is 0, yesterday is -1, tomorrow is 1. Returns None without a deadline.
    """
    if deadline is None:
        return None
    today = today or date.today()
    return (deadline - today).days


def is_overdue(
    deadline: Optional[date],
    status: AgreementStatus,
    today: Optional[date] = None,
) -> bool:
    days = days_until_deadline(deadline, today)
    return days is not None and days < 0 and status != AgreementStatus.IMPLEMENTED


def classify_deadline(
    deadline: Optional[date],
    status: AgreementStatus,
    today: Optional[date] = None,
) -> DeadlineBucket:
    days = days_until_deadline(deadline, today)
    if days is None:
        return DeadlineBucket.NO_DEADLINE
    if days < 0:
        if status == AgreementStatus.IMPLEMENTED:
            return DeadlineBucket.ON_TRACK
        return DeadlineBucket.OVERDUE
    if days <= DUE_SOON_DAYS:
        return DeadlineBucket.DUE_SOON
    return DeadlineBucket.ON_TRACK
