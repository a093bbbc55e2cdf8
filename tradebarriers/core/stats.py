"""
Stats Aggregator

Reduces a collection of agreements to per-status counts. This is a pure
derived view: callers recompute it from whatever collection they display.
"""

from typing import Iterable

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..schemas import Agreement, AgreementStatus


# Stats field for each status
STATUS_FIELDS: dict[AgreementStatus, str] = {
    AgreementStatus.AWAITING_SPONSORSHIP: "awaiting_sponsorship",
    AgreementStatus.UNDER_NEGOTIATION: "under_negotiation",
    AgreementStatus.AGREEMENT_REACHED: "agreement_reached",
    AgreementStatus.PARTIALLY_IMPLEMENTED: "partially_implemented",
    AgreementStatus.IMPLEMENTED: "implemented",
    AgreementStatus.DEFERRED: "deferred",
}


class AgreementStats(BaseModel):
    """Count of agreements per status, plus the total."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = 0
    awaiting_sponsorship: int = 0
    under_negotiation: int = 0
    agreement_reached: int = 0
    partially_implemented: int = 0
    implemented: int = 0
    deferred: int = 0

    def count_for(self, status: AgreementStatus) -> int:
        return getattr(self, STATUS_FIELDS[status])

    def per_status(self) -> dict[AgreementStatus, int]:
        return {status: self.count_for(status) for status in AgreementStatus}


def get_agreement_stats(agreements: Iterable[Agreement]) -> AgreementStats:
    counts = {field: 0 for field in STATUS_FIELDS.values()}
    total = 0
    for agreement in agreements:
        total += 1
        counts[STATUS_FIELDS[agreement.status]] += 1
    return AgreementStats(total=total, **counts)
