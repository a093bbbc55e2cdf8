"""
Canonical Agreement Schema

An Agreement is a tracked interprovincial trade-barrier-reduction initiative.
It carries an overall status, a per-jurisdiction participation record and a
dated history of status changes.

Naming:
- Field names are snake_case (the persisted convention)
- Every field also has a camelCase alias, so request bodies may use either
- Serialize with by_alias=True to emit camelCase
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AgreementStatus(str, Enum):
    """
    Overall agreement status, in display order.
    """
    AWAITING_SPONSORSHIP = "Awaiting Sponsorship"
    UNDER_NEGOTIATION = "Under Negotiation"
    AGREEMENT_REACHED = "Agreement Reached"
    PARTIALLY_IMPLEMENTED = "Partially Implemented"
    IMPLEMENTED = "Implemented"
    DEFERRED = "Deferred"


class JurisdictionName(str, Enum):
    """
    Participating governments.

    The 13 provinces and territories form the default participation list.
    CANADA (the federal government) is accepted but never generated.
    """
    ALBERTA = "Alberta"
    BRITISH_COLUMBIA = "British Columbia"
    MANITOBA = "Manitoba"
    NEW_BRUNSWICK = "New Brunswick"
    NEWFOUNDLAND_AND_LABRADOR = "Newfoundland and Labrador"
    NORTHWEST_TERRITORIES = "Northwest Territories"
    NOVA_SCOTIA = "Nova Scotia"
    NUNAVUT = "Nunavut"
    ONTARIO = "Ontario"
    PRINCE_EDWARD_ISLAND = "Prince Edward Island"
    QUEBEC = "Quebec"
    SASKATCHEWAN = "Saskatchewan"
    YUKON = "Yukon"
    CANADA = "Canada"


PROVINCES_AND_TERRITORIES: tuple[JurisdictionName, ...] = tuple(
    j for j in JurisdictionName if j is not JurisdictionName.CANADA
)


class JurisdictionStatus(str, Enum):
    """
    How far a single jurisdiction has gone with an agreement.
    """
    UNKNOWN = "Unknown"
    AWARE = "Aware"
    CONSIDERING = "Considering"
    ENGAGED = "Engaged"
    COMMITTED = "Committed"
    IMPLEMENTING = "Implementing"
    COMPLETE = "Complete"
    DECLINED = "Declined"
    NOT_APPLICABLE = "Not Applicable"


# A jurisdiction with one of these statuses is not counted as participating
NON_PARTICIPATING_STATUSES = frozenset({
    JurisdictionStatus.DECLINED,
    JurisdictionStatus.NOT_APPLICABLE,
    JurisdictionStatus.UNKNOWN,
})


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class HistoryEntry(_CamelModel):
    """
    When an agreement's overall status changed.

    Lists of entries are not guaranteed to be sorted. Sort by date_entered
    before relying on order.
    """
    status: AgreementStatus = Field(
        ...,
        description="Status the agreement entered"
    )
    date_entered: date = Field(
        ...,
        description="Date the status took effect"
    )


class JurisdictionHistoryEntry(_CamelModel):
    """When a jurisdiction's participation status changed."""
    status: JurisdictionStatus
    date_entered: date


class JurisdictionParticipation(_CamelModel):
    """
    One jurisdiction's participation in an agreement.
    """
    name: JurisdictionName = Field(
        ...,
        description="Province, territory or Canada"
    )
    status: JurisdictionStatus = Field(
        default=JurisdictionStatus.UNKNOWN,
        description="Participation status"
    )
    notes: str = Field(
        default="",
        description="Free-text notes from the admin"
    )
    jurisdiction_history: list[JurisdictionHistoryEntry] = Field(
        default_factory=list,
        description="Participation status changes"
    )


class AgreementInput(_CamelModel):
    """
    Writable fields of an agreement.

    Used as the body of create and full-field update requests. Required-field
    checks beyond types happen in the service layer so they surface as
    validation errors rather than schema errors.
    """
    title: str = ""
    summary: str = ""
    description: str = ""
    status: Optional[AgreementStatus] = None
    deadline: Optional[date] = None
    source_url: Optional[str] = None
    launch_date: Optional[date] = None
    theme: Optional[str] = None
    jurisdictions: list[JurisdictionParticipation] = Field(default_factory=list)
    agreement_history: list[HistoryEntry] = Field(default_factory=list)


class Agreement(_CamelModel):
    """
    A tracked trade agreement as stored.
    """
    id: str = Field(
        ...,
        description="Backend-assigned identifier"
    )
    title: str
    summary: str = ""
    description: str = ""
    status: AgreementStatus
    deadline: Optional[date] = Field(
        default=None,
        description="Target date; becomes the completion date once implemented"
    )
    source_url: Optional[str] = None
    launch_date: Optional[date] = None
    theme: Optional[str] = Field(
        default=None,
        description="Theme name (agreements reference themes by name)"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    jurisdictions: list[JurisdictionParticipation] = Field(default_factory=list)
    agreement_history: list[HistoryEntry] = Field(default_factory=list)

    def sorted_history(self) -> list[HistoryEntry]:
        """History ascending by date (stable for same-day entries)."""
        return sorted(self.agreement_history, key=lambda h: h.date_entered)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "5f0c2b1e-8c1a-4d9e-9d55-0f6b1b6a1c11",
                "title": "Harmonize Long-Combination Vehicle Standards",
                "summary": "Standardize LCV driver qualifications across provinces.",
                "description": "Uniform standards for long-combination vehicles.",
                "status": "Partially Implemented",
                "deadline": "2025-12-31",
                "source_url": "https://example.org/lcv",
                "theme": "Transportation",
                "jurisdictions": [
                    {"name": "Alberta", "status": "Complete", "notes": ""},
                ],
                "agreement_history": [
                    {"status": "Under Negotiation", "date_entered": "2023-02-01"},
                    {"status": "Partially Implemented", "date_entered": "2024-06-15"},
                ],
            }
        }
    )


def generate_jurisdictions() -> list[JurisdictionParticipation]:
    """Default participation list: every province and territory, status Unknown."""
    return [
        JurisdictionParticipation(name=name, status=JurisdictionStatus.UNKNOWN, notes="")
        for name in PROVINCES_AND_TERRITORIES
    ]


def is_participating(record: JurisdictionParticipation) -> bool:
    return record.status not in NON_PARTICIPATING_STATUSES


def participating_jurisdictions(
    records: list[JurisdictionParticipation],
) -> list[JurisdictionParticipation]:
    """Records shown as participation badges."""
    return [r for r in records if is_participating(r)]


def unique_themes(agreements: list[Agreement]) -> list[str]:
    """Distinct non-blank theme names, sorted."""
    return sorted({a.theme for a in agreements if a.theme and a.theme.strip()})
