# Canonical schemas for the Trade Barriers Tracker.
# Persisted names are snake_case; every model accepts camelCase aliases.

from .agreement import (
    Agreement,
    AgreementInput,
    AgreementStatus,
    HistoryEntry,
    JurisdictionHistoryEntry,
    JurisdictionName,
    JurisdictionParticipation,
    JurisdictionStatus,
    NON_PARTICIPATING_STATUSES,
    PROVINCES_AND_TERRITORIES,
    generate_jurisdictions,
    is_participating,
    participating_jurisdictions,
    unique_themes,
)
from .theme import Theme, ThemeInput

__all__ = [
    # Agreement
    "Agreement",
    "AgreementInput",
    "AgreementStatus",
    "HistoryEntry",
    "JurisdictionHistoryEntry",
    "JurisdictionName",
    "JurisdictionParticipation",
    "JurisdictionStatus",
    "NON_PARTICIPATING_STATUSES",
    "PROVINCES_AND_TERRITORIES",
    "generate_jurisdictions",
    "is_participating",
    "participating_jurisdictions",
    "unique_themes",
    # Theme
    "Theme",
    "ThemeInput",
]
