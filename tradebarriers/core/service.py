"""
Tracker Service

Business rules for agreements and themes on top of an AgreementStore:

- Required-field validation on create and update
- Blank optional strings are stored as None
- Full-field updates (last writer wins)
- Theme renames propagate to every agreement using the old name
- Themes in use cannot be deleted

Storage is delegated to the AgreementStore. Derived views (stats, filters,
timeline, activity, KPIs) are pure functions in the sibling modules.
"""

from typing import Any, Optional, TYPE_CHECKING

from ..observability import get_logger, get_metrics
from ..schemas import Agreement, AgreementInput, Theme, ThemeInput
from .errors import DuplicateThemeError, NotFoundError, StoreError, ThemeInUseError, ValidationError

if TYPE_CHECKING:
    from ..db.store import AgreementStore


logger = get_logger(__name__)

REQUIRED_TEXT_FIELDS = ("title", "summary", "description")
OPTIONAL_TEXT_FIELDS = ("source_url", "theme")


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_agreement_input(data: AgreementInput) -> dict[str, Any]:
    """
    Validate an agreement body and return the snake_case record to store.

    Raises:
        ValidationError: a required field is missing or blank, or no
            jurisdictions are given
    """
    missing = [name for name in REQUIRED_TEXT_FIELDS if not getattr(data, name).strip()]
    if data.status is None:
        missing.append("status")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if not data.jurisdictions:
        raise ValidationError("At least one jurisdiction is required")

    record = data.model_dump(mode="json")
    for name in REQUIRED_TEXT_FIELDS:
        record[name] = record[name].strip()
    for name in OPTIONAL_TEXT_FIELDS:
        record[name] = _blank_to_none(record[name])
    return record


def normalize_theme_name(data: ThemeInput) -> str:
    name = (data.name or "").strip()
    if not name:
        raise ValidationError("Theme name is required")
    return name


class TrackerService:
    """
    Agreement and theme operations.

    Every mutation is a single store call. There is no optimistic
    concurrency: concurrent updates to the same agreement resolve to
    whichever write lands last.
    """

    def __init__(self, store: "AgreementStore"):
        self._store = store

    @property
    def store(self) -> "AgreementStore":
        return self._store

    @property
    def version(self) -> int:
        return self._store.version

    # ---- agreements ----

    def list_agreements(self) -> list[Agreement]:
        return self._store.list_agreements()

    def get_agreement(self, agreement_id: str) -> Agreement:
        agreement = self._store.get_agreement(agreement_id)
        if agreement is None:
            raise NotFoundError("Agreement not found")
        return agreement

    def create_agreement(self, data: AgreementInput) -> Agreement:
        record = normalize_agreement_input(data)
        agreement = self._store.insert_agreement(record)
        get_metrics().record_mutation("agreement")
        logger.info(
            "Agreement created",
            agreement_id=agreement.id,
            status=agreement.status.value,
        )
        return agreement

    def update_agreement(self, agreement_id: str, data: AgreementInput) -> Agreement:
        record = normalize_agreement_input(data)
        agreement = self._store.update_agreement(agreement_id, record)
        if agreement is None:
            raise NotFoundError("Agreement not found")
        get_metrics().record_mutation("agreement")
        logger.info(
            "Agreement updated",
            agreement_id=agreement.id,
            status=agreement.status.value,
        )
        return agreement

    def delete_agreement(self, agreement_id: str) -> None:
        if not self._store.delete_agreement(agreement_id):
            raise NotFoundError("Agreement not found")
        get_metrics().record_mutation("agreement")
        logger.info("Agreement deleted", agreement_id=agreement_id)

    # ---- themes ----

    def list_themes(self) -> list[Theme]:
        return self._store.list_themes()

    def _ensure_theme_name_free(self, name: str, theme_id: Optional[str] = None) -> None:
        if any(t.name == name and t.id != theme_id for t in self._store.list_themes()):
            raise DuplicateThemeError()

    def create_theme(self, data: ThemeInput) -> Theme:
        name = normalize_theme_name(data)
        self._ensure_theme_name_free(name)
        theme = self._store.insert_theme(name)
        get_metrics().record_mutation("theme")
        logger.info("Theme created", theme_id=theme.id, theme_name=name)
        return theme

    def rename_theme(self, theme_id: str, data: ThemeInput) -> Theme:
        """
        Rename a theme and repoint agreements that used the old name.

        A failure while repointing agreements is logged and does not undo
        the rename.
        """
        name = normalize_theme_name(data)
        current = self._store.get_theme(theme_id)
        if current is None:
            raise NotFoundError("Theme not found")
        self._ensure_theme_name_free(name, theme_id)

        theme = self._store.update_theme(theme_id, name)
        if theme is None:
            raise NotFoundError("Theme not found")
        get_metrics().record_mutation("theme")

        if current.name != name:
            try:
                changed = self._store.rename_theme_references(current.name, name)
                logger.info(
                    "Theme renamed",
                    theme_id=theme_id,
                    old_name=current.name,
                    new_name=name,
                    agreements_updated=changed,
                )
            except StoreError as e:
                logger.error(
                    "Theme renamed but agreements were not updated",
                    theme_id=theme_id,
                    old_name=current.name,
                    new_name=name,
                    error=str(e),
                )
        return theme

    def delete_theme(self, theme_id: str) -> None:
        theme = self._store.get_theme(theme_id)
        if theme is None:
            raise NotFoundError("Theme not found")

        in_use = self._store.count_agreements_with_theme(theme.name)
        if in_use:
            logger.info("Theme delete refused", theme_id=theme_id, agreements_using=in_use)
            raise ThemeInUseError("Cannot delete theme that is being used by agreements")

        self._store.delete_theme(theme_id)
        get_metrics().record_mutation("theme")
        logger.info("Theme deleted", theme_id=theme_id, theme_name=theme.name)
