"""
Tests for the tracker service and the in-memory store.
"""

import pytest

from tradebarriers.core.errors import (
    DuplicateThemeError,
    NotFoundError,
    StoreError,
    ThemeInUseError,
    ValidationError,
)
from tradebarriers.core.service import TrackerService
from tradebarriers.db.store import InMemoryAgreementStore
from tradebarriers.observability import get_metrics
from tradebarriers.schemas import AgreementInput, AgreementStatus, ThemeInput

from conftest import agreement_body


def body(**overrides) -> AgreementInput:
    return AgreementInput.model_validate(agreement_body(**overrides))


class TestAgreements:

    def test_create_assigns_id_and_timestamps(self, service):
        agreement = service.create_agreement(body())
        assert agreement.id
        assert agreement.created_at is not None
        assert agreement.status == AgreementStatus.UNDER_NEGOTIATION
        assert service.get_agreement(agreement.id) == agreement

    def test_camel_case_input(self, service):
        agreement = service.create_agreement(AgreementInput.model_validate({
            "title": "T",
            "summary": "S",
            "description": "D",
            "status": "Implemented",
            "sourceUrl": "https://example.org",
            "launchDate": "2024-01-01",
            "jurisdictions": [{"name": "Yukon", "status": "Complete", "jurisdictionHistory": []}],
            "agreementHistory": [{"status": "Implemented", "dateEntered": "2024-01-01"}],
        }))
        assert agreement.source_url == "https://example.org"
        assert agreement.agreement_history[0].status == AgreementStatus.IMPLEMENTED

    @pytest.mark.parametrize("field", ["title", "summary", "description"])
    def test_required_text(self, service, field):
        with pytest.raises(ValidationError, match=field):
            service.create_agreement(body(**{field: "   "}))
        assert service.list_agreements() == []

    def test_status_required(self, service):
        with pytest.raises(ValidationError, match="status"):
            service.create_agreement(body(status=None))

    def test_jurisdiction_required(self, service):
        with pytest.raises(ValidationError, match="jurisdiction"):
            service.create_agreement(body(jurisdictions=[]))

    def test_blank_optionals_become_none(self, service):
        agreement = service.create_agreement(body(source_url="  ", theme=""))
        assert agreement.source_url is None
        assert agreement.theme is None

    def test_text_is_trimmed(self, service):
        assert service.create_agreement(body(title="  Padded  ")).title == "Padded"

    def test_update_replaces_fields(self, service):
        created = service.create_agreement(body())
        updated = service.update_agreement(created.id, body(title="Renamed", status="Deferred"))
        assert updated.id == created.id
        assert updated.created_at == created.created_at
        assert updated.title == "Renamed"
        assert updated.status == AgreementStatus.DEFERRED

    def test_update_missing(self, service):
        with pytest.raises(NotFoundError):
            service.update_agreement("nope", body())

    def test_delete(self, service):
        created = service.create_agreement(body())
        service.delete_agreement(created.id)
        with pytest.raises(NotFoundError):
            service.get_agreement(created.id)
        with pytest.raises(NotFoundError):
            service.delete_agreement(created.id)

    def test_version_bumps_on_mutation(self, service):
        start = service.version
        created = service.create_agreement(body())
        service.update_agreement(created.id, body(title="Again"))
        service.delete_agreement(created.id)
        assert service.version == start + 3

    def test_returned_models_are_copies(self, service):
        created = service.create_agreement(body())
        created.jurisdictions.clear()
        assert len(service.get_agreement(created.id).jurisdictions) == 2

    def test_mutations_recorded(self, service):
        service.create_agreement(body())
        assert get_metrics().get_summary()["agreement_mutations"] == 1


class TestThemes:

    def test_create_trims_name(self, service):
        theme = service.create_theme(ThemeInput(name="  Energy "))
        assert theme.name == "Energy"
        assert [t.name for t in service.list_themes()] == ["Energy"]

    def test_blank_name_rejected(self, service):
        with pytest.raises(ValidationError):
            service.create_theme(ThemeInput(name="   "))

    def test_duplicate_name_rejected(self, service):
        service.create_theme(ThemeInput(name="Energy"))

        with pytest.raises(DuplicateThemeError) as exc:
            service.create_theme(ThemeInput(name="  Energy "))

        assert isinstance(exc.value, ValidationError)
        assert exc.value.status_code == 400
        assert exc.value.message == "Theme already exists"
        assert [t.name for t in service.list_themes()] == ["Energy"]

    def test_names_are_case_sensitive(self, service):
        service.create_theme(ThemeInput(name="Energy"))
        service.create_theme(ThemeInput(name="energy"))
        assert len(service.list_themes()) == 2

    def test_rename_onto_existing_name_rejected(self, service):
        service.create_theme(ThemeInput(name="Energy"))
        food = service.create_theme(ThemeInput(name="Food"))
        agreement = service.create_agreement(body(theme="Food"))

        with pytest.raises(DuplicateThemeError):
            service.rename_theme(food.id, ThemeInput(name="Energy"))

        assert sorted(t.name for t in service.list_themes()) == ["Energy", "Food"]
        assert service.get_agreement(agreement.id).theme == "Food"

    def test_rename_to_own_name(self, service):
        theme = service.create_theme(ThemeInput(name="Energy"))
        assert service.rename_theme(theme.id, ThemeInput(name=" Energy ")).name == "Energy"

    def test_rename_updates_agreements(self, service):
        theme = service.create_theme(ThemeInput(name="Labour Mobility"))
        kept = service.create_agreement(body(theme="Transportation"))
        moved = service.create_agreement(body(theme="Labour Mobility"))

        service.rename_theme(theme.id, ThemeInput(name="Workforce"))

        assert service.get_agreement(moved.id).theme == "Workforce"
        assert service.get_agreement(kept.id).theme == "Transportation"

    def test_rename_reference_failure_is_logged(self, service, monkeypatch):
        theme = service.create_theme(ThemeInput(name="Labour Mobility"))

        def boom(old, new):
            raise StoreError("bulk update failed")

        monkeypatch.setattr(service.store, "rename_theme_references", boom)
        renamed = service.rename_theme(theme.id, ThemeInput(name="Workforce"))
        assert renamed.name == "Workforce"

    def test_rename_missing(self, service):
        with pytest.raises(NotFoundError):
            service.rename_theme("nope", ThemeInput(name="X"))

    def test_delete_in_use_rejected(self, service):
        theme = service.create_theme(ThemeInput(name="Labour Mobility"))
        agreement = service.create_agreement(body(theme="Labour Mobility"))

        with pytest.raises(ThemeInUseError) as exc:
            service.delete_theme(theme.id)

        assert exc.value.status_code == 400
        assert exc.value.message == "Cannot delete theme that is being used by agreements"
        assert [t.id for t in service.list_themes()] == [theme.id]
        assert service.get_agreement(agreement.id).theme == "Labour Mobility"

    def test_delete_unused(self, service):
        theme = service.create_theme(ThemeInput(name="Energy"))
        service.delete_theme(theme.id)
        assert service.list_themes() == []

    def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            service.delete_theme("nope")


class TestInMemoryStore:

    def test_clear(self):
        store = InMemoryAgreementStore()
        service = TrackerService(store)
        service.create_agreement(body())
        service.create_theme(ThemeInput(name="Energy"))
        store.clear()
        assert service.list_agreements() == []
        assert service.list_themes() == []

    def test_list_oldest_first(self, service):
        first = service.create_agreement(body(title="First"))
        second = service.create_agreement(body(title="Second"))
        assert [a.id for a in service.list_agreements()] == [first.id, second.id]

    def test_ping(self, store):
        assert store.ping()

    def test_theme_names_unique(self, store):
        store.insert_theme("Energy")
        food = store.insert_theme("Food")

        with pytest.raises(DuplicateThemeError):
            store.insert_theme("Energy")
        with pytest.raises(DuplicateThemeError):
            store.update_theme(food.id, "Energy")

        assert store.update_theme(food.id, "Food").name == "Food"
        assert len(store.list_themes()) == 2
