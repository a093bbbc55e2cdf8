"""
Demo Data Loader

Loads agreements and themes from demo_agreements.json in the reference/
directory and inserts them through the tracker service.

This allows:
- PRs to be readable (JSON diffs instead of Python code changes)
- The same demo set for local development, tests and fresh deployments

Usage:
    from reference.loader import load_demo_data
    result = load_demo_data(service)
"""

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from tradebarriers.core.errors import TrackerError
from tradebarriers.core.service import TrackerService
from tradebarriers.db.store import InMemoryAgreementStore
from tradebarriers.schemas import Agreement, AgreementInput, Theme, ThemeInput


# Reference directory
REFERENCE_DIR = Path(__file__).parent
DEMO_FILE = REFERENCE_DIR / "demo_agreements.json"


def load_demo_file(path: Path = DEMO_FILE) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class LoadResult:
    """Result of loading demo data."""
    def __init__(
        self,
        service: TrackerService,
        agreements: list[Agreement],
        themes: list[Theme],
        errors: list[tuple[str, str]],
    ):
        self.service = service
        self.agreements = agreements
        self.themes = themes
        self.errors = errors  # (reference_id, error_message)


def load_demo_data(
    service: Optional[TrackerService] = None,
    path: Path = DEMO_FILE,
    verbose: bool = False,
) -> LoadResult:
    """
    Load demo themes and agreements into a service.

    Themes that already exist (by name) are skipped. A bad agreement record
    is reported in the result and does not stop the load.

    Args:
        service: Target service (creates an in-memory one if None)
        path: Demo data file
        verbose: Print progress to stdout

    Returns:
        LoadResult with created agreements, themes and errors
    """
    def log(msg: str):
        if verbose:
            print(msg)

    if service is None:
        service = TrackerService(InMemoryAgreementStore())

    data = load_demo_file(path)
    existing_themes = {t.name for t in service.list_themes()}

    themes: list[Theme] = []
    agreements: list[Agreement] = []
    errors: list[tuple[str, str]] = []

    for name in data.get("themes", []):
        if name in existing_themes:
            log(f"  - Theme exists: {name}")
            continue
        try:
            themes.append(service.create_theme(ThemeInput(name=name)))
            log(f"  + Theme: {name}")
        except TrackerError as e:
            errors.append((f"theme:{name}", e.message))

    for record in data.get("agreements", []):
        ref_id = record.get("reference_id") or record.get("title", "?")
        fields = {k: v for k, v in record.items() if k != "reference_id"}
        try:
            agreement = service.create_agreement(AgreementInput.model_validate(fields))
        except PydanticValidationError as e:
            errors.append((ref_id, str(e)))
            log(f"  x {ref_id}: invalid record")
            continue
        except TrackerError as e:
            errors.append((ref_id, e.message))
            log(f"  x {ref_id}: {e.message}")
            continue
        agreements.append(agreement)
        log(f"  + {ref_id}: {agreement.id} [{agreement.status.value}]")

    log(f"Loaded {len(agreements)} agreements, {len(themes)} themes, {len(errors)} errors")

    return LoadResult(
        service=service,
        agreements=agreements,
        themes=themes,
        errors=errors,
    )


def main():
    """Run as standalone script."""
    result = load_demo_data(verbose=True)
    for ref_id, err in result.errors:
        print(f"  {ref_id}: {err}")


if __name__ == "__main__":
    main()
