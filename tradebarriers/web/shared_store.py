"""
Shared Store Wiring

Builds the store, service, auth backend and templates used by the app.
Supports both in-memory (development) and PostgreSQL (production) modes.

Mode is determined by environment variables:
- TRADEBARRIERS_STORE_DRIVER: Explicit driver selection (memory, psycopg2)
- DATABASE_URL or DATABASE_HOST: Database connection (auto-selects psycopg2)
- Neither set: Use in-memory (default for development)

SEEDING:
- Seeding only happens if the store has no agreements
- Auto-seeding is DISABLED by default
- Set ENABLE_AUTO_SEED=1 to enable demo data seeding
- For production, seed via `python -m tools.manage seed-demo` instead
"""

import os
from pathlib import Path
from threading import Lock

import psycopg2
from fastapi.templating import Jinja2Templates

from tradebarriers.core.service import TrackerService
from tradebarriers.db.config import (
    DatabaseConfig,
    StoreDriver,
    TableNames,
    get_database_url,
    get_store_driver,
)
from tradebarriers.db.store import AgreementStore, InMemoryAgreementStore, PostgresAgreementStore
from tradebarriers.observability import get_logger


logger = get_logger(__name__)

# Templates directory
TEMPLATES_DIR = Path(__file__).parent / "templates"

# Seed lock to prevent race conditions in multi-worker scenarios
_seed_lock = Lock()


def create_templates() -> Jinja2Templates:
    from tradebarriers.web.filters import register_template_filters

    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    register_template_filters(templates.env)
    return templates


def create_store() -> AgreementStore:
    """
    Create the appropriate AgreementStore based on configuration.

    Returns:
        InMemoryAgreementStore for development/testing
        PostgresAgreementStore when a database is configured
    """
    driver = get_store_driver()

    if driver == StoreDriver.MEMORY:
        logger.info("Using in-memory store (no persistence)")
        return InMemoryAgreementStore()

    db_url = get_database_url()
    if db_url is None:
        logger.warning(
            "Driver needs a database but none is configured, using in-memory store",
            driver=driver.value,
        )
        return InMemoryAgreementStore()

    config = DatabaseConfig.from_url(db_url) if "://" in db_url else DatabaseConfig.from_env()
    return _create_psycopg2_store(config)


def _create_psycopg2_store(config: DatabaseConfig) -> AgreementStore:
    def connection_factory():
        return psycopg2.connect(config.to_dsn())

    try:
        test_conn = connection_factory()
        test_conn.close()
    except psycopg2.Error as e:
        logger.error(
            "Could not connect to PostgreSQL, using in-memory store",
            host=config.host,
            error=str(e),
        )
        return InMemoryAgreementStore()

    tables = TableNames.from_env()
    logger.info(
        "PostgreSQL connection established",
        host=f"{config.host}:{config.port}/{config.database}",
        agreements_table=tables.agreements,
        themes_table=tables.themes,
    )
    return PostgresAgreementStore(connection_factory, tables=tables)


def auto_seed_enabled() -> bool:
    return os.getenv("ENABLE_AUTO_SEED", "").lower() in ("1", "true", "yes")


def seed_demo_data(service: TrackerService, force: bool = False) -> int:
    """
    Seed the store with the demo agreements and themes.

    SAFETY RULES:
    - Only seeds if the store has no agreements
    - Disabled by default - set ENABLE_AUTO_SEED=1 (or pass force=True)

    Returns:
        Number of agreements inserted
    """
    if not force and not auto_seed_enabled():
        logger.debug("Auto-seeding disabled (set ENABLE_AUTO_SEED=1 to enable)")
        return 0

    with _seed_lock:
        existing = len(service.list_agreements())
        if existing:
            logger.info("Store already has agreements, skipping seed", agreement_count=existing)
            return 0

        from reference.loader import load_demo_data

        result = load_demo_data(service)
        logger.info(
            "Seeded demo data",
            agreements=len(result.agreements),
            themes=len(result.themes),
            errors=len(result.errors),
        )
        return len(result.agreements)
