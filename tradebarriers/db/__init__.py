"""
Database Layer for the Trade Barriers Tracker

Provides:
- AgreementStore abstraction (InMemory for dev, Postgres for prod)
- Environment-based connection and table configuration
"""

from .store import (
    AgreementStore,
    InMemoryAgreementStore,
    PostgresAgreementStore,
)
from .config import (
    DatabaseConfig,
    StoreDriver,
    TableNames,
    get_database_url,
    get_store_driver,
)

__all__ = [
    "AgreementStore",
    "InMemoryAgreementStore",
    "PostgresAgreementStore",
    "DatabaseConfig",
    "StoreDriver",
    "TableNames",
    "get_database_url",
    "get_store_driver",
]
