"""
Agreement Store Abstraction

This module defines the AgreementStore interface and provides two
implementations:
- InMemoryAgreementStore: For development and testing
- PostgresAgreementStore: For production, rows in two PostgreSQL tables

The store is responsible for:
- Assigning ids and created_at/updated_at timestamps
- Persisting agreements and themes as snake_case rows
- Bumping `version` on every agreement mutation

The TrackerService retains responsibility for:
- Required-field validation
- Theme rename propagation and delete guards
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Optional
from uuid import uuid4

import psycopg2
import psycopg2.errors
from psycopg2 import sql
from psycopg2.extras import Json, RealDictCursor

from ..core.errors import DuplicateThemeError, StoreError
from ..schemas import Agreement, Theme
from .config import TableNames


# Columns written from an agreement record, in insert order
AGREEMENT_COLUMNS = (
    "title",
    "summary",
    "description",
    "status",
    "deadline",
    "source_url",
    "launch_date",
    "theme",
    "jurisdictions",
    "agreement_history",
)

JSON_COLUMNS = frozenset({"jurisdictions", "agreement_history"})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# ============================================================
# ABSTRACT BASE CLASS
# ============================================================

class AgreementStore(ABC):
    """
    Abstract base class for agreement and theme storage.

    Records passed to insert/update are snake_case dicts holding only the
    writable columns (see AGREEMENT_COLUMNS). Nested lists are plain dicts.

    Implementations must ensure:
    1. list_agreements() is ordered by created_at ascending
    2. list_themes() is ordered by name ascending
    3. version increases on every agreement mutation
    """

    @property
    @abstractmethod
    def version(self) -> int:
        """Monotonic counter bumped on every agreement mutation."""

    @abstractmethod
    def list_agreements(self) -> list[Agreement]:
        pass

    @abstractmethod
    def get_agreement(self, agreement_id: str) -> Optional[Agreement]:
        pass

    @abstractmethod
    def insert_agreement(self, record: dict[str, Any]) -> Agreement:
        pass

    @abstractmethod
    def update_agreement(self, agreement_id: str, record: dict[str, Any]) -> Optional[Agreement]:
        """Replace all writable columns. Returns None if the id is unknown."""

    @abstractmethod
    def delete_agreement(self, agreement_id: str) -> bool:
        """Returns False if the id is unknown."""

    @abstractmethod
    def rename_theme_references(self, old_name: str, new_name: str) -> int:
        """Point every agreement using old_name at new_name. Returns rows changed."""

    @abstractmethod
    def count_agreements_with_theme(self, name: str) -> int:
        pass

    @abstractmethod
    def list_themes(self) -> list[Theme]:
        pass

    @abstractmethod
    def get_theme(self, theme_id: str) -> Optional[Theme]:
        pass

    @abstractmethod
    def insert_theme(self, name: str) -> Theme:
        pass

    @abstractmethod
    def update_theme(self, theme_id: str, name: str) -> Optional[Theme]:
        pass

    @abstractmethod
    def delete_theme(self, theme_id: str) -> bool:
        pass

    def init_schema(self) -> None:
        """Create tables when missing. No-op for stores without a schema."""

    def ping(self) -> bool:
        """True when the backend is reachable."""
        return True


# ============================================================
# IN-MEMORY IMPLEMENTATION
# ============================================================

class InMemoryAgreementStore(AgreementStore):
    """
    In-memory implementation of AgreementStore.

    Suitable for:
    - Development
    - Testing
    - Single-instance demos without persistence requirements

    Returned models are copies; mutating them does not touch the store.
    """

    def __init__(self):
        self._agreements: dict[str, Agreement] = {}
        self._themes: dict[str, Theme] = {}
        self._version = 0
        self._lock = Lock()

    @property
    def version(self) -> int:
        return self._version

    def list_agreements(self) -> list[Agreement]:
        with self._lock:
            ordered = sorted(self._agreements.values(), key=lambda a: a.created_at)
            return [a.model_copy(deep=True) for a in ordered]

    def get_agreement(self, agreement_id: str) -> Optional[Agreement]:
        with self._lock:
            agreement = self._agreements.get(agreement_id)
            return agreement.model_copy(deep=True) if agreement else None

    def insert_agreement(self, record: dict[str, Any]) -> Agreement:
        now = _now()
        agreement = Agreement.model_validate({
            **record,
            "id": _new_id(),
            "created_at": now,
            "updated_at": now,
        })
        with self._lock:
            self._agreements[agreement.id] = agreement
            self._version += 1
        return agreement.model_copy(deep=True)

    def update_agreement(self, agreement_id: str, record: dict[str, Any]) -> Optional[Agreement]:
        with self._lock:
            current = self._agreements.get(agreement_id)
            if current is None:
                return None
            updated = Agreement.model_validate({
                **record,
                "id": agreement_id,
                "created_at": current.created_at,
                "updated_at": _now(),
            })
            self._agreements[agreement_id] = updated
            self._version += 1
            return updated.model_copy(deep=True)

    def delete_agreement(self, agreement_id: str) -> bool:
        with self._lock:
            if self._agreements.pop(agreement_id, None) is None:
                return False
            self._version += 1
            return True

    def rename_theme_references(self, old_name: str, new_name: str) -> int:
        with self._lock:
            changed = 0
            for agreement_id, agreement in self._agreements.items():
                if agreement.theme == old_name:
                    self._agreements[agreement_id] = agreement.model_copy(
                        update={"theme": new_name, "updated_at": _now()}
                    )
                    changed += 1
            if changed:
                self._version += 1
            return changed

    def count_agreements_with_theme(self, name: str) -> int:
        with self._lock:
            return sum(1 for a in self._agreements.values() if a.theme == name)

    def list_themes(self) -> list[Theme]:
        with self._lock:
            return sorted(self._themes.values(), key=lambda t: t.name)

    def get_theme(self, theme_id: str) -> Optional[Theme]:
        with self._lock:
            return self._themes.get(theme_id)

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        return any(t.name == name and t.id != exclude_id for t in self._themes.values())

    def insert_theme(self, name: str) -> Theme:
        theme = Theme(id=_new_id(), name=name)
        with self._lock:
            if self._name_taken(name):
                raise DuplicateThemeError()
            self._themes[theme.id] = theme
        return theme

    def update_theme(self, theme_id: str, name: str) -> Optional[Theme]:
        with self._lock:
            if theme_id not in self._themes:
                return None
            if self._name_taken(name, exclude_id=theme_id):
                raise DuplicateThemeError()
            theme = Theme(id=theme_id, name=name)
            self._themes[theme_id] = theme
            return theme

    def delete_theme(self, theme_id: str) -> bool:
        with self._lock:
            return self._themes.pop(theme_id, None) is not None

    def clear(self) -> None:
        """Clear all data (for testing)."""
        with self._lock:
            self._agreements.clear()
            self._themes.clear()
            self._version += 1


# ============================================================
# POSTGRESQL IMPLEMENTATION
# ============================================================

class PostgresAgreementStore(AgreementStore):
    """
    PostgreSQL implementation of AgreementStore.

    Jurisdictions and agreement history are JSONB columns holding snake_case
    objects. Table names come from configuration and are always quoted with
    psycopg2.sql.Identifier.

    `version` is process-local: it reflects mutations made through this
    instance only.

    Usage:
        store = PostgresAgreementStore(lambda: psycopg2.connect(dsn))
        store.init_schema()
    """

    def __init__(
        self,
        connection_factory: Callable[[], Any],
        tables: Optional[TableNames] = None,
    ):
        """
        Args:
            connection_factory: Callable that returns a psycopg2 connection.
            tables: Table names. Defaults to agreements/themes.
        """
        self._connection_factory = connection_factory
        self._tables = tables or TableNames()
        self._version = 0
        self._version_lock = Lock()

    @property
    def version(self) -> int:
        return self._version

    def _bump(self) -> None:
        with self._version_lock:
            self._version += 1

    def _agreements(self) -> sql.Identifier:
        return sql.Identifier(self._tables.agreements)

    def _themes(self) -> sql.Identifier:
        return sql.Identifier(self._tables.themes)

    def _run(self, query, params=(), fetch: str = "none", commit: bool = False):
        """
        Execute one statement on a fresh connection.

        fetch: "none", "one", "all" or "rowcount".
        """
        try:
            conn = self._connection_factory()
        except psycopg2.Error as e:
            raise StoreError(f"Could not connect to database: {e}") from e

        cursor = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cursor.execute(query, params)
            if fetch == "one":
                result = cursor.fetchone()
            elif fetch == "all":
                result = cursor.fetchall()
            elif fetch == "rowcount":
                result = cursor.rowcount
            else:
                result = None
            if commit:
                conn.commit()
            return result
        except psycopg2.errors.UniqueViolation as e:
            conn.rollback()
            raise DuplicateThemeError() from e
        except psycopg2.Error as e:
            conn.rollback()
            raise StoreError(str(e).strip() or type(e).__name__) from e
        finally:
            cursor.close()
            conn.close()

    @staticmethod
    def _adapt(record: dict[str, Any]) -> list[Any]:
        values = []
        for column in AGREEMENT_COLUMNS:
            value = record.get(column)
            values.append(Json(value) if column in JSON_COLUMNS else value)
        return values

    @staticmethod
    def _row_to_agreement(row: dict[str, Any]) -> Agreement:
        data = dict(row)
        data["id"] = str(data["id"])
        data["jurisdictions"] = data.get("jurisdictions") or []
        data["agreement_history"] = data.get("agreement_history") or []
        return Agreement.model_validate(data)

    # ---- schema ----

    def init_schema(self) -> None:
        self._run(
            sql.SQL("""
                CREATE TABLE IF NOT EXISTS {agreements} (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    summary TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL,
                    deadline DATE,
                    source_url TEXT,
                    launch_date DATE,
                    theme TEXT,
                    jurisdictions JSONB NOT NULL DEFAULT '[]'::jsonb,
                    agreement_history JSONB NOT NULL DEFAULT '[]'::jsonb,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
                );
                CREATE TABLE IF NOT EXISTS {themes} (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                );
            """).format(agreements=self._agreements(), themes=self._themes()),
            commit=True,
        )

    def ping(self) -> bool:
        try:
            self._run("SELECT 1", fetch="one")
            return True
        except StoreError:
            return False

    # ---- agreements ----

    def list_agreements(self) -> list[Agreement]:
        rows = self._run(
            sql.SQL("SELECT * FROM {} ORDER BY created_at").format(self._agreements()),
            fetch="all",
        )
        return [self._row_to_agreement(row) for row in rows]

    def get_agreement(self, agreement_id: str) -> Optional[Agreement]:
        row = self._run(
            sql.SQL("SELECT * FROM {} WHERE id = %s").format(self._agreements()),
            (agreement_id,),
            fetch="one",
        )
        return self._row_to_agreement(row) if row else None

    def insert_agreement(self, record: dict[str, Any]) -> Agreement:
        query = sql.SQL(
            "INSERT INTO {table} (id, {columns}) VALUES (%s, {placeholders}) RETURNING *"
        ).format(
            table=self._agreements(),
            columns=sql.SQL(", ").join(map(sql.Identifier, AGREEMENT_COLUMNS)),
            placeholders=sql.SQL(", ").join(sql.Placeholder() * len(AGREEMENT_COLUMNS)),
        )
        row = self._run(query, [_new_id(), *self._adapt(record)], fetch="one", commit=True)
        self._bump()
        return self._row_to_agreement(row)

    def update_agreement(self, agreement_id: str, record: dict[str, Any]) -> Optional[Agreement]:
        query = sql.SQL(
            "UPDATE {table} SET {assignments}, updated_at = now() WHERE id = %s RETURNING *"
        ).format(
            table=self._agreements(),
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(column))
                for column in AGREEMENT_COLUMNS
            ),
        )
        row = self._run(query, [*self._adapt(record), agreement_id], fetch="one", commit=True)
        if row is None:
            return None
        self._bump()
        return self._row_to_agreement(row)

    def delete_agreement(self, agreement_id: str) -> bool:
        deleted = self._run(
            sql.SQL("DELETE FROM {} WHERE id = %s").format(self._agreements()),
            (agreement_id,),
            fetch="rowcount",
            commit=True,
        )
        if deleted:
            self._bump()
        return bool(deleted)

    def rename_theme_references(self, old_name: str, new_name: str) -> int:
        changed = self._run(
            sql.SQL("UPDATE {} SET theme = %s, updated_at = now() WHERE theme = %s").format(
                self._agreements()
            ),
            (new_name, old_name),
            fetch="rowcount",
            commit=True,
        )
        if changed:
            self._bump()
        return changed

    def count_agreements_with_theme(self, name: str) -> int:
        row = self._run(
            sql.SQL("SELECT COUNT(*) AS n FROM {} WHERE theme = %s").format(self._agreements()),
            (name,),
            fetch="one",
        )
        return row["n"]

    # ---- themes ----

    def list_themes(self) -> list[Theme]:
        rows = self._run(
            sql.SQL("SELECT id, name FROM {} ORDER BY name").format(self._themes()),
            fetch="all",
        )
        return [Theme(id=str(r["id"]), name=r["name"]) for r in rows]

    def get_theme(self, theme_id: str) -> Optional[Theme]:
        row = self._run(
            sql.SQL("SELECT id, name FROM {} WHERE id = %s").format(self._themes()),
            (theme_id,),
            fetch="one",
        )
        return Theme(id=str(row["id"]), name=row["name"]) if row else None

    def insert_theme(self, name: str) -> Theme:
        row = self._run(
            sql.SQL("INSERT INTO {} (id, name) VALUES (%s, %s) RETURNING id, name").format(
                self._themes()
            ),
            (_new_id(), name),
            fetch="one",
            commit=True,
        )
        return Theme(id=str(row["id"]), name=row["name"])

    def update_theme(self, theme_id: str, name: str) -> Optional[Theme]:
        row = self._run(
            sql.SQL("UPDATE {} SET name = %s WHERE id = %s RETURNING id, name").format(
                self._themes()
            ),
            (name, theme_id),
            fetch="one",
            commit=True,
        )
        return Theme(id=str(row["id"]), name=row["name"]) if row else None

    def delete_theme(self, theme_id: str) -> bool:
        deleted = self._run(
            sql.SQL("DELETE FROM {} WHERE id = %s").format(self._themes()),
            (theme_id,),
            fetch="rowcount",
            commit=True,
        )
        return bool(deleted)
