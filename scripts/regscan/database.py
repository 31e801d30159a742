"""
Database management for the regulatory news scanner.

Stores each entity kind (regulatory updates, source health, relevance rules,
configured sources, company profiles, feedback) as JSON documents in its own
SQLite table, and exposes the small filter/create/update surface the scan
pipeline relies on.
"""

import json
import re
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from .config import config

ENTITY_TABLES = (
    "regulatory_updates",
    "source_health",
    "relevance_rules",
    "compliance_sources",
    "company_profiles",
    "relevance_feedback",
)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StoreError(Exception):
    """Raised when a store operation cannot be completed."""


class Database:
    """Database manager for the regulatory news scanner."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """
        Initialize the database manager.

        Args:
            db_path: Optional path to the database file. Uses config default if not provided.
        """
        self.db_path = db_path or config.database_path
        self._ensure_directory()
        self._init_schema()

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            SQLite connection with row factory set to sqlite3.Row.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize the database schema."""
        with self.connection() as conn:
            cursor = conn.cursor()
            for table in ENTITY_TABLES:
                cursor.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        data TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                cursor.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_created ON {table}(created_at)"
                )

    def store(self, table: str) -> "EntityStore":
        """Get a store bound to one entity table."""
        if table not in ENTITY_TABLES:
            raise StoreError(f"Unknown entity table: {table}")
        return EntityStore(self, table)

    @property
    def updates(self) -> "EntityStore":
        return self.store("regulatory_updates")

    @property
    def health(self) -> "EntityStore":
        return self.store("source_health")

    @property
    def rules(self) -> "EntityStore":
        return self.store("relevance_rules")

    @property
    def sources(self) -> "EntityStore":
        return self.store("compliance_sources")

    @property
    def profiles(self) -> "EntityStore":
        return self.store("company_profiles")

    @property
    def feedback(self) -> "EntityStore":
        return self.store("relevance_feedback")


class EntityStore:
    """JSON document store for a single entity kind.

    Records are returned as plain dicts carrying their ``id`` and
    ``created_date`` alongside the stored fields, newest first.
    """

    def __init__(self, database: Database, table: str) -> None:
        self.database = database
        self.table = table

    @staticmethod
    def _to_record(row: sqlite3.Row) -> Dict[str, Any]:
        record = json.loads(row["data"])
        record["id"] = row["id"]
        record["created_date"] = row["created_at"]
        record["updated_date"] = row["updated_at"]
        return record

    def filter(
        self,
        criteria: Optional[Dict[str, Any]] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Find records whose fields equal every criterion.

        Args:
            criteria: Field/value pairs to match exactly.
            since: Only return records created at or after this time.
            limit: Maximum number of records to return.

        Returns:
            Matching records, newest first.
        """
        clauses = []
        params: List[Any] = []

        for field_name, value in (criteria or {}).items():
            if not _FIELD_RE.match(field_name):
                raise StoreError(f"Invalid field name: {field_name}")
            path = f"$.{field_name}"
            if value is None:
                clauses.append("json_extract(data, ?) IS NULL")
                params.append(path)
            else:
                clauses.append("json_extract(data, ?) = ?")
                params.extend([path, int(value) if isinstance(value, bool) else value])

        if since is not None:
            clauses.append("created_at >= ?")
            params.append(since.isoformat())

        sql = f"SELECT * FROM {self.table}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        with self.database.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._to_record(row) for row in rows]

    def get(self, record_id: int) -> Optional[Dict[str, Any]]:
        """Get a single record by id."""
        with self.database.connection() as conn:
            row = conn.execute(
                f"SELECT * FROM {self.table} WHERE id = ?", (record_id,)
            ).fetchone()
        return self._to_record(row) if row else None

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new record.

        Args:
            record: Field values; any ``id`` key is ignored.

        Returns:
            The stored record including its assigned id.
        """
        data = {k: v for k, v in record.items() if k not in ("id", "created_date", "updated_date")}
        now = datetime.now().isoformat()
        with self.database.connection() as conn:
            cursor = conn.execute(
                f"INSERT INTO {self.table} (data, created_at, updated_at) VALUES (?, ?, ?)",
                (json.dumps(data, default=str), now, now),
            )
            record_id = cursor.lastrowid
        return self.get(record_id)

    def update(self, record_id: int, patch: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge field changes into an existing record.

        Args:
            record_id: Id of the record to update.
            patch: Fields to overwrite.

        Returns:
            The updated record.

        Raises:
            StoreError: If the record does not exist.
        """
        with self.database.connection() as conn:
            row = conn.execute(
                f"SELECT data FROM {self.table} WHERE id = ?", (record_id,)
            ).fetchone()
            if row is None:
                raise StoreError(f"{self.table} record {record_id} not found")
            data = json.loads(row["data"])
            data.update(
                {k: v for k, v in patch.items() if k not in ("id", "created_date", "updated_date")}
            )
            conn.execute(
                f"UPDATE {self.table} SET data = ?, updated_at = ? WHERE id = ?",
                (json.dumps(data, default=str), datetime.now().isoformat(), record_id),
            )
        return self.get(record_id)

    def count(self) -> int:
        """Count all records in this store."""
        with self.database.connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()[0]
