"""Repository layer responsible for all database access.

The allocation layer talks to the store only through the generic
select/insert/update/delete calls below, so any relational backend exposing
the same shape can replace SQLite. Each call is its own unit of work; nothing
here spans several calls in one transaction.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

from residence.utils.config import Settings, get_settings
from residence.utils.logger import get_logger


logger = get_logger(__name__)


ROOMS = "Rooms"
BEDS = "Beds"
GUESTS = "Guests"

_TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    ROOMS: (
        "id",
        "room_number",
        "floor",
        "bed_count",
        "notes",
        "created_at",
        "updated_at",
    ),
    BEDS: (
        "id",
        "room_id",
        "bed_number",
        "status",
        "guest_id",
        "notes",
        "deactivation_reason",
        "deactivated_at",
        "deactivated_by",
        "created_at",
        "updated_at",
    ),
    GUESTS: (
        "id",
        "full_name",
        "document",
        "status",
        "room_number",
        "created_at",
        "updated_at",
    ),
}


class RepositoryError(RuntimeError):
    """Raised when the underlying database call fails."""


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_columns(table: str, columns: Iterable[str]) -> None:
    known = _TABLE_COLUMNS.get(table)
    if known is None:
        raise RepositoryError(f"Unknown table: {table}")
    unknown = [column for column in columns if column not in known]
    if unknown:
        raise RepositoryError(f"Unknown column(s) for {table}: {', '.join(unknown)}")


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    supports_cascade = True

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        room_number TEXT NOT NULL,
                        floor INTEGER NOT NULL,
                        bed_count INTEGER NOT NULL CHECK (bed_count >= 0),
                        notes TEXT NOT NULL DEFAULT '',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Guests (
                        id TEXT PRIMARY KEY,
                        full_name TEXT NOT NULL,
                        document TEXT NOT NULL DEFAULT '',
                        status TEXT NOT NULL DEFAULT 'Active',
                        room_number TEXT NOT NULL DEFAULT '',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Beds (
                        id TEXT PRIMARY KEY,
                        room_id TEXT NOT NULL,
                        bed_number INTEGER NOT NULL CHECK (bed_number > 0),
                        status TEXT NOT NULL DEFAULT 'Active'
                            CHECK (status IN ('Active', 'Inactive')),
                        guest_id TEXT,
                        notes TEXT NOT NULL DEFAULT '',
                        deactivation_reason TEXT,
                        deactivated_at TEXT,
                        deactivated_by TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        UNIQUE (room_id, bed_number),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE CASCADE,
                        FOREIGN KEY (guest_id) REFERENCES Guests(id) ON DELETE SET NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_beds_room_number
                    ON Beds(room_id, bed_number);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_beds_guest
                    ON Beds(guest_id);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Database initialization failed: {exc}") from exc

    def select(
        self,
        table: str,
        *,
        eq: Optional[Mapping[str, Any]] = None,
        in_: Optional[Mapping[str, Sequence[Any]]] = None,
        not_null: Sequence[str] = (),
        order_by: Sequence[tuple[str, bool]] = (),
    ) -> list[dict[str, Any]]:
        """Filtered select; `order_by` holds (column, ascending) pairs."""
        eq = dict(eq or {})
        in_ = dict(in_ or {})
        _check_columns(
            table,
            [*eq, *in_, *not_null, *(column for column, _ in order_by)],
        )

        clauses: list[str] = []
        params: list[Any] = []
        for column, value in eq.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)
        for column, values in in_.items():
            values = list(values)
            if not values:
                return []
            placeholders = ",".join("?" for _ in values)
            clauses.append(f"{column} IN ({placeholders})")
            params.extend(values)
        for column in not_null:
            clauses.append(f"{column} IS NOT NULL")

        query = f"SELECT * FROM {table}"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        if order_by:
            query += " ORDER BY " + ", ".join(
                f"{column} {'ASC' if ascending else 'DESC'}"
                for column, ascending in order_by
            )

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(query + ";", tuple(params))
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise RepositoryError(f"Select from {table} failed: {exc}") from exc

    def select_beds_with_guests(self) -> list[dict[str, Any]]:
        """Return every bed with its occupant profile joined as guest_* keys."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    SELECT
                        b.*,
                        g.id AS guest_profile_id,
                        g.full_name AS guest_full_name,
                        g.document AS guest_document,
                        g.status AS guest_status,
                        g.room_number AS guest_room_number
                    FROM Beds AS b
                    LEFT JOIN Guests AS g ON g.id = b.guest_id
                    ORDER BY b.bed_number ASC;
                    """
                )
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise RepositoryError(f"Bed/guest join failed: {exc}") from exc

    def insert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Insert one or many rows in a single statement batch.

        Missing ids and timestamps are filled in; the stored rows are returned.
        """
        if not rows:
            return []
        now = utc_now()
        prepared: list[dict[str, Any]] = []
        for row in rows:
            record = dict(row)
            record.setdefault("id", str(uuid.uuid4()))
            record.setdefault("created_at", now)
            record.setdefault("updated_at", now)
            prepared.append(record)

        columns = list(prepared[0])
        _check_columns(table, columns)
        if any(list(record) != columns for record in prepared[1:]):
            raise RepositoryError("Batch insert rows must share the same columns")

        placeholders = ",".join("?" for _ in columns)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.executemany(
                    f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders});",
                    [tuple(record[column] for column in columns) for record in prepared],
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Insert into {table} failed: {exc}") from exc
        return prepared

    def update(
        self,
        table: str,
        row_id: str,
        fields: Mapping[str, Any],
    ) -> int:
        """Partial update by id; returns the number of rows touched."""
        if not fields:
            return 0
        values = dict(fields)
        values.setdefault("updated_at", utc_now())
        _check_columns(table, values)
        assignments = ", ".join(f"{column} = ?" for column in values)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    f"UPDATE {table} SET {assignments} WHERE id = ?;",
                    (*values.values(), row_id),
                )
                conn.commit()
                return int(cursor.rowcount)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Update of {table} failed: {exc}") from exc

    def delete(self, table: str, ids: Sequence[str]) -> int:
        """Delete rows by id list; returns the number of rows removed."""
        if not ids:
            return 0
        _check_columns(table, ["id"])
        placeholders = ",".join("?" for _ in ids)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    f"DELETE FROM {table} WHERE id IN ({placeholders});",
                    tuple(ids),
                )
                conn.commit()
                return int(cursor.rowcount)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Delete from {table} failed: {exc}") from exc

    def count(self, table: str) -> int:
        _check_columns(table, [])
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(f"SELECT COUNT(*) AS count FROM {table};")
                return int(cursor.fetchone()["count"])
        except sqlite3.Error as exc:
            raise RepositoryError(f"Count on {table} failed: {exc}") from exc

    def create_guest(
        self,
        full_name: str,
        document: str = "",
        status: str = "Active",
    ) -> str:
        """Insert a guest profile and return its id.

        Guest profiles belong to the guest module; this exists for seeding and
        tests against a standalone database.
        """
        rows = self.insert(
            GUESTS,
            [
                {
                    "full_name": full_name,
                    "document": document,
                    "status": status,
                    "room_number": "",
                }
            ],
        )
        return str(rows[0]["id"])

    def seed_demo_guests(self) -> None:
        """Seed a few guest profiles only when the table is empty."""
        if self.count(GUESTS) > 0:
            logger.info("Guest profiles already present; skipping seed")
            return
        guests = [
            ("Maria das Dores", "123.456.789-00"),
            ("Joao Batista", "234.567.890-11"),
            ("Ana Lucia Ferreira", "345.678.901-22"),
            ("Antonio Carlos", "456.789.012-33"),
        ]
        for full_name, document in guests:
            self.create_guest(full_name, document)
        logger.info("Guest seed completed with %s records", len(guests))
