"""SQLite database layer: connection management, schema, meta helpers."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

# Schema version: increment on breaking changes
SCHEMA_VERSION = "1"

_SCHEMA_SQL = """\
-- Saved configurator schemas (catalog + rulesets as a JSON document)
CREATE TABLE IF NOT EXISTS schemas (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT NOT NULL UNIQUE COLLATE NOCASE,
    payload    TEXT NOT NULL,
    archived   INTEGER NOT NULL DEFAULT 0 CHECK(archived IN (0, 1)),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Audit trail; rows outlive deleted schemas
CREATE TABLE IF NOT EXISTS schema_audit (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    schema_id  INTEGER,
    name       TEXT,
    action     TEXT NOT NULL CHECK(action IN (
        'create','update','archive','unarchive','delete'
    )),
    actor      TEXT,
    created_at TEXT NOT NULL,
    extra      TEXT
);

-- Store metadata
CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_schemas_archived ON schemas(archived);
CREATE INDEX IF NOT EXISTS idx_audit_schema ON schema_audit(schema_id);
"""


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) a SQLite database with proper PRAGMAs.

    Sets WAL journal mode (persistent per-file) and enables foreign keys
    (per-connection, required on every open).

    Returns a connection with ``sqlite3.Row`` row factory.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).  Records
    ``schema_version`` in the ``meta`` table.
    """
    conn.executescript(_SCHEMA_SQL)
    set_meta(conn, "schema_version", SCHEMA_VERSION)


def get_meta(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    """Read a value from the ``meta`` table.

    Returns *default* (``None``) if the key doesn't exist.
    """
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    if row is None:
        return default
    return str(row[0])


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or update a key in the ``meta`` table."""
    conn.execute(
        "INSERT INTO meta (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, value),
    )
    conn.commit()
