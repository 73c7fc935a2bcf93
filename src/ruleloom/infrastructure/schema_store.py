"""Schema store: named schema documents in SQLite with audit history and archival."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SchemaStoreError(Exception):
    """Base class for schema store failures."""


class SchemaNotFoundError(SchemaStoreError, LookupError):
    """Raised when a schema id does not exist."""


class SchemaValidationError(SchemaStoreError, ValueError):
    """Raised for blank names, non-mapping payloads, invalid ids or name clashes."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchemaRecord:
    """One saved schema.  ``payload`` is None in listings."""

    id: int
    name: str
    archived: bool
    created_at: str
    updated_at: str
    payload: dict[str, Any] | None = None
    status: str | None = None  # "created" | "updated" | "archived" | "restored"


@dataclass(frozen=True)
class AuditEvent:
    """A single audit log entry."""

    id: int
    schema_id: int | None
    name: str | None
    action: str
    actor: str | None
    created_at: str
    extra: dict[str, Any] | None = None


@dataclass(frozen=True)
class AuditSummary:
    """The latest audit entry of a schema, with its current state."""

    schema_id: int
    name: str | None
    action: str
    actor: str | None
    created_at: str
    exists: bool
    archived: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _normalize_name(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        msg = "Schema name is required"
        raise SchemaValidationError(msg)
    return name.strip()


def _check_payload(payload: object) -> dict[str, Any]:
    if not isinstance(payload, dict):
        msg = "Schema payload must be a mapping"
        raise SchemaValidationError(msg)
    return payload


def _check_id(schema_id: object) -> int:
    if isinstance(schema_id, bool) or not isinstance(schema_id, int) or schema_id <= 0:
        msg = f"Invalid schema id: {schema_id!r}"
        raise SchemaValidationError(msg)
    return schema_id


def _row_to_record(
    row: sqlite3.Row, *, with_payload: bool = False, status: str | None = None
) -> SchemaRecord:
    payload = json.loads(row["payload"]) if with_payload else None
    return SchemaRecord(
        id=int(row["id"]),
        name=str(row["name"]),
        archived=bool(row["archived"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
        payload=payload,
        status=status,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SchemaStore:
    """CRUD over the ``schemas`` table; every write appends to ``schema_audit``.

    The connection must already carry the schema (see
    :func:`ruleloom.infrastructure.db.create_schema`).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # -- reads ---------------------------------------------------------------

    def _fetch_row(self, schema_id: int) -> sqlite3.Row:
        row = self._conn.execute(
            "SELECT id, name, payload, archived, created_at, updated_at "
            "FROM schemas WHERE id = ?",
            (schema_id,),
        ).fetchone()
        if row is None:
            msg = f"Schema {schema_id} not found"
            raise SchemaNotFoundError(msg)
        return row

    def get(self, schema_id: int) -> SchemaRecord:
        """Return the schema with its parsed payload."""
        return _row_to_record(self._fetch_row(_check_id(schema_id)), with_payload=True)

    def find_by_name(self, name: str) -> SchemaRecord | None:
        """Case-insensitive lookup by name; None when absent."""
        row = self._conn.execute(
            "SELECT id, name, payload, archived, created_at, updated_at "
            "FROM schemas WHERE LOWER(name) = LOWER(?)",
            (name.strip(),),
        ).fetchone()
        return _row_to_record(row, with_payload=True) if row is not None else None

    def list_schemas(self, *, archived: bool | None = False) -> list[SchemaRecord]:
        """List schemas, newest update first.

        *archived* ``False`` (default) lists active schemas, ``True`` only
        archived ones and ``None`` all of them.
        """
        query = "SELECT id, name, payload, archived, created_at, updated_at FROM schemas"
        params: tuple[object, ...] = ()
        if archived is not None:
            query += " WHERE archived = ?"
            params = (1 if archived else 0,)
        query += " ORDER BY updated_at DESC, id DESC"
        return [_row_to_record(row) for row in self._conn.execute(query, params).fetchall()]

    # -- writes --------------------------------------------------------------

    def _record_audit(
        self,
        schema_id: int | None,
        name: str | None,
        action: str,
        actor: str | None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self._conn.execute(
            "INSERT INTO schema_audit (schema_id, name, action, actor, created_at, extra) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                schema_id,
                name,
                action,
                actor,
                _now(),
                json.dumps(extra, ensure_ascii=False) if extra is not None else None,
            ),
        )

    def _write(self, sql: str, params: tuple[object, ...]) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            msg = f"Schema name already in use: {params[0]}"
            raise SchemaValidationError(msg) from exc

    def save(
        self,
        name: str,
        payload: dict[str, Any],
        *,
        schema_id: int | None = None,
        archived: bool | None = None,
        actor: str | None = None,
    ) -> SchemaRecord:
        """Create or update a schema.

        The target is *schema_id* when given, else an existing schema with
        the same (case-insensitive) name, else a new row.  ``archived=None``
        keeps the current flag on update and means "not archived" on create.
        """
        trimmed = _normalize_name(name)
        document = _check_payload(payload)

        target_id = _check_id(schema_id) if schema_id is not None else None
        if target_id is None:
            existing = self.find_by_name(trimmed)
            target_id = existing.id if existing is not None else None

        if target_id is not None:
            return self.update(target_id, trimmed, document, archived=archived, actor=actor)

        now = _now()
        cursor = self._write(
            "INSERT INTO schemas (name, payload, archived, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (trimmed, json.dumps(document, ensure_ascii=False), 1 if archived else 0, now, now),
        )
        new_id = int(cursor.lastrowid or 0)
        self._record_audit(new_id, trimmed, "create", actor)
        self._conn.commit()
        logger.info("Created schema %d (%s)", new_id, trimmed)
        return SchemaRecord(
            id=new_id,
            name=trimmed,
            archived=bool(archived),
            created_at=now,
            updated_at=now,
            status="created",
        )

    def update(
        self,
        schema_id: int,
        name: str,
        payload: dict[str, Any],
        *,
        archived: bool | None = None,
        actor: str | None = None,
    ) -> SchemaRecord:
        """Replace name and payload of an existing schema."""
        trimmed = _normalize_name(name)
        document = _check_payload(payload)
        current = self._fetch_row(_check_id(schema_id))
        archived_value = bool(current["archived"]) if archived is None else archived

        now = _now()
        self._write(
            "UPDATE schemas SET name = ?, payload = ?, archived = ?, updated_at = ? WHERE id = ?",
            (
                trimmed,
                json.dumps(document, ensure_ascii=False),
                int(archived_value),
                now,
                schema_id,
            ),
        )
        self._record_audit(schema_id, trimmed, "update", actor)
        self._conn.commit()
        logger.info("Updated schema %d (%s)", schema_id, trimmed)
        return SchemaRecord(
            id=schema_id,
            name=trimmed,
            archived=archived_value,
            created_at=str(current["created_at"]),
            updated_at=now,
            status="updated",
        )

    def set_archived(
        self, schema_id: int, archived: bool = True, *, actor: str | None = None
    ) -> SchemaRecord:
        """Soft-archive (or restore) a schema without touching its payload."""
        current = self._fetch_row(_check_id(schema_id))
        now = _now()
        self._conn.execute(
            "UPDATE schemas SET archived = ?, updated_at = ? WHERE id = ?",
            (int(archived), now, schema_id),
        )
        action = "archive" if archived else "unarchive"
        self._record_audit(schema_id, str(current["name"]), action, actor)
        self._conn.commit()
        logger.info("%s schema %d", "Archived" if archived else "Restored", schema_id)
        return SchemaRecord(
            id=schema_id,
            name=str(current["name"]),
            archived=archived,
            created_at=str(current["created_at"]),
            updated_at=now,
            status="archived" if archived else "restored",
        )

    def delete(self, schema_id: int, *, actor: str | None = None) -> None:
        """Hard-delete a schema; the audit entry keeps a payload snapshot."""
        current = self._fetch_row(_check_id(schema_id))
        try:
            snapshot = json.loads(current["payload"]) if current["payload"] else None
        except json.JSONDecodeError:
            logger.warning("Schema %d has an unreadable payload, no snapshot kept", schema_id)
            snapshot = None
        self._conn.execute("DELETE FROM schemas WHERE id = ?", (schema_id,))
        self._record_audit(
            schema_id,
            str(current["name"]),
            "delete",
            actor,
            {"payload": snapshot} if snapshot is not None else None,
        )
        self._conn.commit()
        logger.info("Deleted schema %d (%s)", schema_id, current["name"])

    # -- audit ---------------------------------------------------------------

    def audit(self, schema_id: int) -> list[AuditEvent]:
        """Audit events of one schema, newest first (deleted schemas included)."""
        rows = self._conn.execute(
            "SELECT id, schema_id, name, action, actor, created_at, extra "
            "FROM schema_audit WHERE schema_id = ? ORDER BY created_at DESC, id DESC",
            (_check_id(schema_id),),
        ).fetchall()
        return [
            AuditEvent(
                id=int(r["id"]),
                schema_id=r["schema_id"],
                name=r["name"],
                action=str(r["action"]),
                actor=r["actor"],
                created_at=str(r["created_at"]),
                extra=json.loads(r["extra"]) if r["extra"] else None,
            )
            for r in rows
        ]

    def audit_summaries(self) -> list[AuditSummary]:
        """Latest audit entry per schema id, with whether the schema still exists."""
        rows = self._conn.execute(
            "SELECT a.schema_id, a.name, a.action, a.actor, a.created_at, "
            "s.id AS current_id, s.archived "
            "FROM schema_audit a "
            "LEFT JOIN schema_audit newer "
            "  ON a.schema_id = newer.schema_id "
            " AND (a.created_at < newer.created_at "
            "      OR (a.created_at = newer.created_at AND a.id < newer.id)) "
            "LEFT JOIN schemas s ON s.id = a.schema_id "
            "WHERE a.schema_id IS NOT NULL AND newer.schema_id IS NULL "
            "ORDER BY a.created_at DESC, a.id DESC"
        ).fetchall()
        return [
            AuditSummary(
                schema_id=int(r["schema_id"]),
                name=r["name"],
                action=str(r["action"]),
                actor=r["actor"],
                created_at=str(r["created_at"]),
                exists=r["current_id"] is not None,
                archived=bool(r["archived"]),
            )
            for r in rows
        ]
