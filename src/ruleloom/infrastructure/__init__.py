"""Infrastructure domain — SQLite layer and the schema store with its audit log."""

from ruleloom.infrastructure.db import (
    SCHEMA_VERSION,
    create_schema,
    get_meta,
    open_db,
    set_meta,
)
from ruleloom.infrastructure.schema_store import (
    AuditEvent,
    AuditSummary,
    SchemaNotFoundError,
    SchemaRecord,
    SchemaStore,
    SchemaStoreError,
    SchemaValidationError,
)

__all__ = [
    "SCHEMA_VERSION",
    "AuditEvent",
    "AuditSummary",
    "SchemaNotFoundError",
    "SchemaRecord",
    "SchemaStore",
    "SchemaStoreError",
    "SchemaValidationError",
    "create_schema",
    "get_meta",
    "open_db",
    "set_meta",
]
