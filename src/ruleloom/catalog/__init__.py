"""Catalog domain — option hierarchy, labels, ranges, schema documents."""

from ruleloom.catalog.catalog import (
    Catalog,
    OptionGroup,
    RangeAvailability,
    catalog_from_document,
    catalog_to_document,
)
from ruleloom.catalog.payload import (
    PayloadError,
    SchemaPayload,
    build_payload,
    dump_payload_file,
    hydrate_payload,
    load_payload_file,
)

__all__ = [
    "Catalog",
    "OptionGroup",
    "PayloadError",
    "RangeAvailability",
    "SchemaPayload",
    "build_payload",
    "catalog_from_document",
    "catalog_to_document",
    "dump_payload_file",
    "hydrate_payload",
    "load_payload_file",
]
