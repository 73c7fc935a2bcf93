"""Shared test fixtures for Ruleloom."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from ruleloom.infrastructure.db import create_schema, open_db
from ruleloom.infrastructure.schema_store import SchemaStore

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Iterator
    from pathlib import Path


def make_document() -> dict[str, Any]:
    """A small configurator schema with two rulesets.

    ``default``: A forces B, B forces C and D, E excludes F, F requires C.
    ``premium``: A requires at least one of C, D.
    """
    return {
        "gammes": {
            "Base": {
                "A": {"included": True, "optional": False},
                "B": {"included": False, "optional": True},
            },
        },
        "groupedSubgroups": {
            "Engine": {"__root": ["A", "B"], "subgroups": {"Extras": ["C", "D"]}},
            "Comfort": {"__root": ["E", "F"], "subgroups": {}},
        },
        "optionLabels": {
            "A": "Sport pack",
            "B": "Big wheels",
            "C": "Wide tyres",
            "D": "Spoiler",
            "E": "Eco mode",
            "F": "Turbo",
        },
        "ruleSets": {
            "default": {
                "rules": {
                    "A": {"mandatory": ["B"]},
                    "B": {"mandatory": ["C", "D"]},
                    "E": {"incompatible_with": ["F"]},
                    "F": {"requires": ["C"]},
                },
            },
            "premium": {
                "rules": {
                    "A": {"requires_groups": [{"min": 1, "of": ["C", "D"]}]},
                },
            },
        },
    }


@pytest.fixture()
def document() -> dict[str, Any]:
    return make_document()


@pytest.fixture()
def document_file(tmp_path: Path) -> Path:
    """The sample document written as ``sample.json``."""
    path = tmp_path / "sample.json"
    path.write_text(json.dumps(make_document()), encoding="utf-8")
    return path


@pytest.fixture()
def conn(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    connection = open_db(tmp_path / "store.db")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture()
def store(conn: sqlite3.Connection) -> SchemaStore:
    return SchemaStore(conn)
