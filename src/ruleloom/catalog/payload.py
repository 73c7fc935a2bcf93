"""Schema documents: hydrate catalog + rulesets from a payload and build it back."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from ruleloom.catalog.catalog import Catalog, catalog_from_document, catalog_to_document
from ruleloom.rules.normalizer import (
    DEFAULT_RULESET,
    choose_active_ruleset,
    normalize_rulesets,
    ruleset_to_dict,
)

if TYPE_CHECKING:
    from pathlib import Path

    from ruleloom.rules.model import Ruleset

logger = logging.getLogger(__name__)

# Keys that may name the active ruleset, in priority order.
_ACTIVE_KEYS: tuple[str, ...] = ("activeRuleset", "currentRulesetName", "rulesetName")


class PayloadError(Exception):
    """Raised when a schema document cannot be read."""


@dataclass
class SchemaPayload:
    """Catalog, rulesets and active ruleset name of one schema."""

    catalog: Catalog = field(default_factory=Catalog)
    rulesets: dict[str, Ruleset] = field(default_factory=dict)
    active_ruleset: str = DEFAULT_RULESET


def hydrate_payload(obj: object) -> SchemaPayload:
    """Turn a raw schema document into a :class:`SchemaPayload`.

    Missing or malformed sections fall back to empty values; this never raises.
    """
    data: dict[str, Any] = obj if isinstance(obj, dict) else {}
    catalog = catalog_from_document(data)
    rulesets = normalize_rulesets(data.get("ruleSets"))

    wanted: str | None = None
    for key in _ACTIVE_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value:
            wanted = value
            break
    active = choose_active_ruleset(rulesets, wanted)
    if wanted is not None and wanted != active:
        logger.debug("Requested ruleset %r not found, using %r", wanted, active)

    return SchemaPayload(catalog=catalog, rulesets=rulesets, active_ruleset=active)


def build_payload(payload: SchemaPayload) -> dict[str, object]:
    """Serialize *payload* to a JSON-compatible schema document."""
    document = catalog_to_document(payload.catalog)
    document["ruleSets"] = {
        name: ruleset_to_dict(ruleset) for name, ruleset in payload.rulesets.items()
    }
    document["activeRuleset"] = payload.active_ruleset
    return document


def load_payload_file(path: Path) -> dict[str, Any]:
    """Read a schema document from ``.json``, ``.yml`` or ``.yaml``.

    Raises
    ------
    PayloadError
        When the file cannot be read or does not hold a mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read {path}: {exc}"
        raise PayloadError(msg) from exc

    try:
        if path.suffix.lower() in (".yml", ".yaml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        msg = f"Invalid schema document {path}: {exc}"
        raise PayloadError(msg) from exc

    if not isinstance(data, dict):
        msg = f"Schema document {path} must be a mapping"
        raise PayloadError(msg)
    return data


def dump_payload_file(document: dict[str, object], path: Path) -> None:
    """Write *document* as JSON or YAML depending on the file suffix."""
    if path.suffix.lower() in (".yml", ".yaml"):
        text = yaml.safe_dump(document, allow_unicode=True, sort_keys=False)
    else:
        text = json.dumps(document, ensure_ascii=False, indent=2) + "\n"
    path.write_text(text, encoding="utf-8")
