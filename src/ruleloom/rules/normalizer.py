"""Rule normalizer: turn legacy and canonical rule documents into RuleSpec objects.

Two document shapes exist for the rules of one option:

* canonical -- ``{"requires": [...], "incompatible_with": [...], "mandatory": [...],
  "requires_groups": [{"min": 1, "of": [...]}], "incompatible_groups": [...]}``
  (``obligatoire`` is accepted as an alias of ``mandatory``);
* legacy -- ``{target_id: "requires" | "incompatible" | "mandatory" | ...}``.

Everything downstream works on :class:`RuleSpec` only.  Malformed input never
raises; it degrades to empty fields.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from ruleloom.rules.groups import GroupKind, make_group
from ruleloom.rules.model import EMPTY_RULE, QuantifiedGroup, RuleSpec, Ruleset

logger = logging.getLogger(__name__)

DEFAULT_RULESET = "default"

_CANONICAL_LIST_KEYS: tuple[str, ...] = (
    "requires",
    "incompatible_with",
    "mandatory",
    "obligatoire",
    "requires_groups",
    "incompatible_groups",
)

# Legacy tag prefixes, matched case-insensitively.
_LEGACY_PREFIXES: tuple[tuple[str, str], ...] = (
    ("req", "requires"),
    ("inc", "incompatible_with"),
    ("man", "mandatory"),
    ("obli", "mandatory"),
)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _string_list(value: object) -> tuple[str, ...]:
    """Keep the string members of a list; anything else becomes empty."""
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _coerce_min(value: object) -> int | None:
    """Read a group threshold, returning None when it is not a finite number.

    Fractions round up: ``count >= 1.5`` needs two members.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return math.ceil(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return math.ceil(float(value.strip()))
        except (ValueError, OverflowError):
            return None
    return None


def _parse_groups(value: object, kind: GroupKind) -> tuple[QuantifiedGroup, ...]:
    if not isinstance(value, list):
        return ()
    groups: list[QuantifiedGroup] = []
    for entry in value:
        if not isinstance(entry, dict):
            logger.debug("Ignoring non-mapping %s group entry: %r", kind.value, entry)
            continue
        members = _string_list(entry.get("of"))
        groups.append(make_group(members, _coerce_min(entry.get("min")), kind=kind))
    return tuple(groups)


def _is_canonical(raw: dict[str, Any]) -> bool:
    return any(isinstance(raw.get(key), list) for key in _CANONICAL_LIST_KEYS)


def _classify_legacy_tag(tag: object) -> str | None:
    text = str(tag or "").strip().lower()
    for prefix, field_name in _LEGACY_PREFIXES:
        if text.startswith(prefix):
            return field_name
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_rule_spec(raw: object) -> RuleSpec:
    """Normalize the rules of a single option into a :class:`RuleSpec`.

    The legacy ``{target: tag}`` shape is only used when none of the
    canonical list fields are present.
    """
    if not isinstance(raw, dict):
        return EMPTY_RULE

    if _is_canonical(raw):
        mandatory_key = "mandatory" if isinstance(raw.get("mandatory"), list) else "obligatoire"
        return RuleSpec(
            requires=_string_list(raw.get("requires")),
            requires_groups=_parse_groups(raw.get("requires_groups"), GroupKind.REQUIRES),
            incompatible_with=_string_list(raw.get("incompatible_with")),
            incompatible_groups=_parse_groups(
                raw.get("incompatible_groups"), GroupKind.INCOMPATIBLE
            ),
            mandatory=_string_list(raw.get(mandatory_key)),
        )

    buckets: dict[str, list[str]] = {"requires": [], "incompatible_with": [], "mandatory": []}
    for target_id, tag in raw.items():
        field_name = _classify_legacy_tag(tag)
        if field_name is None:
            logger.debug("Ignoring legacy rule %r with unknown tag %r", target_id, tag)
            continue
        buckets[field_name].append(str(target_id))

    return RuleSpec(
        requires=tuple(buckets["requires"]),
        incompatible_with=tuple(buckets["incompatible_with"]),
        mandatory=tuple(buckets["mandatory"]),
    )


def normalize_ruleset(name: str, raw_rules: object) -> Ruleset:
    """Normalize a ``from_id -> spec`` mapping into a :class:`Ruleset`."""
    if not isinstance(raw_rules, dict):
        return Ruleset(name=name)
    rules = {str(from_id): normalize_rule_spec(spec) for from_id, spec in raw_rules.items()}
    return Ruleset(name=name, rules=rules)


def normalize_rulesets(raw: object) -> dict[str, Ruleset]:
    """Normalize a ``{name: {"rules": {...}}}`` document.

    An empty or missing document yields a single empty ``default`` ruleset.
    """
    if not isinstance(raw, dict) or not raw:
        return {DEFAULT_RULESET: Ruleset(name=DEFAULT_RULESET)}

    out: dict[str, Ruleset] = {}
    for name, payload in raw.items():
        raw_rules = payload.get("rules") if isinstance(payload, dict) else None
        out[str(name)] = normalize_ruleset(str(name), raw_rules)
    return out


def choose_active_ruleset(rulesets: dict[str, Ruleset], wanted: str | None = None) -> str:
    """Pick the ruleset to activate.

    *wanted* wins when it names an existing ruleset; otherwise the ruleset
    with the most simple edges is chosen (first one on ties).
    """
    if wanted and wanted in rulesets:
        return wanted
    best_name: str | None = None
    best_count = -1
    for name, ruleset in rulesets.items():
        count = ruleset.edge_count()
        if count > best_count:
            best_name, best_count = name, count
    return best_name or DEFAULT_RULESET


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _group_to_dict(group: QuantifiedGroup) -> dict[str, object]:
    return {"min": group.min, "of": list(group.of)}


def rule_spec_to_dict(spec: RuleSpec) -> dict[str, object]:
    """Serialize a spec in canonical shape; group fields only when present."""
    out: dict[str, object] = {
        "requires": list(spec.requires),
        "incompatible_with": list(spec.incompatible_with),
        "mandatory": list(spec.mandatory),
    }
    if spec.requires_groups:
        out["requires_groups"] = [_group_to_dict(g) for g in spec.requires_groups]
    if spec.incompatible_groups:
        out["incompatible_groups"] = [_group_to_dict(g) for g in spec.incompatible_groups]
    return out


def ruleset_to_dict(ruleset: Ruleset) -> dict[str, object]:
    return {"rules": {from_id: rule_spec_to_dict(spec) for from_id, spec in ruleset.rules.items()}}
