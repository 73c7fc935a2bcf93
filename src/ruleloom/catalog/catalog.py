"""Option catalog: group/subgroup hierarchy, display labels, range availability."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from ruleloom.rules.groups import dedupe

IMPORTED_GROUP = "Imported options"
ROOT_KEY = "__root"


class RangeAvailability(enum.Enum):
    """How an option is offered within a product range."""

    INCLUDED = "included"
    OPTIONAL = "optional"
    ABSENT = "absent"


@dataclass(frozen=True)
class OptionGroup:
    """A named group with root options and named subgroups."""

    name: str
    root: tuple[str, ...] = ()
    subgroups: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def ids(self) -> tuple[str, ...]:
        """Every option in the group, root first, without repeats."""
        collected = list(self.root)
        for members in self.subgroups.values():
            collected.extend(members)
        return dedupe(collected)


@dataclass
class Catalog:
    """The universe of selectable options.

    ``ranges`` maps a range name to ``{option_id: {"included": bool,
    "optional": bool}}`` as stored in schema documents.
    """

    groups: dict[str, OptionGroup] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    ranges: dict[str, dict[str, dict[str, bool]]] = field(default_factory=dict)

    def known_ids(self) -> frozenset[str]:
        ids: set[str] = set()
        for group in self.groups.values():
            ids.update(group.ids())
        return frozenset(ids)

    def option_ids(self) -> list[str]:
        """Known ids in catalog order (group by group)."""
        ordered: list[str] = []
        for group in self.groups.values():
            ordered.extend(group.ids())
        return list(dedupe(ordered))

    def label_of(self, option_id: str) -> str:
        return self.labels.get(option_id) or option_id

    def availability(self, range_name: str, option_id: str) -> RangeAvailability:
        flags = self.ranges.get(range_name, {}).get(option_id) or {}
        if flags.get("included"):
            return RangeAvailability.INCLUDED
        if flags.get("optional"):
            return RangeAvailability.OPTIONAL
        return RangeAvailability.ABSENT


# ---------------------------------------------------------------------------
# Construction from documents
# ---------------------------------------------------------------------------


def _id_list(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return dedupe(str(item) for item in value if isinstance(item, (str, int)))


def _parse_ranges(raw: object) -> dict[str, dict[str, dict[str, bool]]]:
    if not isinstance(raw, dict):
        return {}
    ranges: dict[str, dict[str, dict[str, bool]]] = {}
    for range_name, entries in raw.items():
        if not isinstance(entries, dict):
            ranges[str(range_name)] = {}
            continue
        ranges[str(range_name)] = {
            str(option_id): {
                "included": bool(flags.get("included")),
                "optional": bool(flags.get("optional")),
            }
            for option_id, flags in entries.items()
            if isinstance(flags, dict)
        }
    return ranges


def catalog_from_document(obj: dict[str, object]) -> Catalog:
    """Build a :class:`Catalog` from a schema document.

    The hierarchy is read from ``groupedSubgroups`` when present, else from
    ``groupedCriteria`` (flat groups), else every option id found in the
    ranges is collected into a single imported group.
    """
    ranges = _parse_ranges(obj.get("gammes", obj.get("ranges")))
    groups: dict[str, OptionGroup] = {}

    grouped_subgroups = obj.get("groupedSubgroups")
    grouped_criteria = obj.get("groupedCriteria")
    if isinstance(grouped_subgroups, dict) and grouped_subgroups:
        for name, value in grouped_subgroups.items():
            data = value if isinstance(value, dict) else {}
            raw_subgroups = data.get("subgroups")
            subgroups = (
                {str(sg): _id_list(ids) for sg, ids in raw_subgroups.items()}
                if isinstance(raw_subgroups, dict)
                else {}
            )
            groups[str(name)] = OptionGroup(
                name=str(name), root=_id_list(data.get(ROOT_KEY)), subgroups=subgroups
            )
    elif isinstance(grouped_criteria, dict) and grouped_criteria:
        for name, ids in grouped_criteria.items():
            groups[str(name)] = OptionGroup(name=str(name), root=_id_list(ids))
    else:
        collected: list[str] = []
        for entries in ranges.values():
            collected.extend(entries)
        groups[IMPORTED_GROUP] = OptionGroup(name=IMPORTED_GROUP, root=dedupe(collected))

    raw_labels = obj.get("optionLabels")
    catalog = Catalog(groups=groups, ranges=ranges)
    if isinstance(raw_labels, dict) and raw_labels:
        catalog.labels = {str(k): str(v) for k, v in raw_labels.items() if v is not None}
    else:
        catalog.labels = {option_id: option_id for option_id in catalog.option_ids()}
    return catalog


def catalog_to_document(catalog: Catalog) -> dict[str, object]:
    """Serialize the catalog part of a schema document."""
    grouped_subgroups: dict[str, dict[str, object]] = {}
    grouped_criteria: dict[str, list[str]] = {}
    option_ids = catalog.option_ids()
    for name, group in catalog.groups.items():
        entry: dict[str, object] = {
            "subgroups": {sg: list(ids) for sg, ids in group.subgroups.items()}
        }
        if group.root:
            entry[ROOT_KEY] = list(group.root)
        grouped_subgroups[name] = entry
        grouped_criteria[name] = list(group.ids())

    return {
        "gammes": catalog.ranges,
        "groupedCriteria": grouped_criteria,
        "groupedSubgroups": grouped_subgroups,
        "optionLabels": {oid: catalog.label_of(oid) for oid in option_ids},
        "criteria": option_ids,
    }
