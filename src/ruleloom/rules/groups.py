"""Quantified (k-of-n) group evaluation against a selection."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ruleloom.rules.model import QuantifiedGroup

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from ruleloom.rules.model import RuleSpec


class GroupKind(enum.Enum):
    """Which side of a rule a group sits on; decides the default threshold."""

    REQUIRES = "requires"
    INCOMPATIBLE = "incompatible"


@dataclass(frozen=True)
class GroupState:
    """Result of evaluating one group against one selection."""

    min: int
    of: tuple[str, ...]
    count: int
    satisfied: bool
    missing: tuple[str, ...]  # members not selected (requires diagnostics)
    present: tuple[str, ...]  # members selected (incompatible diagnostics)

    @property
    def active(self) -> bool:
        """True when an incompatible group blocks: ``min > 0`` and threshold reached."""
        return self.min > 0 and self.count >= self.min

    @property
    def threshold(self) -> str:
        return threshold_label(self.min, len(self.of))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def dedupe(ids: Iterable[str]) -> tuple[str, ...]:
    """Drop repeated ids, keeping first-seen order."""
    return tuple(dict.fromkeys(ids))


def default_min(kind: GroupKind, size: int) -> int:
    """Threshold used when a group does not state ``min``.

    Requires groups default to ALL members; incompatible groups default to
    any two (or fewer when the group is smaller).
    """
    if kind is GroupKind.INCOMPATIBLE:
        return min(2, size)
    return size


def clamp_min(value: int, size: int) -> int:
    return max(0, min(value, size))


def make_group(
    of: Iterable[str], min_value: int | None = None, *, kind: GroupKind = GroupKind.REQUIRES
) -> QuantifiedGroup:
    """Build a normalized :class:`QuantifiedGroup` from raw members and threshold."""
    members = dedupe(of)
    size = len(members)
    wanted = default_min(kind, size) if min_value is None else min_value
    return QuantifiedGroup(min=clamp_min(wanted, size), of=members)


def threshold_label(min_value: int, size: int) -> str:
    """Phrase a threshold for diagnostics: ``all``, ``≥1`` or ``≥N``."""
    if min_value >= size:
        return "all"
    if min_value == 1:
        return "≥1"
    return f"≥{min_value}"


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate_group(group: QuantifiedGroup, selection: Collection[str]) -> GroupState:
    """Count how many members of *group* are in *selection*.

    A group with ``min == 0`` is always satisfied.  Adding ids to the
    selection can only turn ``satisfied`` from False to True.
    """
    of = dedupe(group.of)
    min_value = clamp_min(group.min, len(of))
    present = tuple(option_id for option_id in of if option_id in selection)
    missing = tuple(option_id for option_id in of if option_id not in selection)
    count = len(present)
    return GroupState(
        min=min_value,
        of=of,
        count=count,
        satisfied=min_value == 0 or count >= min_value,
        missing=missing,
        present=present,
    )


def requires_groups_for(spec: RuleSpec) -> tuple[QuantifiedGroup, ...]:
    """Return the requires groups of *spec*.

    When no explicit group exists, a non-empty flat ``requires`` list is
    folded into a single ALL group.
    """
    if spec.requires_groups:
        return spec.requires_groups
    if spec.requires:
        return (make_group(spec.requires, kind=GroupKind.REQUIRES),)
    return ()
