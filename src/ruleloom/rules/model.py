"""Canonical rule data model: quantified groups, per-option specs, rulesets."""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SIMPLE_EDGE_FIELDS: tuple[str, ...] = ("requires", "incompatible_with", "mandatory")
GROUP_FIELDS: tuple[str, ...] = ("requires_groups", "incompatible_groups")

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuantifiedGroup:
    """A k-of-n condition: at least ``min`` of the ids in ``of``.

    ``of`` is deduplicated (first-seen order) and ``min`` is already clamped
    to ``[0, len(of)]`` by the normalizer.
    """

    min: int
    of: tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.of)


@dataclass(frozen=True)
class RuleSpec:
    """Rules attached to one "from" option.

    Flat lists keep any duplicates found in the source document; the linter
    reports them, evaluation ignores them.
    """

    requires: tuple[str, ...] = ()
    requires_groups: tuple[QuantifiedGroup, ...] = ()
    incompatible_with: tuple[str, ...] = ()
    incompatible_groups: tuple[QuantifiedGroup, ...] = ()
    mandatory: tuple[str, ...] = ()

    def edge_count(self) -> int:
        """Number of simple edges (requires + incompatible_with + mandatory)."""
        return len(self.requires) + len(self.incompatible_with) + len(self.mandatory)


EMPTY_RULE = RuleSpec()


@dataclass
class Ruleset:
    """A named mapping of from-id to :class:`RuleSpec`."""

    name: str
    rules: dict[str, RuleSpec] = field(default_factory=dict)

    def spec_for(self, option_id: str) -> RuleSpec:
        """Return the spec for *option_id*, or an empty spec when it has none."""
        return self.rules.get(option_id, EMPTY_RULE)

    def edge_count(self) -> int:
        return sum(spec.edge_count() for spec in self.rules.values())
