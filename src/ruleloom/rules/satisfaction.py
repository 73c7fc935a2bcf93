"""Satisfaction engine: per-option status against the current selection."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ruleloom.rules.groups import GroupState, evaluate_group, requires_groups_for
from ruleloom.rules.model import EMPTY_RULE

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from ruleloom.rules.model import RuleSpec


class OptionStatus(enum.Enum):
    """Display status of an option; earlier members take precedence."""

    BLOCKED = "blocked"
    INCOMPATIBLE = "incompatible"
    SELECTED = "selected"
    NORMAL = "normal"


@dataclass(frozen=True)
class OptionEvaluation:
    """Status of one option plus the data needed to explain it."""

    option_id: str
    status: OptionStatus
    requires_groups: tuple[GroupState, ...]
    missing_groups: tuple[GroupState, ...]
    incompatible_with: tuple[str, ...]  # selected ids in direct conflict
    incompatible_group_states: tuple[GroupState, ...]
    mandatory: tuple[str, ...] = ()

    @property
    def blocked(self) -> bool:
        return bool(self.missing_groups)

    @property
    def incompatible(self) -> bool:
        """True when a direct conflict or an active incompatible group exists."""
        return bool(self.incompatible_with) or any(
            state.active for state in self.incompatible_group_states
        )

    @property
    def selectable(self) -> bool:
        """Whether clicking the option would be accepted."""
        return not self.blocked and not self.incompatible


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _direct_conflicts(
    option_id: str,
    spec: RuleSpec,
    selection: Collection[str],
    rules: Mapping[str, RuleSpec] | None,
) -> tuple[str, ...]:
    """Selected ids that conflict with *option_id*, checked from both sides."""
    conflicts: list[str] = []
    for other in sorted(selection):
        if other == option_id:
            continue
        if other in spec.incompatible_with:
            conflicts.append(other)
            continue
        other_spec = rules.get(other) if rules is not None else None
        if other_spec is not None and option_id in other_spec.incompatible_with:
            conflicts.append(other)
    return tuple(conflicts)


def evaluate_option(
    option_id: str,
    spec: RuleSpec,
    selection: Collection[str],
    *,
    rules: Mapping[str, RuleSpec] | None = None,
) -> OptionEvaluation:
    """Evaluate *option_id* against *selection*.

    Parameters
    ----------
    option_id:
        The option being evaluated.
    spec:
        Its normalized rules.
    selection:
        Currently selected ids.
    rules:
        The whole active ruleset.  Needed for the reverse direction of
        direct incompatibilities (a selected option listing *option_id*);
        when omitted only *spec* is consulted.

    Returns
    -------
    OptionEvaluation
        ``blocked`` when any requires group is unmet; otherwise
        ``incompatible`` when a conflict is active and the option is not
        already selected; otherwise ``selected`` or ``normal``.
    """
    req_states = tuple(evaluate_group(g, selection) for g in requires_groups_for(spec))
    missing = tuple(state for state in req_states if not state.satisfied)
    inc_states = tuple(evaluate_group(g, selection) for g in spec.incompatible_groups)
    conflicts = _direct_conflicts(option_id, spec, selection, rules)

    is_selected = option_id in selection
    incompatible_active = bool(conflicts) or any(state.active for state in inc_states)

    if missing:
        status = OptionStatus.BLOCKED
    elif incompatible_active and not is_selected:
        status = OptionStatus.INCOMPATIBLE
    elif is_selected:
        status = OptionStatus.SELECTED
    else:
        status = OptionStatus.NORMAL

    return OptionEvaluation(
        option_id=option_id,
        status=status,
        requires_groups=req_states,
        missing_groups=missing,
        incompatible_with=conflicts,
        incompatible_group_states=inc_states,
        mandatory=spec.mandatory,
    )


def evaluate_all(
    rules: Mapping[str, RuleSpec],
    option_ids: Iterable[str],
    selection: Collection[str],
) -> dict[str, OptionEvaluation]:
    """Evaluate every id in *option_ids* against the same selection."""
    return {
        option_id: evaluate_option(
            option_id, rules.get(option_id, EMPTY_RULE), selection, rules=rules
        )
        for option_id in option_ids
    }


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def describe_evaluation(
    evaluation: OptionEvaluation,
    labels: Mapping[str, str] | None = None,
) -> list[str]:
    """Render the explanation lines shown next to an option.

    Example::

        Mandatory: Tow bar
        Requires:
        - all of (GPS, Camera) - 1/2 - missing: Camera
        Incompatible with: Sport pack
        Conditional incompatibilities:
        - ≥2 of (A, B, C) - 2/3 - blocking (selected: A, B)
    """

    def label(option_id: str) -> str:
        if labels is None:
            return option_id
        return labels.get(option_id) or option_id

    def names(ids: Iterable[str]) -> str:
        return ", ".join(label(i) for i in ids)

    lines: list[str] = []
    if evaluation.mandatory:
        lines.append(f"Mandatory: {names(evaluation.mandatory)}")

    if evaluation.requires_groups:
        lines.append("Requires:")
        for state in evaluation.requires_groups:
            base = f"- {state.threshold} of ({names(state.of)}) - {state.count}/{len(state.of)}"
            if state.satisfied:
                lines.append(f"{base} - ok")
            else:
                lines.append(f"{base} - missing: {names(state.missing)}")

    if evaluation.incompatible_with:
        lines.append(f"Incompatible with: {names(evaluation.incompatible_with)}")

    if evaluation.incompatible_group_states:
        lines.append("Conditional incompatibilities:")
        for state in evaluation.incompatible_group_states:
            base = f"- {state.threshold} of ({names(state.of)}) - {state.count}/{len(state.of)}"
            if state.active:
                lines.append(f"{base} - blocking (selected: {names(state.present)})")
            else:
                lines.append(base)

    return lines
