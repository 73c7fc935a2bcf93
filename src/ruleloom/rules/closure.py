"""Mandatory closure and the selection toggle built on it."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

    from ruleloom.rules.model import RuleSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToggleResult:
    """Outcome of toggling one option."""

    selection: frozenset[str]
    newly_added: tuple[str, ...]  # auto-added by the mandatory closure
    removed: bool = False


def _ordered_closure(start_id: str, rules: Mapping[str, RuleSpec]) -> list[str]:
    """BFS over ``mandatory`` edges; returns reachable ids in discovery order."""
    seen: set[str] = set()
    order: list[str] = []
    queue: deque[str] = deque([start_id])
    while queue:
        current = queue.popleft()
        spec = rules.get(current)
        if spec is None:
            continue
        for target in spec.mandatory:
            if target in seen:
                continue
            seen.add(target)
            order.append(target)
            queue.append(target)
    return [option_id for option_id in order if option_id != start_id]


def mandatory_closure(start_id: str, rules: Mapping[str, RuleSpec]) -> set[str]:
    """Return every id forced in by selecting *start_id*.

    Cycles terminate through the visited set; *start_id* itself is never
    part of the result, even when a cycle leads back to it.
    """
    return set(_ordered_closure(start_id, rules))


def toggle_selection(
    option_id: str,
    rules: Mapping[str, RuleSpec],
    selection: Collection[str],
) -> ToggleResult:
    """Select or deselect *option_id* and return the new selection.

    Selecting adds the option and its whole mandatory closure at once.
    Deselecting removes only *option_id*; nothing pulled in by its closure
    is removed.  *selection* is not modified.
    """
    current = set(selection)

    if option_id in current:
        current.discard(option_id)
        return ToggleResult(selection=frozenset(current), newly_added=(), removed=True)

    current.add(option_id)
    newly_added: list[str] = []
    for target in _ordered_closure(option_id, rules):
        if target not in current:
            current.add(target)
            newly_added.append(target)

    if newly_added:
        logger.debug("Selecting %s auto-added %s", option_id, ", ".join(newly_added))

    return ToggleResult(selection=frozenset(current), newly_added=tuple(newly_added))
