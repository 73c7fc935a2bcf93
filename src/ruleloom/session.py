"""Configurator session: active ruleset plus the one mutable selection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ruleloom.catalog.payload import SchemaPayload, build_payload, hydrate_payload
from ruleloom.rules.closure import ToggleResult, mandatory_closure, toggle_selection
from ruleloom.rules.linter import LintReport, LintSummary, lint_all_rulesets, lint_ruleset
from ruleloom.rules.model import Ruleset
from ruleloom.rules.normalizer import DEFAULT_RULESET, choose_active_ruleset
from ruleloom.rules.satisfaction import OptionEvaluation, evaluate_all, evaluate_option

if TYPE_CHECKING:
    from ruleloom.catalog.catalog import Catalog
    from ruleloom.rules.model import RuleSpec

logger = logging.getLogger(__name__)


class ConfiguratorSession:
    """Holds a catalog, its rulesets and the current selection.

    :meth:`toggle` is the only way to change the selection, so mandatory
    closure expansion is always applied in one step.  Evaluation and lint
    are read-only.
    """

    def __init__(
        self,
        catalog: Catalog,
        rulesets: dict[str, Ruleset] | None = None,
        active_ruleset: str | None = None,
    ) -> None:
        self.catalog = catalog
        self.rulesets: dict[str, Ruleset] = rulesets or {
            DEFAULT_RULESET: Ruleset(name=DEFAULT_RULESET)
        }
        self._active = choose_active_ruleset(self.rulesets, active_ruleset)
        self._selection: frozenset[str] = frozenset()

    # -- construction --------------------------------------------------------

    @classmethod
    def from_payload(
        cls, obj: object, *, active_ruleset: str | None = None
    ) -> ConfiguratorSession:
        """Hydrate a session from a raw schema document.

        *active_ruleset*, when it names an existing ruleset, overrides the
        one recorded in the document.
        """
        payload = hydrate_payload(obj)
        session = cls(payload.catalog, payload.rulesets, payload.active_ruleset)
        if active_ruleset is not None and active_ruleset in session.rulesets:
            session.set_active_ruleset(active_ruleset)
        return session

    def to_payload(self) -> dict[str, object]:
        return build_payload(
            SchemaPayload(
                catalog=self.catalog, rulesets=self.rulesets, active_ruleset=self._active
            )
        )

    # -- state ---------------------------------------------------------------

    @property
    def active_ruleset(self) -> str:
        return self._active

    @property
    def rules(self) -> dict[str, RuleSpec]:
        return self.rulesets[self._active].rules

    @property
    def selection(self) -> frozenset[str]:
        return self._selection

    def set_active_ruleset(self, name: str) -> None:
        """Switch the ruleset used by later evaluations; the selection is kept."""
        if name not in self.rulesets:
            msg = f"Unknown ruleset: {name}"
            raise KeyError(msg)
        self._active = name

    def toggle(self, option_id: str) -> ToggleResult:
        """Select (with mandatory closure) or deselect *option_id*."""
        result = toggle_selection(option_id, self.rules, self._selection)
        self._selection = result.selection
        logger.debug(
            "%s %s (selection size %d)",
            "Deselected" if result.removed else "Selected",
            option_id,
            len(self._selection),
        )
        return result

    def reset_selection(self) -> None:
        self._selection = frozenset()

    # -- queries -------------------------------------------------------------

    def closure(self, option_id: str) -> set[str]:
        return mandatory_closure(option_id, self.rules)

    def evaluate(self, option_id: str) -> OptionEvaluation:
        spec = self.rulesets[self._active].spec_for(option_id)
        return evaluate_option(option_id, spec, self._selection, rules=self.rules)

    def evaluate_all(self) -> dict[str, OptionEvaluation]:
        """Evaluate every catalog option plus any rule source missing from it."""
        ids = self.catalog.option_ids()
        known = set(ids)
        ids.extend(from_id for from_id in self.rules if from_id not in known)
        return evaluate_all(self.rules, ids, self._selection)

    def lint(self) -> LintReport:
        """Lint the active ruleset against the catalog."""
        return lint_ruleset(self._active, self.rules, self.catalog.known_ids())

    def lint_all(self) -> LintSummary:
        return lint_all_rulesets(self.catalog.known_ids(), self.rulesets)
