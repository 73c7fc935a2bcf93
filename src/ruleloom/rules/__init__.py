"""Rules domain — model, normalizer, group evaluator, satisfaction, closure, linter."""

from ruleloom.rules.closure import ToggleResult, mandatory_closure, toggle_selection
from ruleloom.rules.groups import (
    GroupKind,
    GroupState,
    default_min,
    evaluate_group,
    make_group,
    requires_groups_for,
    threshold_label,
)
from ruleloom.rules.linter import (
    LintIssue,
    LintReport,
    LintSummary,
    detect_cycles,
    format_issue,
    format_json,
    format_porcelain,
    format_rich,
    lint_all_rulesets,
    lint_ruleset,
)
from ruleloom.rules.model import EMPTY_RULE, QuantifiedGroup, RuleSpec, Ruleset
from ruleloom.rules.normalizer import (
    DEFAULT_RULESET,
    choose_active_ruleset,
    normalize_rule_spec,
    normalize_ruleset,
    normalize_rulesets,
    rule_spec_to_dict,
    ruleset_to_dict,
)
from ruleloom.rules.satisfaction import (
    OptionEvaluation,
    OptionStatus,
    describe_evaluation,
    evaluate_all,
    evaluate_option,
)

__all__ = [
    "DEFAULT_RULESET",
    "EMPTY_RULE",
    "GroupKind",
    "GroupState",
    "LintIssue",
    "LintReport",
    "LintSummary",
    "OptionEvaluation",
    "OptionStatus",
    "QuantifiedGroup",
    "RuleSpec",
    "Ruleset",
    "ToggleResult",
    "choose_active_ruleset",
    "default_min",
    "describe_evaluation",
    "detect_cycles",
    "evaluate_all",
    "evaluate_group",
    "evaluate_option",
    "format_issue",
    "format_json",
    "format_porcelain",
    "format_rich",
    "lint_all_rulesets",
    "lint_ruleset",
    "make_group",
    "mandatory_closure",
    "normalize_rule_spec",
    "normalize_ruleset",
    "normalize_rulesets",
    "requires_groups_for",
    "rule_spec_to_dict",
    "ruleset_to_dict",
    "threshold_label",
    "toggle_selection",
]
