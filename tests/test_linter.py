"""Tests for ruleloom.rules.linter.

Covers:
- cycle detection (two-node, three-node, self loop, DAG, several cycles)
- every issue type and its severity
- issue ordering and counts
- lint_all_rulesets totals
- rich / json / porcelain formatters
"""

from __future__ import annotations

import json

from ruleloom.rules.linter import (
    ISSUE_TYPES,
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
from ruleloom.rules.model import RuleSpec, Ruleset
from ruleloom.rules.normalizer import normalize_ruleset

KNOWN = frozenset({"A", "B", "C", "D"})


def _lint(raw: dict[str, object], known: frozenset[str] = KNOWN) -> LintReport:
    return lint_ruleset("default", normalize_ruleset("default", raw).rules, known)


def _types(raw: dict[str, object]) -> list[str]:
    return [issue.type for issue in _lint(raw).issues]


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------


class TestDetectCycles:
    def test_two_node_cycle(self) -> None:
        assert detect_cycles({"A": ["B"], "B": ["A"]}) == [["A", "B", "A"]]

    def test_three_node_cycle(self) -> None:
        assert detect_cycles({"A": ["B"], "B": ["C"], "C": ["A"]}) == [["A", "B", "C", "A"]]

    def test_self_loop(self) -> None:
        assert detect_cycles({"A": ["A"]}) == [["A", "A"]]

    def test_dag_has_no_cycles(self) -> None:
        assert detect_cycles({"A": ["B", "C"], "B": ["C"], "C": []}) == []

    def test_unlisted_targets(self) -> None:
        assert detect_cycles({"A": ["X"]}) == []

    def test_disjoint_cycles_each_reported(self) -> None:
        adjacency = {"A": ["B"], "B": ["A"], "C": ["D"], "D": ["C"]}
        assert detect_cycles(adjacency) == [["A", "B", "A"], ["C", "D", "C"]]

    def test_two_back_edges_into_one_node(self) -> None:
        adjacency = {"A": ["B"], "B": ["A", "C"], "C": ["A"]}
        assert detect_cycles(adjacency) == [["A", "B", "A"], ["A", "B", "C", "A"]]


# ---------------------------------------------------------------------------
# Issue types
# ---------------------------------------------------------------------------


class TestLintRuleset:
    def test_clean(self) -> None:
        report = _lint({"A": {"requires": ["B"]}, "B": {"mandatory": ["C"]}})
        assert report.issues == []
        assert report.counts == {"total": 0}

    def test_unknown_from(self) -> None:
        report = _lint({"Z": {"requires": ["A"]}})
        assert [i.type for i in report.issues] == ["unknown_from"]
        assert report.issues[0].from_id == "Z"
        assert report.issues[0].severity == "error"

    def test_unknown_targets_on_every_edge(self) -> None:
        report = _lint(
            {
                "A": {
                    "requires": ["X1"],
                    "incompatible_with": ["X2"],
                    "mandatory": ["X3"],
                    "requires_groups": [{"min": 1, "of": ["B", "X4"]}],
                    "incompatible_groups": [{"of": ["X5", "C"]}],
                }
            }
        )
        edges = [(i.to_id, i.edge) for i in report.issues if i.type == "unknown_target"]
        assert edges == [
            ("X1", "requires"),
            ("X2", "incompatible_with"),
            ("X3", "mandatory"),
            ("X4", "requires_group"),
            ("X5", "incompatible_group"),
        ]

    def test_duplicate_is_warning(self) -> None:
        report = _lint({"A": {"requires": ["B", "B"]}})
        assert [i.type for i in report.issues] == ["duplicate"]
        assert report.issues[0].severity == "warning"
        assert report.issues[0].edge == "requires"
        assert report.counts["warning"] == 1
        assert "error" not in report.counts
        assert report.warnings == report.issues
        assert report.errors == []

    def test_self_references(self) -> None:
        types = _types({"A": {"requires": ["A"], "incompatible_with": ["A"], "mandatory": ["A"]}})
        assert {"self_dependency", "self_incompatibility", "self_mandatory"} <= set(types)

    def test_contradiction_direct(self) -> None:
        report = _lint({"A": {"requires": ["B"], "incompatible_with": ["B"]}})
        assert [i.type for i in report.issues] == ["contradiction_direct"]
        assert (report.issues[0].from_id, report.issues[0].to_id) == ("A", "B")

    def test_contradiction_mandatory_direct(self) -> None:
        assert _types({"A": {"mandatory": ["B"], "incompatible_with": ["B"]}}) == [
            "contradiction_mandatory_direct"
        ]

    def test_contradiction_cross(self) -> None:
        report = _lint({"A": {"requires": ["B"]}, "B": {"incompatible_with": ["A"]}})
        assert len(report.issues) == 1
        issue = report.issues[0]
        assert issue.type == "contradiction_cross"
        assert (issue.from_id, issue.to_id) == ("A", "B")

    def test_contradiction_mandatory_cross(self) -> None:
        assert _types({"A": {"mandatory": ["B"]}, "B": {"incompatible_with": ["A"]}}) == [
            "contradiction_mandatory_cross"
        ]

    def test_cycle_requires(self) -> None:
        report = _lint({"A": {"requires": ["B"]}, "B": {"requires": ["A"]}})
        assert [i.type for i in report.issues] == ["cycle_requires"]
        assert report.issues[0].path == ("A", "B", "A")
        assert report.issues[0].message == "Cycle requires: A -> B -> A"

    def test_disjoint_requires_cycles(self) -> None:
        report = _lint(
            {
                "A": {"requires": ["B"]},
                "B": {"requires": ["A"]},
                "C": {"requires": ["D"]},
                "D": {"requires": ["C"]},
            }
        )
        assert [i.type for i in report.issues] == ["cycle_requires", "cycle_requires"]
        assert [i.path for i in report.issues] == [("A", "B", "A"), ("C", "D", "C")]
        assert report.counts["cycle_requires"] == 2

    def test_cycle_mandatory(self) -> None:
        report = _lint({"A": {"mandatory": ["B"]}, "B": {"mandatory": ["A"]}})
        assert [i.type for i in report.issues] == ["cycle_mandatory"]

    def test_relations_are_separate_graphs(self) -> None:
        """A requires B and B mandates A is not a cycle."""
        assert _types({"A": {"requires": ["B"]}, "B": {"mandatory": ["A"]}}) == []

    def test_check_order(self) -> None:
        types = _types(
            {
                "A": {"requires": ["B", "B"]},
                "B": {"requires": ["A"]},
                "Z": {"requires": ["A"]},
            }
        )
        assert types == ["unknown_from", "duplicate", "cycle_requires"]

    def test_counts(self) -> None:
        report = _lint({"A": {"requires": ["B", "B", "Q"]}})
        assert report.counts["total"] == 2
        assert report.counts["error"] == 1
        assert report.counts["warning"] == 1
        assert report.counts["unknown_target"] == 1
        assert report.counts["duplicate"] == 1

    def test_every_type_is_declared(self) -> None:
        types = set(
            _types(
                {
                    "Z": {},
                    "A": {
                        "requires": ["A", "B", "B", "Q"],
                        "incompatible_with": ["A", "B"],
                        "mandatory": ["A"],
                    },
                    "B": {"incompatible_with": ["A"], "requires": ["A"]},
                    "C": {"mandatory": ["B", "D"], "incompatible_with": ["D"]},
                    "D": {"mandatory": ["C"]},
                }
            )
        )
        assert types <= ISSUE_TYPES
        assert types == ISSUE_TYPES


class TestLintAllRulesets:
    def test_totals(self) -> None:
        rulesets = {
            "clean": Ruleset(name="clean", rules={"A": RuleSpec(requires=("B",))}),
            "dirty": Ruleset(
                name="dirty",
                rules={
                    "A": RuleSpec(requires=("B", "B")),
                    "B": RuleSpec(incompatible_with=("A",)),
                },
            ),
        }
        summary = lint_all_rulesets(KNOWN, rulesets)
        assert list(summary.by_ruleset) == ["clean", "dirty"]
        assert summary.totals == {"total": 2, "error": 1, "warning": 1}
        assert summary.has_errors is True
        assert summary.by_ruleset["dirty"].issues[0].ruleset == "dirty"

    def test_empty(self) -> None:
        summary = lint_all_rulesets(KNOWN, {})
        assert summary.totals == {"total": 0, "error": 0, "warning": 0}
        assert summary.has_errors is False


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def _summary(raw: dict[str, object]) -> LintSummary:
    return lint_all_rulesets(KNOWN, {"default": normalize_ruleset("default", raw)})


class TestFormatters:
    def test_format_issue_with_labels(self) -> None:
        report = _lint({"A": {"requires": ["B"]}, "B": {"requires": ["A"]}})
        labels = {"A": "Alpha", "B": "Beta"}
        assert format_issue(report.issues[0], labels) == "Dependency cycle: Alpha -> Beta -> Alpha"

    def test_format_issue_without_labels(self) -> None:
        report = _lint({"A": {"requires": ["B"]}, "B": {"incompatible_with": ["A"]}})
        assert format_issue(report.issues[0]) == (
            "Cross contradiction: A requires B, but B is incompatible with A"
        )

    def test_rich_clean(self) -> None:
        output = format_rich(_summary({}))
        assert "Ruleset: default" in output
        assert "✓ clean" in output
        assert "✓ No issues found (1 rulesets)" in output

    def test_rich_with_issues(self) -> None:
        output = format_rich(_summary({"A": {"requires": ["B", "B"]}, "B": {"requires": ["A"]}}))
        assert "  ✗ Dependency cycle: A -> B -> A" in output
        assert "  ! Duplicates in requires of A (can be cleaned up)" in output
        assert "2 issues found (1 errors, 1 warnings, 1 rulesets)" in output

    def test_json(self) -> None:
        summary = _summary({"A": {"requires": ["B"]}, "B": {"requires": ["A"]}})
        data = json.loads(format_json(summary))
        assert data["totals"] == {"total": 1, "error": 1, "warning": 0}
        issue = data["by_ruleset"]["default"]["issues"][0]
        assert issue["type"] == "cycle_requires"
        assert issue["path"] == ["A", "B", "A"]
        assert issue["from"] is None

    def test_porcelain(self) -> None:
        output = format_porcelain(
            _summary({"A": {"requires": ["B"]}, "B": {"incompatible_with": ["A"]}})
        )
        assert output == "contradiction_cross:error:default:A:B:"

    def test_porcelain_clean_is_empty(self) -> None:
        assert format_porcelain(_summary({})) == ""
