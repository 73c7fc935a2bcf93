"""Ruleset linter: static checks over a whole ruleset, plus output formatters."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ruleloom.rules.groups import dedupe

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from ruleloom.rules.model import RuleSpec, Ruleset

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

ISSUE_TYPES: frozenset[str] = frozenset(
    {
        "unknown_from",
        "unknown_target",
        "duplicate",
        "self_dependency",
        "self_incompatibility",
        "self_mandatory",
        "contradiction_direct",
        "contradiction_mandatory_direct",
        "contradiction_cross",
        "contradiction_mandatory_cross",
        "cycle_requires",
        "cycle_mandatory",
    }
)

# Colours for the iterative three-colour DFS.
_WHITE, _GRAY, _BLACK = 0, 1, 2

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LintIssue:
    """A single static inconsistency found in a ruleset."""

    type: str
    severity: str  # "error" | "warning"
    ruleset: str
    message: str
    from_id: str | None = None
    to_id: str | None = None
    edge: str | None = None  # requires | incompatible_with | mandatory | *_group
    path: tuple[str, ...] = ()  # cycles only


@dataclass
class LintReport:
    """Issues of one ruleset with aggregated counts."""

    ruleset: str
    issues: list[LintIssue] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def errors(self) -> list[LintIssue]:
        return [i for i in self.issues if i.severity == SEVERITY_ERROR]

    @property
    def warnings(self) -> list[LintIssue]:
        return [i for i in self.issues if i.severity == SEVERITY_WARNING]


@dataclass
class LintSummary:
    """Reports for several rulesets with grand totals."""

    by_ruleset: dict[str, LintReport] = field(default_factory=dict)
    totals: dict[str, int] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return self.totals.get(SEVERITY_ERROR, 0) > 0


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------


def _trace_cycle(parent: dict[str, str], start: str, end: str) -> list[str]:
    """Walk parents from *start* back to *end*; returns ``[end, ..., start, end]``."""
    path = [end]
    current: str | None = start
    while current is not None and current != end:
        path.append(current)
        current = parent.get(current)
    path.append(end)
    path.reverse()
    return path


def detect_cycles(adjacency: Mapping[str, Iterable[str]]) -> list[list[str]]:
    """Find cycles with a three-colour DFS (white/gray/black).

    Roots are visited in the mapping's order and neighbours in list order.
    Every back edge ``u -> v`` (``v`` still gray) yields one cycle reported
    as ``[v, ..., u, v]``.
    """
    color: dict[str, int] = {}
    parent: dict[str, str] = {}
    cycles: list[list[str]] = []

    for root in adjacency:
        if color.get(root, _WHITE) != _WHITE:
            continue
        color[root] = _GRAY
        stack: list[tuple[str, list[str], int]] = [(root, list(adjacency.get(root, ())), 0)]
        while stack:
            node, neighbours, idx = stack[-1]
            if idx >= len(neighbours):
                color[node] = _BLACK
                stack.pop()
                continue
            stack[-1] = (node, neighbours, idx + 1)
            nxt = neighbours[idx]
            state = color.get(nxt, _WHITE)
            if state == _WHITE:
                parent[nxt] = node
                color[nxt] = _GRAY
                stack.append((nxt, list(adjacency.get(nxt, ())), 0))
            elif state == _GRAY:
                cycles.append(_trace_cycle(parent, node, nxt))

    return cycles


# ---------------------------------------------------------------------------
# Lint checks
# ---------------------------------------------------------------------------


def _count(issues: list[LintIssue]) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for issue in issues:
        counts[issue.severity] += 1
        counts[issue.type] += 1
    return {"total": len(issues), **counts}


def lint_ruleset(
    name: str,
    rules: Mapping[str, RuleSpec],
    known_ids: Collection[str],
) -> LintReport:
    """Run every static check over *rules*.

    Parameters
    ----------
    name:
        Ruleset name, copied onto each issue.
    rules:
        Normalized ``from_id -> RuleSpec`` mapping.
    known_ids:
        Universe of option ids declared by the catalog.

    Returns
    -------
    LintReport
        Issues in check order (unknown ids, duplicates/self references/direct
        contradictions, cross contradictions, cycles) and their counts.
    """
    issues: list[LintIssue] = []

    def push(
        issue_type: str,
        severity: str,
        message: str,
        *,
        from_id: str | None = None,
        to_id: str | None = None,
        edge: str | None = None,
        path: tuple[str, ...] = (),
    ) -> None:
        issues.append(
            LintIssue(
                type=issue_type,
                severity=severity,
                ruleset=name,
                message=message,
                from_id=from_id,
                to_id=to_id,
                edge=edge,
                path=path,
            )
        )

    # 1. Unknown ids, on both sides of every edge.
    for from_id, spec in rules.items():
        if from_id not in known_ids:
            push(
                "unknown_from",
                SEVERITY_ERROR,
                f"Rule on unknown option: {from_id}",
                from_id=from_id,
            )
        flat_edges = (
            ("requires", spec.requires, "Requirement on unknown id"),
            ("incompatible_with", spec.incompatible_with, "Incompatibility with unknown id"),
            ("mandatory", spec.mandatory, "Mandatory link to unknown id"),
        )
        for edge, targets, label in flat_edges:
            for to_id in targets:
                if to_id not in known_ids:
                    push(
                        "unknown_target",
                        SEVERITY_ERROR,
                        f"{label}: {from_id} -> {to_id}",
                        from_id=from_id,
                        to_id=to_id,
                        edge=edge,
                    )
        grouped_edges = (
            ("requires_group", spec.requires_groups, "Grouped requirement on unknown id"),
            (
                "incompatible_group",
                spec.incompatible_groups,
                "Grouped incompatibility with unknown id",
            ),
        )
        for edge, groups, label in grouped_edges:
            for group in groups:
                for to_id in group.of:
                    if to_id not in known_ids:
                        push(
                            "unknown_target",
                            SEVERITY_ERROR,
                            f"{label}: {from_id} -> {to_id}",
                            from_id=from_id,
                            to_id=to_id,
                            edge=edge,
                        )

    # 2. Duplicates, self references, direct contradictions.
    requires_map: dict[str, tuple[str, ...]] = {}
    mandatory_map: dict[str, tuple[str, ...]] = {}
    for from_id, spec in rules.items():
        req = dedupe(spec.requires)
        inc = dedupe(spec.incompatible_with)
        man = dedupe(spec.mandatory)

        for edge, raw, unique in (
            ("requires", spec.requires, req),
            ("incompatible_with", spec.incompatible_with, inc),
            ("mandatory", spec.mandatory, man),
        ):
            if len(raw) != len(unique):
                push(
                    "duplicate",
                    SEVERITY_WARNING,
                    f'Duplicate entries in "{edge}" of {from_id}',
                    from_id=from_id,
                    edge=edge,
                )

        if from_id in req:
            push(
                "self_dependency",
                SEVERITY_ERROR,
                f"Self dependency: {from_id} requires itself",
                from_id=from_id,
            )
        if from_id in inc:
            push(
                "self_incompatibility",
                SEVERITY_ERROR,
                f"Self incompatibility: {from_id} is incompatible with itself",
                from_id=from_id,
            )
        if from_id in man:
            push(
                "self_mandatory",
                SEVERITY_ERROR,
                f"Self mandatory: {from_id} is mandatory for itself",
                from_id=from_id,
            )

        for to_id in req:
            if to_id in inc:
                push(
                    "contradiction_direct",
                    SEVERITY_ERROR,
                    f"Contradiction: {from_id} requires {to_id} and is incompatible with {to_id}",
                    from_id=from_id,
                    to_id=to_id,
                )
        for to_id in man:
            if to_id in inc:
                push(
                    "contradiction_mandatory_direct",
                    SEVERITY_ERROR,
                    f"Contradiction: {from_id} makes {to_id} mandatory "
                    f"and is incompatible with {to_id}",
                    from_id=from_id,
                    to_id=to_id,
                )

        requires_map[from_id] = req
        mandatory_map[from_id] = man

    # 3. Cross contradictions: from requires/mandates to, to excludes from.
    for from_id in rules:
        for to_id in requires_map[from_id]:
            target = rules.get(to_id)
            if target is not None and from_id in target.incompatible_with:
                push(
                    "contradiction_cross",
                    SEVERITY_ERROR,
                    f"Contradiction: {from_id} requires {to_id}, "
                    f"but {to_id} is incompatible with {from_id}",
                    from_id=from_id,
                    to_id=to_id,
                )
        for to_id in mandatory_map[from_id]:
            target = rules.get(to_id)
            if target is not None and from_id in target.incompatible_with:
                push(
                    "contradiction_mandatory_cross",
                    SEVERITY_ERROR,
                    f"Contradiction: {from_id} makes {to_id} mandatory, "
                    f"but {to_id} is incompatible with {from_id}",
                    from_id=from_id,
                    to_id=to_id,
                )

    # 4. Cycles in each relation, independently.
    for relation, adjacency in (("requires", requires_map), ("mandatory", mandatory_map)):
        for path in detect_cycles(adjacency):
            push(
                f"cycle_{relation}",
                SEVERITY_ERROR,
                f"Cycle {relation}: {' -> '.join(path)}",
                path=tuple(path),
            )

    return LintReport(ruleset=name, issues=issues, counts=_count(issues))


def lint_all_rulesets(known_ids: Collection[str], rulesets: Mapping[str, Ruleset]) -> LintSummary:
    """Lint every ruleset against the same known-ids universe."""
    summary = LintSummary()
    totals = {"total": 0, SEVERITY_ERROR: 0, SEVERITY_WARNING: 0}
    for name, ruleset in rulesets.items():
        report = lint_ruleset(name, ruleset.rules, known_ids)
        summary.by_ruleset[name] = report
        totals["total"] += report.counts["total"]
        totals[SEVERITY_ERROR] += report.counts.get(SEVERITY_ERROR, 0)
        totals[SEVERITY_WARNING] += report.counts.get(SEVERITY_WARNING, 0)
    summary.totals = totals
    return summary


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def format_issue(issue: LintIssue, labels: Mapping[str, str] | None = None) -> str:
    """One-line, label-aware description of *issue*."""

    def lbl(option_id: str | None) -> str:
        if option_id is None:
            return ""
        if labels is None:
            return option_id
        return labels.get(option_id) or option_id

    src, dst = lbl(issue.from_id), lbl(issue.to_id)
    templates = {
        "unknown_from": f"Rule on unknown option: {src}",
        "unknown_target": f"{src} -> {dst} ({issue.edge}) points to an unknown id",
        "self_dependency": f"Self dependency: {src} requires itself",
        "self_incompatibility": f"Self incompatibility: {src} is incompatible with itself",
        "self_mandatory": f"Self mandatory: {src} is mandatory for itself",
        "duplicate": f"Duplicates in {issue.edge} of {src} (can be cleaned up)",
        "contradiction_direct": (
            f"Contradiction: {src} requires {dst} and is incompatible with {dst}"
        ),
        "contradiction_cross": (
            f"Cross contradiction: {src} requires {dst}, but {dst} is incompatible with {src}"
        ),
        "contradiction_mandatory_direct": (
            f"Contradiction: {src} makes {dst} mandatory but is incompatible with {dst}"
        ),
        "contradiction_mandatory_cross": (
            f"Cross contradiction: {src} makes {dst} mandatory, "
            f"but {dst} is incompatible with {src}"
        ),
        "cycle_requires": "Dependency cycle: " + " -> ".join(lbl(i) for i in issue.path),
        "cycle_mandatory": "Mandatory cycle: " + " -> ".join(lbl(i) for i in issue.path),
    }
    return templates.get(issue.type) or issue.message or issue.type


def format_rich(summary: LintSummary, labels: Mapping[str, str] | None = None) -> str:
    """Format a LintSummary as human-readable text.

    Example output::

        Ruleset: default
          ✗ Dependency cycle: A -> B -> A
          ! Duplicates in requires of C (can be cleaned up)

        2 issues found (1 errors, 1 warnings, 1 rulesets)
    """
    lines: list[str] = []
    for name, report in summary.by_ruleset.items():
        lines.append(f"Ruleset: {name}")
        if not report.issues:
            lines.append("  ✓ clean")
        for issue in report.issues:
            marker = "✗" if issue.severity == SEVERITY_ERROR else "!"
            lines.append(f"  {marker} {format_issue(issue, labels)}")
        lines.append("")

    total = summary.totals.get("total", 0)
    count_rulesets = len(summary.by_ruleset)
    if total:
        lines.append(
            f"{total} issues found ({summary.totals.get(SEVERITY_ERROR, 0)} errors, "
            f"{summary.totals.get(SEVERITY_WARNING, 0)} warnings, {count_rulesets} rulesets)"
        )
    else:
        lines.append(f"✓ No issues found ({count_rulesets} rulesets)")
    return "\n".join(lines)


def issue_to_dict(issue: LintIssue) -> dict[str, object]:
    return {
        "type": issue.type,
        "severity": issue.severity,
        "ruleset": issue.ruleset,
        "from": issue.from_id,
        "to": issue.to_id,
        "edge": issue.edge,
        "path": list(issue.path) if issue.path else None,
        "message": issue.message,
    }


def format_json(summary: LintSummary) -> str:
    """Format a LintSummary as JSON with ``by_ruleset`` and ``totals``."""
    output: dict[str, object] = {
        "by_ruleset": {
            name: {
                "ruleset": name,
                "counts": report.counts,
                "issues": [issue_to_dict(i) for i in report.issues],
            }
            for name, report in summary.by_ruleset.items()
        },
        "totals": summary.totals,
    }
    return json.dumps(output, indent=2, ensure_ascii=False)


def format_porcelain(summary: LintSummary) -> str:
    """One line per issue: ``type:severity:ruleset:from:to:edge``.

    Missing fields are empty strings.  Returns an empty string when clean.
    """
    lines: list[str] = []
    for report in summary.by_ruleset.values():
        for issue in report.issues:
            lines.append(
                ":".join(
                    [
                        issue.type,
                        issue.severity,
                        issue.ruleset,
                        issue.from_id or "",
                        issue.to_id or "",
                        issue.edge or "",
                    ]
                )
            )
    return "\n".join(lines)
