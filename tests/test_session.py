"""Tests for ruleloom.session — ConfiguratorSession over a schema document."""

from __future__ import annotations

from typing import Any

import pytest

from ruleloom.rules.satisfaction import OptionStatus
from ruleloom.session import ConfiguratorSession


@pytest.fixture()
def session(document: dict[str, Any]) -> ConfiguratorSession:
    return ConfiguratorSession.from_payload(document)


class TestConstruction:
    def test_active_ruleset_from_document(self, session: ConfiguratorSession) -> None:
        assert session.active_ruleset == "default"
        assert session.selection == frozenset()

    def test_override_active(self, document: dict[str, Any]) -> None:
        session = ConfiguratorSession.from_payload(document, active_ruleset="premium")
        assert session.active_ruleset == "premium"

    def test_unknown_override_ignored(self, document: dict[str, Any]) -> None:
        session = ConfiguratorSession.from_payload(document, active_ruleset="nope")
        assert session.active_ruleset == "default"

    def test_to_payload(self, session: ConfiguratorSession) -> None:
        out = session.to_payload()
        assert out["activeRuleset"] == "default"
        assert out["criteria"] == ["A", "B", "C", "D", "E", "F"]

    def test_set_unknown_ruleset(self, session: ConfiguratorSession) -> None:
        with pytest.raises(KeyError):
            session.set_active_ruleset("nope")


class TestSelection:
    def test_toggle_applies_closure(self, session: ConfiguratorSession) -> None:
        result = session.toggle("A")
        assert result.newly_added == ("B", "C", "D")
        assert session.selection == frozenset("ABCD")

    def test_toggle_off(self, session: ConfiguratorSession) -> None:
        session.toggle("A")
        result = session.toggle("A")
        assert result.removed is True
        assert session.selection == frozenset("BCD")

    def test_reset(self, session: ConfiguratorSession) -> None:
        session.toggle("A")
        session.reset_selection()
        assert session.selection == frozenset()

    def test_closure(self, session: ConfiguratorSession) -> None:
        assert session.closure("B") == {"C", "D"}

    def test_switching_ruleset_keeps_selection(self, session: ConfiguratorSession) -> None:
        session.toggle("C")
        session.set_active_ruleset("premium")
        assert session.selection == frozenset({"C"})
        assert session.evaluate("A").status == OptionStatus.NORMAL


class TestEvaluation:
    def test_requirement_unlocked_by_closure(self, session: ConfiguratorSession) -> None:
        assert session.evaluate("F").status == OptionStatus.BLOCKED
        session.toggle("A")
        assert session.evaluate("F").status == OptionStatus.NORMAL

    def test_incompatibility_both_directions(self, session: ConfiguratorSession) -> None:
        session.toggle("C")
        session.toggle("E")
        assert session.evaluate("F").status == OptionStatus.INCOMPATIBLE
        assert session.evaluate("F").incompatible_with == ("E",)

    def test_evaluate_all_covers_catalog(self, session: ConfiguratorSession) -> None:
        result = session.evaluate_all()
        assert list(result) == ["A", "B", "C", "D", "E", "F"]

    def test_evaluate_all_adds_rule_sources(self, document: dict[str, Any]) -> None:
        document["ruleSets"]["default"]["rules"]["Z"] = {"requires": ["A"]}
        session = ConfiguratorSession.from_payload(document)
        result = session.evaluate_all()
        assert list(result)[-1] == "Z"
        assert result["Z"].status == OptionStatus.BLOCKED


class TestLint:
    def test_sample_is_clean(self, session: ConfiguratorSession) -> None:
        assert session.lint().issues == []
        assert session.lint_all().has_errors is False

    def test_unknown_rule_source(self, document: dict[str, Any]) -> None:
        document["ruleSets"]["premium"]["rules"]["Z"] = {"requires": ["A"]}
        session = ConfiguratorSession.from_payload(document)
        summary = session.lint_all()
        assert summary.by_ruleset["premium"].issues[0].type == "unknown_from"
        assert session.lint().issues == []
