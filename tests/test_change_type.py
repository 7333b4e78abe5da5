"""Tests for whole-diff change-type classification."""

from __future__ import annotations

import pytest
from diff_samples import file_diff, join_diffs, numbered

from quickpr.diff.change_type import (
    ChangeType,
    DecisionRule,
    classify_change_type,
    decide_change_type,
)
from quickpr.diff.parser import parse_diff


def _classify(diff: str) -> ChangeType:
    result = parse_diff(diff)
    return classify_change_type(diff, result.total_added, result.total_removed)


def test_readme_prose_is_docs() -> None:
    diff = file_diff("README.md", numbered("This paragraph explains how the library works, part {i}.", 30))
    assert _classify(diff) is ChangeType.DOCS


def test_auth_keywords_in_typescript_are_security() -> None:
    diff = file_diff(
        "src/session.ts", numbered("const authHeader{i} = login(userName, passwordHash{i});", 80)
    )
    assert _classify(diff) is ChangeType.SECURITY


def test_testing_outranks_docs_and_bugfix() -> None:
    diff = join_diffs(
        file_diff("tests/test_cart.py", ["def test_total():", "    assert total() == 3"]),
        file_diff("README.md", ["Fix the typo in the intro."]),
    )
    assert _classify(diff) is ChangeType.TESTING


def test_docs_outranks_bugfix() -> None:
    diff = file_diff("docs/usage.md", ["Fix the broken example."])
    assert _classify(diff) is ChangeType.DOCS


def test_bugfix_outranks_security() -> None:
    diff = file_diff("src/login.py", ["# fixes the login redirect", "return redirect(url)"])
    assert _classify(diff) is ChangeType.BUGFIX


def test_performance_and_style_keywords() -> None:
    assert _classify(file_diff("src/query.py", ["@cache", "def lookup(key):"])) is ChangeType.PERFORMANCE
    assert _classify(file_diff("web/site.css", ["color: red;"])) is ChangeType.STYLE


def test_mostly_added_diff_is_feature() -> None:
    decision = decide_change_type(
        file_diff("src/engine.py", ["def compute(a):", "    return a * 2", "value = compute(3)"]),
        3,
        0,
    )
    assert decision.change_type is ChangeType.FEATURE
    assert decision.rule is DecisionRule.RATIO


def test_balanced_diff_defaults_to_refactor() -> None:
    diff = file_diff("src/engine.py", ["value = compute(3)"], ["value = compute(2)"])
    decision = decide_change_type(diff, 1, 1)
    assert decision.change_type is ChangeType.REFACTOR
    assert decision.rule is DecisionRule.DEFAULT


def test_keywords_need_word_boundaries() -> None:
    diff = file_diff("src/engine.py", ["prefixed = latest_value"], ["prefixed = 0"])
    assert _classify(diff) is ChangeType.REFACTOR


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("feature", ChangeType.FEATURE),
        ("fix", ChangeType.BUGFIX),
        ("Docs", ChangeType.DOCS),
        ("breaking_change", ChangeType.BREAKING_CHANGE),
        ("deps", ChangeType.DEPENDENCY),
    ],
)
def test_parse_names_and_aliases(raw: str, expected: ChangeType) -> None:
    assert ChangeType.parse(raw) is expected


def test_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown change type"):
        ChangeType.parse("chore")


def test_title() -> None:
    assert ChangeType.BREAKING_CHANGE.title == "Breaking change"
