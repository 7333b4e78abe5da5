"""Whole-diff change-type classification.

Dependencies: (none — leaf module)
Wired in: pipeline.py → classify stage, diff/analysis.py
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class ChangeType(Enum):
    """Kind of pull request a diff represents."""

    FEATURE = "feature"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"
    DOCS = "docs"
    TESTING = "testing"
    SECURITY = "security"
    PERFORMANCE = "performance"
    STYLE = "style"
    CONFIG = "config"
    DEPENDENCY = "dependency"
    HOTFIX = "hotfix"
    BREAKING_CHANGE = "breaking-change"

    @property
    def title(self) -> str:
        return self.value.replace("-", " ").capitalize()

    @classmethod
    def parse(cls, raw: str) -> ChangeType:
        """Map a user-supplied name or alias to a member.

        Raises ``ValueError`` for unknown names.
        """
        key = raw.strip().lower().replace("_", "-")
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            msg = f"Unknown change type {raw!r}. Must be one of {[c.value for c in cls]}."
            raise ValueError(msg) from None


_ALIASES: dict[str, str] = {
    "feat": "feature",
    "fix": "bugfix",
    "bug": "bugfix",
    "doc": "docs",
    "documentation": "docs",
    "test": "testing",
    "tests": "testing",
    "perf": "performance",
    "refactoring": "refactor",
    "configuration": "config",
    "deps": "dependency",
    "dependencies": "dependency",
    "breaking": "breaking-change",
}


class DecisionRule(Enum):
    """Which rule produced a classification."""

    KEYWORD = "keyword"
    RATIO = "ratio"
    DEFAULT = "default"
    OVERRIDE = "override"


@dataclass(frozen=True)
class ChangeTypeDecision:
    change_type: ChangeType
    rule: DecisionRule


# Ordered: first match wins.
_KEYWORD_RULES: tuple[tuple[ChangeType, re.Pattern[str]], ...] = (
    (
        ChangeType.TESTING,
        re.compile(r"\btests?\b|\btest_|_test\b|\bspecs?\b|\.test\.|\.spec\.|\bpytest\b"),
    ),
    (
        ChangeType.DOCS,
        re.compile(r"\breadme\b|\.md\b|\.rst\b|\bdocs?\b|\bdocumentation\b"),
    ),
    (
        ChangeType.BUGFIX,
        re.compile(r"\bfix(?:es|ed)?\b|\bbugs?\b|\berrors?\b|\bhotfix\b"),
    ),
    (
        ChangeType.SECURITY,
        re.compile(r"\bsecurity\b|\bauth\w*|\bpermissions?\b|\blogin\b|\bpassword\w*|\bcsrf\b|\bxss\b"),
    ),
    (
        ChangeType.PERFORMANCE,
        re.compile(r"\bperformance\b|\boptimi[sz]\w*|\bcach(?:e|es|ed|ing)\b|\bmemoi[sz]\w*"),
    ),
    (
        ChangeType.STYLE,
        re.compile(r"\bstyles?\b|\bcss\b|\.s?css\b|\bformat(?:ting)?\b|\blint\w*"),
    ),
)


def decide_change_type(diff_text: str, total_added: int, total_removed: int) -> ChangeTypeDecision:
    """Classify *diff_text* and report which rule decided it."""
    lowered = diff_text.lower()
    for change_type, pattern in _KEYWORD_RULES:
        if pattern.search(lowered):
            return ChangeTypeDecision(change_type, DecisionRule.KEYWORD)
    if total_added > total_removed * 2:
        return ChangeTypeDecision(ChangeType.FEATURE, DecisionRule.RATIO)
    return ChangeTypeDecision(ChangeType.REFACTOR, DecisionRule.DEFAULT)


def classify_change_type(diff_text: str, total_added: int, total_removed: int) -> ChangeType:
    """Return the change type for a whole diff.

    Keyword rules run in precedence order (testing, docs, bugfix, security,
    performance, style) over the lower-cased text; then a mostly-additive
    diff is a feature; everything else is a refactor.
    """
    return decide_change_type(diff_text, total_added, total_removed).change_type
