"""Rule-based aggregate analysis of a parsed diff.

Turns per-file analyses, combined tagger counts and the change-type decision
into the terminal ``AggregateAnalysisResult``: project type, aspect
paragraphs, key implementation points, unnecessary-file hints and a
confidence drawn from four discrete levels.  No model is consulted.

Dependencies: diff/parser.py, diff/impact.py, diff/change_type.py, diff/taggers.py
Wired in: pipeline.py → classify stage, server/mcp_tools.py → analyze_diff
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from types import MappingProxyType

from quickpr.diff.change_type import ChangeType, ChangeTypeDecision, DecisionRule
from quickpr.diff.filetypes import (
    CONFIG_EXTENSIONS,
    DEPENDENCY_MANIFESTS,
    YAML_EXTENSIONS,
    basename,
    extension,
)
from quickpr.diff.impact import FileAnalysis, Level
from quickpr.diff.parser import DiffParseResult
from quickpr.diff.taggers import FileTags

_log = logging.getLogger(__name__)

_HIGH_RISK_TOTAL_LINES = 500
_MEDIUM_RISK_TOTAL_LINES = 100
_LOCK_FILE_NAMES = frozenset(
    {"package-lock.json", "yarn.lock", "pnpm-lock.yaml", "poetry.lock", "Cargo.lock", "go.sum"}
)


class Confidence(Enum):
    """The only confidence values an analysis may carry."""

    HIGH = 0.9
    MEDIUM = 0.7
    FALLBACK = 0.6
    LOW = 0.4


class Aspect(Enum):
    BUSINESS_LOGIC = "business_logic"
    ARCHITECTURE = "architecture"
    TECHNICAL_COMPLEXITY = "technical_complexity"
    SECURITY = "security"
    DEPENDENCIES = "dependencies"
    RISK = "risk"


@dataclass(frozen=True)
class KeyPoint:
    label: str
    checked: bool


@dataclass(frozen=True)
class AggregateAnalysisResult:
    """Whole-diff analysis consumed by the composer and templates."""

    change_type: ChangeType
    confidence: float
    aspects: Mapping[Aspect, str] = field(default_factory=lambda: MappingProxyType({}))
    potentially_unnecessary_files: tuple[str, ...] = ()
    project_type: str = "Software Project"
    suggested_title: str = ""
    suggested_description: str = ""
    key_points: tuple[KeyPoint, ...] = ()

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < Confidence.MEDIUM.value

    def aspect(self, aspect: Aspect) -> str:
        return self.aspects.get(aspect, "")

    def to_dict(self) -> dict[str, object]:
        return {
            "change_type": self.change_type.value,
            "confidence": self.confidence,
            "project_type": self.project_type,
            "aspects": {a.value: text for a, text in self.aspects.items()},
            "potentially_unnecessary_files": list(self.potentially_unnecessary_files),
            "key_points": [{"label": p.label, "checked": p.checked} for p in self.key_points],
            "suggested_title": self.suggested_title,
            "suggested_description": self.suggested_description,
        }


# Ordered: first match wins.
_FRAMEWORK_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("React Frontend", re.compile(r"\breact\b|\.jsx\b|\.tsx\b")),
    ("Node.js Backend", re.compile(r"\bexpress\b|\bfastify\b|\bkoa\b")),
    ("Full-stack Framework", re.compile(r"\bnext\b|\bnuxt\b")),
)
_PYTHON_WEB_RE = re.compile(r"\bdjango\b|\bflask\b|\bfastapi\b")
_PYTHON_DATA_RE = re.compile(r"\bjupyter\b|\bpandas\b|\bnumpy\b")
_SPRING_RE = re.compile(r"\bspring(?:boot)?\b")


def _has_ext(paths: Sequence[str], *exts: str) -> bool:
    return any(extension(p) in exts for p in paths)


def _has_name(paths: Sequence[str], *names: str) -> bool:
    return any(basename(p) in names for p in paths)


def detect_project_type(paths: Sequence[str], content: str) -> str:
    """Guess the project type from changed file names and added content."""
    lowered = content.lower()
    if _has_name(paths, "package.json") or any("node_modules" in p for p in paths) or _has_ext(
        paths, "js", "ts", "jsx", "tsx", "mjs", "cjs"
    ):
        for label, pattern in _FRAMEWORK_RULES:
            if pattern.search(lowered) or (label == "React Frontend" and _has_ext(paths, "jsx", "tsx")):
                return label
        return "Node.js Application"
    if _has_name(paths, "requirements.txt", "pyproject.toml", "setup.py") or _has_ext(paths, "py"):
        if _PYTHON_WEB_RE.search(lowered):
            return "Python Web Backend"
        if _PYTHON_DATA_RE.search(lowered) or _has_ext(paths, "ipynb"):
            return "Python Data Science"
        return "Python Application"
    if _has_name(paths, "pom.xml", "build.gradle") or _has_ext(paths, "java"):
        return "Java Spring Backend" if _SPRING_RE.search(lowered) else "Java Application"
    if _has_ext(paths, "cs", "csproj", "sln"):
        return ".NET Application"
    if _has_name(paths, "go.mod", "go.sum") or _has_ext(paths, "go"):
        return "Go Application"
    if _has_name(paths, "Cargo.toml") or _has_ext(paths, "rs"):
        return "Rust Application"
    if _has_ext(paths, "swift") or "xcode" in lowered:
        return "iOS Mobile App"
    if _has_ext(paths, "kt") or "android" in lowered:
        return "Android Mobile App"
    if _has_ext(paths, "dart") or "flutter" in lowered:
        return "Flutter Mobile App"
    return "Software Project"


def find_unnecessary_files(paths: Iterable[str]) -> tuple[str, ...]:
    """Paths that usually do not belong in a reviewed change."""
    found: list[str] = []
    for path in paths:
        name = basename(path)
        dirs = PurePosixPath(path).parts[:-1]
        if (
            name in _LOCK_FILE_NAMES
            or name.endswith(".lock")
            or extension(path) == "log"
            or name.endswith((".min.js", ".min.css"))
            or "dist" in dirs
            or "build" in dirs
        ):
            found.append(path)
    return tuple(found)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _business_paragraph(analyses: Sequence[FileAnalysis], tags: FileTags) -> str:
    core = [a.path for a in analyses if a.business_impact.level is Level.HIGH]
    if core:
        listed = ", ".join(f"`{p}`" for p in core[:5])
        return (
            f"Core business logic changes in {_plural(len(core), 'file')} ({listed}). "
            f"{_plural(tags.business, 'line')} reference validation, processing or calculation rules."
        )
    if tags.business:
        return f"{_plural(tags.business, 'line')} touch business rules; no file crosses the core-logic threshold."
    return "No business-rule changes detected."


def _architecture_paragraph(analyses: Sequence[FileAnalysis], tags: FileTags) -> str:
    new_files = sum(1 for a in analyses if a.total_lines and a.lines_removed == 0)
    parts: list[str] = []
    if tags.classes:
        parts.append(_plural(tags.classes, "class definition"))
    if tags.interfaces:
        parts.append(_plural(tags.interfaces, "interface/type declaration"))
    if tags.components:
        parts.append(_plural(tags.components, "UI component reference"))
    if tags.state:
        parts.append(_plural(tags.state, "state-management reference"))
    if not parts and not new_files:
        return "No structural changes detected; existing architecture is preserved."
    summary = ", ".join(parts) if parts else "no new types"
    return f"Structural changes: {summary}. {_plural(new_files, 'file')} added without removals."


def _complexity_paragraph(analyses: Sequence[FileAnalysis], tags: FileTags) -> str:
    if not analyses:
        return "No changes to assess."
    total = sum(a.total_lines for a in analyses)
    average = total / len(analyses)
    high = [a.path for a in analyses if a.complexity is Level.HIGH]
    text = (
        f"{_plural(tags.functions, 'function')} touched; average of {average:.1f} changed lines per file."
    )
    if tags.async_ops:
        text += f" {_plural(tags.async_ops, 'line')} involve asynchronous code."
    if high:
        text += f" High-complexity files: {', '.join(f'`{p}`' for p in high[:5])}."
    return text


def _security_paragraph(tags: FileTags) -> str:
    if tags.credentials:
        return (
            f"{_plural(tags.credentials, 'added line')} look like credentials or config literals; "
            "verify that no secrets are committed."
        )
    if tags.security:
        return (
            f"{_plural(tags.security, 'line')} touch authentication, permissions or session handling; "
            "review access-control paths."
        )
    return "No security-sensitive changes detected."


def _dependency_paragraph(paths: Sequence[str], tags: FileTags) -> str:
    manifests = [p for p in paths if basename(p) in DEPENDENCY_MANIFESTS]
    if manifests:
        listed = ", ".join(f"`{p}`" for p in manifests)
        return f"Dependency manifests changed ({listed}); check version bumps and lock files."
    if tags.imports:
        return f"{_plural(tags.imports, 'import statement')} added or changed; no manifest updates."
    return "No dependency changes detected."


def assess_risk(analyses: Sequence[FileAnalysis], tags: FileTags) -> Level:
    total = sum(a.total_lines for a in analyses)
    if (
        tags.credentials
        or any(a.business_impact.level is Level.HIGH for a in analyses)
        or total > _HIGH_RISK_TOTAL_LINES
    ):
        return Level.HIGH
    if tags.security or tags.api or total > _MEDIUM_RISK_TOTAL_LINES:
        return Level.MEDIUM
    return Level.LOW


def _risk_paragraph(analyses: Sequence[FileAnalysis], tags: FileTags) -> str:
    level = assess_risk(analyses, tags)
    if level is Level.HIGH:
        return "High - touches core logic, secrets or a large surface; request a thorough review."
    if level is Level.MEDIUM:
        return "Medium - affects interfaces or security-related code; targeted review recommended."
    return "Low - small, localised changes."


def build_key_points(paths: Sequence[str], tags: FileTags) -> tuple[KeyPoint, ...]:
    config_touched = any(
        extension(p) in CONFIG_EXTENSIONS | YAML_EXTENSIONS or basename(p).startswith(".env")
        for p in paths
    )
    return (
        KeyPoint("Core functionality changes", bool(tags.business or tags.functions)),
        KeyPoint("API modifications", bool(tags.api)),
        KeyPoint("Database schema changes", bool(tags.data_models)),
        KeyPoint("Configuration updates", config_touched),
        KeyPoint(
            "Third-party integrations",
            _has_name(paths, *DEPENDENCY_MANIFESTS) or bool(tags.imports),
        ),
    )


def score_confidence(
    decision: ChangeTypeDecision,
    analyses: Sequence[FileAnalysis],
    parse_result: DiffParseResult,
    notes: Sequence[str],
) -> Confidence:
    """Pick one of the four confidence levels."""
    if parse_result.is_empty:
        return Confidence.LOW
    if decision.rule is DecisionRule.DEFAULT:
        return Confidence.FALLBACK
    all_known = all(a.business_impact.level is not Level.UNKNOWN for a in analyses)
    if decision.rule in (DecisionRule.KEYWORD, DecisionRule.OVERRIDE) and all_known and not notes:
        return Confidence.HIGH
    return Confidence.MEDIUM


def suggest_title(change_type: ChangeType, project_type: str) -> str:
    return f"{change_type.title}: Update {project_type.lower()}"


def build_aggregate_analysis(
    parse_result: DiffParseResult,
    analyses: Sequence[FileAnalysis],
    decision: ChangeTypeDecision,
    tags: FileTags,
    notes: Sequence[str] = (),
) -> AggregateAnalysisResult:
    """Combine the per-file results into one ``AggregateAnalysisResult``."""
    paths = parse_result.paths()
    content = "\n".join(line for record in parse_result.files.values() for line in record.added)
    project_type = detect_project_type(paths, content)
    aspects = {
        Aspect.BUSINESS_LOGIC: _business_paragraph(analyses, tags),
        Aspect.ARCHITECTURE: _architecture_paragraph(analyses, tags),
        Aspect.TECHNICAL_COMPLEXITY: _complexity_paragraph(analyses, tags),
        Aspect.SECURITY: _security_paragraph(tags),
        Aspect.DEPENDENCIES: _dependency_paragraph(paths, tags),
        Aspect.RISK: _risk_paragraph(analyses, tags),
    }
    confidence = score_confidence(decision, analyses, parse_result, notes)
    _log.debug(
        "Aggregate analysis: %s via %s rule, confidence %.1f",
        decision.change_type.value,
        decision.rule.value,
        confidence.value,
    )
    return AggregateAnalysisResult(
        change_type=decision.change_type,
        confidence=confidence.value,
        aspects=MappingProxyType(aspects),
        potentially_unnecessary_files=find_unnecessary_files(paths),
        project_type=project_type,
        suggested_title=suggest_title(decision.change_type, project_type),
        suggested_description=(
            f"This PR includes changes to {_plural(parse_result.total_files, 'file')} with "
            f"{parse_result.total_added} additions and {parse_result.total_removed} deletions."
        ),
        key_points=build_key_points(paths, tags),
    )


def fallback_analysis(parse_result: DiffParseResult) -> AggregateAnalysisResult:
    """Generic low-confidence analysis used when classification fails."""
    return AggregateAnalysisResult(
        change_type=ChangeType.REFACTOR,
        confidence=Confidence.LOW.value,
        aspects=MappingProxyType(
            {aspect: "Analysis unavailable; review the changes manually." for aspect in Aspect}
        ),
        potentially_unnecessary_files=find_unnecessary_files(parse_result.paths()),
        suggested_title=suggest_title(ChangeType.REFACTOR, "Software Project"),
        suggested_description=(
            f"This PR includes changes to {_plural(parse_result.total_files, 'file')} with "
            f"{parse_result.total_added} additions and {parse_result.total_removed} deletions."
        ),
    )
