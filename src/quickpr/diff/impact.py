"""Per-file impact classification.

Dependencies: diff/parser.py, diff/taggers.py, diff/filetypes.py
Wired in: pipeline.py → classify stage
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from quickpr.config import PipelineConfig
from quickpr.diff import taggers
from quickpr.diff.filetypes import (
    CONFIG_EXTENSIONS,
    DEPENDENCY_MANIFESTS,
    DOC_EXTENSIONS,
    SOURCE_EXTENSIONS,
    STYLE_EXTENSIONS,
    YAML_EXTENSIONS,
    basename,
    extension,
    is_excluded_path,
)
from quickpr.diff.parser import FileChangeRecord
from quickpr.diff.taggers import FileTags

_log = logging.getLogger(__name__)

HIGH_COMPLEXITY_LINES = 50
MEDIUM_COMPLEXITY_LINES = 20
_BUSINESS_LOGIC_MIN_LINES = 20
_SIGNIFICANT_CHANGE_LINES = 50


class FileChangeKind(Enum):
    ADDITION = "Addition"
    DELETION = "Deletion"
    MODIFICATION = "Modification"


class Level(Enum):
    """Qualitative level used for complexity and business impact."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class BusinessImpact:
    """Impact level plus a one-line rationale."""

    level: Level
    rationale: str

    @property
    def label(self) -> str:
        return f"{self.level.value} - {self.rationale}"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class FileAnalysis:
    """Derived, per-file view of a change record."""

    path: str
    change_type: FileChangeKind
    complexity: Level
    business_impact: BusinessImpact
    lines_added: int
    lines_removed: int
    excluded: bool = False

    @property
    def total_lines(self) -> int:
        return self.lines_added + self.lines_removed

    def to_dict(self) -> dict[str, object]:
        return {
            "file": self.path,
            "change_type": self.change_type.value,
            "complexity": self.complexity.value,
            "business_impact": self.business_impact.label,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "excluded": self.excluded,
        }


def classify_change_kind(lines_added: int, lines_removed: int) -> FileChangeKind:
    if lines_added > lines_removed * 2:
        return FileChangeKind.ADDITION
    if lines_removed > lines_added * 2:
        return FileChangeKind.DELETION
    return FileChangeKind.MODIFICATION


def classify_complexity(total_lines: int) -> Level:
    if total_lines > HIGH_COMPLEXITY_LINES:
        return Level.HIGH
    if total_lines > MEDIUM_COMPLEXITY_LINES:
        return Level.MEDIUM
    return Level.LOW


def _source_impact(tags: FileTags, total_lines: int) -> BusinessImpact:
    if tags.business > 0 and total_lines > _BUSINESS_LOGIC_MIN_LINES:
        return BusinessImpact(Level.HIGH, "Core business logic modifications")
    if tags.api > 0:
        return BusinessImpact(Level.MEDIUM, "API interface changes")
    if tags.data_models > 0:
        return BusinessImpact(Level.MEDIUM, "Data structure modifications")
    if total_lines > _SIGNIFICANT_CHANGE_LINES:
        return BusinessImpact(Level.MEDIUM, "Significant code changes")
    return BusinessImpact(Level.LOW, "Minor code adjustments")


def determine_business_impact(
    path: str, tags: FileTags | None, total_lines: int
) -> BusinessImpact:
    """Impact from extension first, then tagger hits and size for source files."""
    ext = extension(path)
    if ext in SOURCE_EXTENSIONS:
        return _source_impact(tags or FileTags(), total_lines)
    if basename(path) in DEPENDENCY_MANIFESTS:
        return BusinessImpact(Level.MEDIUM, "Dependency changes affecting project")
    if ext in DOC_EXTENSIONS:
        return BusinessImpact(Level.LOW, "Documentation updates")
    if ext in STYLE_EXTENSIONS:
        return BusinessImpact(Level.LOW, "Styling modifications")
    if ext in YAML_EXTENSIONS:
        return BusinessImpact(Level.LOW, "Configuration or CI/CD updates")
    if ext in CONFIG_EXTENSIONS:
        return BusinessImpact(Level.LOW, "Configuration updates")
    return BusinessImpact(Level.UNKNOWN, "Requires manual assessment")


def analyze_file(
    record: FileChangeRecord,
    config: PipelineConfig,
    tags: FileTags | None = None,
) -> FileAnalysis:
    """Build the :class:`FileAnalysis` for one record.

    Total over every record: a file under an excluded path is labelled
    without running the taggers, and an unexpected failure yields an
    ``Unknown`` impact instead of an error.
    """
    lines_added = record.added_count
    lines_removed = record.removed_count
    total = lines_added + lines_removed
    change_type = classify_change_kind(lines_added, lines_removed)
    complexity = classify_complexity(total)

    excluded = is_excluded_path(record.path, config.excluded_path_patterns)
    if excluded:
        impact = BusinessImpact(Level.LOW, "Generated, lock or environment file")
    else:
        try:
            file_tags = tags if tags is not None else taggers.tag_lines(record.added)
            impact = determine_business_impact(record.path, file_tags, total)
        except Exception:
            _log.warning("Impact analysis failed for %s", record.path, exc_info=True)
            impact = BusinessImpact(Level.UNKNOWN, "Analysis error")

    return FileAnalysis(
        path=record.path,
        change_type=change_type,
        complexity=complexity,
        business_impact=impact,
        lines_added=lines_added,
        lines_removed=lines_removed,
        excluded=excluded,
    )
