"""Markdown summary of a parsed diff.

Produces three blocks: a flat list of changed paths, a per-file narrative
with representative example lines, and an aggregate statistics block.
Excluded paths (lock files, logs, env files, build output) never enter the
narrative and are never tagged, but they are still counted in the
statistics.

Dependencies: diff/parser.py, diff/impact.py, diff/taggers.py, config.py
Wired in: pipeline.py → compose stage
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from quickpr.config import OutputDetail, PipelineConfig
from quickpr.diff import taggers
from quickpr.diff.change_type import ChangeType
from quickpr.diff.filetypes import (
    CONFIG_EXTENSIONS,
    DOC_EXTENSIONS,
    SOURCE_EXTENSIONS,
    STYLE_EXTENSIONS,
    UI_EXTENSIONS,
    YAML_EXTENSIONS,
    extension,
    is_excluded_path,
    language_for,
)
from quickpr.diff.impact import FileAnalysis
from quickpr.diff.parser import DiffParseResult, FileChangeRecord
from quickpr.diff.taggers import FileTags

_log = logging.getLogger(__name__)

NO_CHANGES = "No changes detected"
NO_LOGIC_CHANGES = "No significant business logic changes detected."
_MAX_HUNK_LABELS = 5
_SIMPLE_SUMMARY_LINES = 5
_SIMPLE_SUMMARY_RE = re.compile(r"function|class|interface|export|import")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class TechnicalMetrics:
    total_files: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    functions: int = 0
    classes: int = 0
    interfaces: int = 0
    complexity_score: str = "None"

    def to_dict(self) -> dict[str, object]:
        return {
            "total_files": self.total_files,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "functions_modified": self.functions,
            "classes_modified": self.classes,
            "interfaces_modified": self.interfaces,
            "complexity_score": self.complexity_score,
        }


@dataclass(frozen=True)
class ComposedSummary:
    """The composer's three markdown blocks plus the numbers behind them."""

    files_list: str
    narrative: str
    statistics: str
    metrics: TechnicalMetrics = TechnicalMetrics()
    narrative_capped: bool = False

    def to_markdown(self) -> str:
        return (
            f"### Changed Files\n\n{self.files_list}\n\n"
            f"### Main Logic Changes\n\n{self.narrative}\n\n"
            f"### Statistics\n\n{self.statistics}\n"
        )


def complexity_score(total_files: int, lines_added: int, lines_removed: int) -> str:
    """Overall score from the average number of changed lines per file."""
    if total_files == 0:
        return "None"
    average = (lines_added + lines_removed) / total_files
    if average > 100:
        return "High"
    if average > 50:
        return "Medium"
    return "Low"


def clean_example(line: str) -> str:
    """Collapse whitespace and drop a trailing semicolon."""
    return _WHITESPACE_RE.sub(" ", line.strip()).removesuffix(";")


def select_examples(lines: Sequence[str], limit: int) -> list[str]:
    """Up to *limit* cleaned logic lines, never credential-like ones."""
    examples: list[str] = []
    for line in lines:
        if len(examples) >= limit:
            break
        if not taggers.is_logic_line(line):
            continue
        cleaned = clean_example(line)
        if not cleaned or "```" in cleaned or taggers.is_credential_like(cleaned):
            continue
        examples.append(cleaned)
    return examples


def describe_file(record: FileChangeRecord, tags: FileTags) -> tuple[str, bool]:
    """Qualitative description of one file and whether examples should follow."""
    ext = extension(record.path)
    if ext in UI_EXTENSIONS or "component" in record.path.lower():
        if tags.components:
            text = "**UI Component Changes**: Modified UI structure or component logic"
            if tags.layout:
                text += " with layout adjustments"
            if tags.events:
                text += " and event handlers"
            text += "."
            if tags.state:
                text += "\n\nUpdated component state management or hooks."
            return text, True
    elif ext in SOURCE_EXTENSIONS:
        if tags.functions and tags.api:
            return "**API Logic Changes**: Modified API endpoints or request handling.", True
        if tags.functions:
            text = "**Business Logic Changes**: Updated core functionality"
            if tags.async_ops:
                text += " with asynchronous operations"
            return text + ".", True
        if tags.data_models:
            return "**Data Model Changes**: Updated data structures or interfaces.", True
    elif ext in STYLE_EXTENSIONS:
        return "**Styling Changes**: Updated visual appearance or layout.", False
    elif ext in CONFIG_EXTENSIONS or ext in YAML_EXTENSIONS:
        return "**Configuration Changes**: Updated project settings or dependencies.", False
    elif ext in DOC_EXTENSIONS:
        return "**Documentation Changes**: Updated project documentation.", False

    text = (
        f"**Code Changes**: Made {record.added_count} additions and "
        f"{record.removed_count} removals."
    )
    return text, record.added_count > 0


def _file_section(
    record: FileChangeRecord,
    analysis: FileAnalysis | None,
    tags: FileTags,
    config: PipelineConfig,
) -> str:
    description, wants_examples = describe_file(record, tags)
    parts = [f"#### {record.path}", description]
    if analysis is not None:
        parts.append(
            f"**Impact:** {analysis.business_impact.label} | "
            f"**Complexity:** {analysis.complexity.value}"
        )
    if config.detail is OutputDetail.EXTENDED:
        labels = [h.removeprefix("Changed section: ") for h in record.hunks if h != "Changed section"]
        if labels:
            shown = ", ".join(f"`{label}`" for label in labels[:_MAX_HUNK_LABELS])
            parts.append(f"**Sections:** {shown}")
    elif config.detail is OutputDetail.SECURITY and (tags.security or tags.credentials):
        parts.append(
            f"**Security review:** {tags.security} sensitive lines, "
            f"{tags.credentials} credential-like lines (not shown)"
        )
    if wants_examples:
        examples = select_examples(record.added, config.max_examples_per_file)
        if examples:
            parts.append("Example changes:")
            language = language_for(record.path)
            parts.extend(f"```{language}\n{example}\n```" for example in examples)
    return "\n\n".join(parts)


def _files_list(parse_result: DiffParseResult, config: PipelineConfig) -> str:
    records = list(parse_result.files.values())
    lines = [
        f"- `{r.path}` (+{r.added_count}/-{r.removed_count})"
        for r in records[: config.max_listed_files]
    ]
    hidden = len(records) - config.max_listed_files
    if hidden > 0:
        lines.append(f"- *... and {hidden} more files*")
    if parse_result.dropped_files:
        lines.append(f"- *{parse_result.dropped_files} further files were counted but not tracked*")
    return "\n".join(lines)


def _statistics(metrics: TechnicalMetrics) -> str:
    return "\n".join(
        [
            f"**Files Changed:** {metrics.total_files} files",
            f"**Additions:** {metrics.lines_added} lines",
            f"**Deletions:** {metrics.lines_removed} lines",
            f"**Functions Modified:** {metrics.functions}",
            f"**Classes Modified:** {metrics.classes}",
            f"**Interfaces Modified:** {metrics.interfaces}",
            f"**Complexity Score:** {metrics.complexity_score}",
        ]
    )


def empty_summary() -> ComposedSummary:
    metrics = TechnicalMetrics()
    return ComposedSummary(
        files_list=NO_CHANGES,
        narrative=f"{NO_CHANGES}.",
        statistics=_statistics(metrics),
        metrics=metrics,
    )


def compose_summary(
    parse_result: DiffParseResult,
    analyses: Sequence[FileAnalysis],
    change_type: ChangeType,
    config: PipelineConfig | None = None,
    tags: Mapping[str, FileTags] | None = None,
) -> ComposedSummary:
    """Build the markdown summary for a parsed diff.

    *tags* is the per-file tagger cache built by the classify stage; files
    missing from it are tagged here unless their path is excluded.
    """
    cfg = config or PipelineConfig()
    if parse_result.is_empty:
        return empty_summary()

    by_path = {a.path: a for a in analyses}
    cache = dict(tags or {})
    sections: list[str] = []
    hidden = 0
    totals = FileTags()

    for path, record in parse_result.files.items():
        if is_excluded_path(path, cfg.excluded_path_patterns):
            continue
        file_tags = cache.get(path)
        if file_tags is None:
            file_tags = taggers.tag_lines(record.added)
            cache[path] = file_tags
        totals = totals + file_tags
        if len(sections) >= cfg.max_files_to_deep_process:
            hidden += 1
            continue
        try:
            sections.append(_file_section(record, by_path.get(path), file_tags, cfg))
        except Exception:
            _log.warning("Could not describe changes in %s", path, exc_info=True)
            sections.append(f"#### {path}\n\nUnable to describe the changes in this file.")

    narrative = "\n\n".join(sections) if sections else NO_LOGIC_CHANGES
    if hidden:
        narrative += f"\n\n*... and {hidden} more files not shown for brevity*"

    metrics = TechnicalMetrics(
        total_files=parse_result.total_files,
        lines_added=parse_result.total_added,
        lines_removed=parse_result.total_removed,
        functions=totals.functions,
        classes=totals.classes,
        interfaces=totals.interfaces,
        complexity_score=complexity_score(
            parse_result.total_files, parse_result.total_added, parse_result.total_removed
        ),
    )
    _log.debug(
        "Composed %s summary: %d sections, %d hidden", change_type.value, len(sections), hidden
    )
    return ComposedSummary(
        files_list=_files_list(parse_result, cfg),
        narrative=narrative,
        statistics=_statistics(metrics),
        metrics=metrics,
        narrative_capped=hidden > 0,
    )


def simple_logic_summary(diff_text: str) -> str:
    """First few added definition or import lines, straight from the raw diff."""
    found: list[str] = []
    for line in diff_text.split("\n"):
        if len(found) >= _SIMPLE_SUMMARY_LINES:
            break
        if not line.startswith("+") or line.startswith("+++"):
            continue
        content = line[1:].strip()
        if _SIMPLE_SUMMARY_RE.search(content) and not taggers.is_credential_like(content):
            found.append(content)
    return "\n".join(found) or "Basic functionality changes detected"


def fallback_summary(diff_text: str, parse_result: DiffParseResult) -> ComposedSummary:
    """Minimal summary used when composing fails."""
    metrics = TechnicalMetrics(
        total_files=parse_result.total_files,
        lines_added=parse_result.total_added,
        lines_removed=parse_result.total_removed,
        complexity_score=complexity_score(
            parse_result.total_files, parse_result.total_added, parse_result.total_removed
        ),
    )
    paths = "\n".join(f"- `{p}`" for p in parse_result.paths()) or NO_CHANGES
    return ComposedSummary(
        files_list=paths,
        narrative=f"```\n{simple_logic_summary(diff_text)}\n```",
        statistics=_statistics(metrics),
        metrics=metrics,
    )
