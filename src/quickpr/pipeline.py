"""Fault-isolated diff → PR document pipeline.

Stages run in order Parse → Classify → Compose → Render → Govern.  All
state for one call lives in a ``PipelineContext`` created by that call, so
concurrent invocations never share mutable data.  A stage that raises is
logged, recorded in ``context.stage_errors`` and replaced with its fallback
output; the public functions here always return a document.

Dependencies: diff/*, render/*, config.py, models.py, infra/otel_tracing.py
Wired in: server/mcp_tools.py, cli.py
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import TypeVar

from quickpr.config import PipelineConfig
from quickpr.diff import taggers
from quickpr.diff.analysis import (
    AggregateAnalysisResult,
    build_aggregate_analysis,
    fallback_analysis,
)
from quickpr.diff.change_type import (
    ChangeType,
    ChangeTypeDecision,
    DecisionRule,
    decide_change_type,
)
from quickpr.diff.filetypes import is_excluded_path
from quickpr.diff.impact import FileAnalysis, analyze_file
from quickpr.diff.parser import DiffParseResult, parse_diff, truncate_to_bytes
from quickpr.diff.taggers import FileTags
from quickpr.infra.otel_tracing import trace_span
from quickpr.models import GenerationOptions, PRDocument, PRRequest, Screenshots
from quickpr.render.composer import ComposedSummary, compose_summary, fallback_summary
from quickpr.render.governor import govern_output
from quickpr.render.templates import (
    DEFAULT_TEMPLATE,
    build_template_context,
    render_fallback_document,
    render_template,
    resolve_template_name,
)

_log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PipelineContext:
    """Everything one pipeline run reads and writes."""

    config: PipelineConfig
    diff_text: str = ""
    parse_result: DiffParseResult = field(default_factory=DiffParseResult)
    tags: dict[str, FileTags] = field(default_factory=lambda: {})
    analyses: list[FileAnalysis] = field(default_factory=lambda: [])
    analysis: AggregateAnalysisResult | None = None
    summary: ComposedSummary | None = None
    notes: list[str] = field(default_factory=lambda: [])
    stage_errors: list[str] = field(default_factory=lambda: [])

    def add_note(self, note: str) -> None:
        if note not in self.notes:
            self.notes.append(note)

    def combined_tags(self) -> FileTags:
        total = FileTags()
        for file_tags in self.tags.values():
            total = total + file_tags
        return total


@dataclass(frozen=True)
class DiffAnalysis:
    """Structured analysis of a diff without a rendered document."""

    parse_result: DiffParseResult
    files: tuple[FileAnalysis, ...]
    analysis: AggregateAnalysisResult
    summary: ComposedSummary
    notes: tuple[str, ...] = ()
    stage_errors: tuple[str, ...] = ()

    def to_dict(self, max_files: int | None = None) -> dict[str, object]:
        """Serialise the analysis, listing at most *max_files* per-file entries."""
        files = self.files if max_files is None else self.files[: max(max_files, 0)]
        return {
            **self.analysis.to_dict(),
            "statistics": self.summary.metrics.to_dict(),
            "files": [f.to_dict() for f in files],
            "files_omitted": len(self.files) - len(files),
            "input_truncated": self.parse_result.input_truncated,
            "dropped_files": self.parse_result.dropped_files,
            "notes": list(self.notes),
            "stage_errors": list(self.stage_errors),
        }


def run_stage(
    context: PipelineContext,
    name: str,
    stage: Callable[[], T],
    fallback: Callable[[], T],
) -> T:
    """Run *stage*; on any exception log it, record it and return *fallback()*."""
    with trace_span(f"quickpr.pipeline.{name}") as span_attrs:
        try:
            result = stage()
        except Exception as exc:
            _log.exception("Pipeline stage %r failed; using fallback output", name)
            context.stage_errors.append(f"{name}: {type(exc).__name__}: {exc}")
            span_attrs["quickpr.fallback"] = True
            return fallback()
        span_attrs["quickpr.fallback"] = False
        return result


def _parse(context: PipelineContext, diff: str) -> DiffParseResult:
    cfg = context.config
    result = parse_diff(diff, cfg)
    if result.input_truncated:
        context.add_note(
            f"The diff exceeded {cfg.max_total_input_bytes} bytes and only the first part "
            "was analysed. Split your changes into smaller commits for a complete description."
        )
    if result.dropped_files:
        context.add_note(
            f"{result.dropped_files} files beyond the first {cfg.max_tracked_files} were "
            "counted in the totals but not analysed."
        )
    return result


def _classify(
    context: PipelineContext, override: ChangeType | None
) -> AggregateAnalysisResult:
    cfg = context.config
    parse_result = context.parse_result
    analyses: list[FileAnalysis] = []
    for path, record in parse_result.files.items():
        if not is_excluded_path(path, cfg.excluded_path_patterns) and path not in context.tags:
            context.tags[path] = taggers.tag_lines(record.added)
        analyses.append(analyze_file(record, cfg, context.tags.get(path)))
    context.analyses = analyses

    if override is not None:
        decision = ChangeTypeDecision(override, DecisionRule.OVERRIDE)
    else:
        decision = decide_change_type(
            context.diff_text, parse_result.total_added, parse_result.total_removed
        )
    return build_aggregate_analysis(
        parse_result, analyses, decision, context.combined_tags(), context.notes
    )


def _classify_fallback(context: PipelineContext) -> AggregateAnalysisResult:
    context.analyses = []
    return fallback_analysis(context.parse_result)


def _compose(context: PipelineContext, change_type: ChangeType) -> ComposedSummary:
    summary = compose_summary(
        context.parse_result, context.analyses, change_type, context.config, context.tags
    )
    if summary.narrative_capped:
        context.add_note(
            f"Only the first {context.config.max_files_to_deep_process} files are described "
            "in detail; the rest are listed under What Changed."
        )
    return summary


def prepare_context(diff: str, config: PipelineConfig | None = None) -> PipelineContext:
    cfg = config or PipelineConfig()
    text, _ = truncate_to_bytes(diff, cfg.max_total_input_bytes)
    context = PipelineContext(config=cfg, diff_text=text)
    context.parse_result = run_stage(
        context, "parse", lambda: _parse(context, diff), DiffParseResult
    )
    return context


def analyze_context(
    context: PipelineContext, override: ChangeType | None = None
) -> tuple[AggregateAnalysisResult, ComposedSummary]:
    analysis = run_stage(
        context,
        "classify",
        lambda: _classify(context, override),
        lambda: _classify_fallback(context),
    )
    context.analysis = analysis
    summary = run_stage(
        context,
        "compose",
        lambda: _compose(context, analysis.change_type),
        lambda: fallback_summary(context.diff_text, context.parse_result),
    )
    context.summary = summary
    return analysis, summary


def analyze_diff(diff: str, config: PipelineConfig | None = None) -> DiffAnalysis:
    """Parse, classify and compose *diff* without rendering a document."""
    context = prepare_context(diff, config)
    analysis, summary = analyze_context(context)
    return DiffAnalysis(
        parse_result=context.parse_result,
        files=tuple(context.analyses),
        analysis=analysis,
        summary=summary,
        notes=tuple(context.notes),
        stage_errors=tuple(context.stage_errors),
    )


def _effective_config(config: PipelineConfig | None, options: GenerationOptions) -> PipelineConfig:
    cfg = config or PipelineConfig()
    if options.detail is not None and options.detail is not cfg.detail:
        cfg = replace(cfg, detail=options.detail)
    return cfg


def _run(request: PRRequest, config: PipelineConfig | None) -> PRDocument:
    options = request.options
    context = prepare_context(request.diff, _effective_config(config, options))
    analysis, summary = analyze_context(context, options.change_type)

    title = request.title
    if options.use_suggested_title and analysis.suggested_title:
        title = analysis.suggested_title
    template = resolve_template_name(options.template, analysis.change_type)

    def render() -> str:
        variables = build_template_context(
            title=title,
            description=request.description,
            analysis=analysis,
            summary=summary,
            detail=context.config.detail,
            screenshots=request.screenshots,
            notes=context.notes,
            target_branch=options.target_branch,
            base_branch=options.base_branch,
        )
        return render_template(template, variables)

    full = run_stage(
        context,
        "render",
        render,
        lambda: render_fallback_document(
            title, request.description, context.diff_text, context.notes
        ),
    )
    ceiling = context.config.response_max_chars
    with trace_span("quickpr.pipeline.govern", {"quickpr.ceiling": ceiling}):
        governed = govern_output(full, ceiling)

    _log.info(
        "Generated %s PR document (%d chars, template=%s, confidence=%.1f)",
        analysis.change_type.value,
        len(full),
        template,
        analysis.confidence,
    )
    return PRDocument(
        full=full,
        governed=governed.text,
        truncated=governed.truncated,
        template=template,
        change_type=analysis.change_type,
        confidence=analysis.confidence,
        notes=tuple(context.notes),
        stage_errors=tuple(context.stage_errors),
    )


def generate_pr_document(request: PRRequest, config: PipelineConfig | None = None) -> PRDocument:
    """Render the PR document for an already validated *request*.

    Never raises: an unexpected error outside the stage wrappers yields the
    fallback document.
    """
    try:
        return _run(request, config)
    except Exception as exc:
        _log.exception("PR generation failed; returning the fallback document")
        cfg = config or PipelineConfig()
        full = render_fallback_document(request.title, request.description, request.diff[:100_000])
        governed = govern_output(full, cfg.response_max_chars)
        return PRDocument(
            full=full,
            governed=governed.text,
            truncated=governed.truncated,
            template=DEFAULT_TEMPLATE,
            change_type=ChangeType.REFACTOR,
            confidence=fallback_analysis(DiffParseResult()).confidence,
            stage_errors=(f"pipeline: {type(exc).__name__}: {exc}",),
        )


def generate_pr_markdown(
    title: str,
    description: str,
    diff: str,
    screenshots: Screenshots | None = None,
    options: GenerationOptions | None = None,
    config: PipelineConfig | None = None,
) -> str:
    """Full (ungoverned) markdown document for the given inputs."""
    request = PRRequest(
        title=title,
        description=description,
        diff=diff,
        screenshots=screenshots,
        options=options or GenerationOptions(),
    )
    return generate_pr_document(request, config).full
