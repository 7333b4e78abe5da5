"""Implementations behind the FastMCP tools and the ``quick-pr`` prompt.

Every tool returns a JSON envelope ``{"type", "data", "meta"}``.  Input and
git problems come back as ``error.*`` envelopes carrying guidance instead of
raised exceptions.

Dependencies: pipeline.py, validation.py, vcs/git_service.py, io_utils.py,
render/templates.py, server/models.py
Wired in: server/mcp_server.py → _register()
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from quickpr.config import MCP_RESPONSE_LIMIT, OutputDetail, PipelineConfig
from quickpr.io_utils import document_filename, write_document
from quickpr.pipeline import analyze_diff, generate_pr_document
from quickpr.render.governor import govern_output, hard_truncate
from quickpr.render.templates import available_templates
from quickpr.server.models import GeneratePRResult, GitContext, TemplateList, TemplateSummary
from quickpr.validation import InvalidRequest, resolve_project_dir, validate_pr_request
from quickpr.vcs.git_service import GitError, GitRepository, GitSnapshot

_LOG = logging.getLogger(__name__)

PROMPT_DIFF_MAX_CHARS = 20_000
_ASPECT_FALLBACK_CHARS = 200


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def json_envelope(
    envelope_type: str,
    data: dict[str, Any],
    *,
    tool: str,
    meta: dict[str, Any] | None = None,
) -> str:
    envelope_meta: dict[str, Any] = {"tool": tool, "timestamp": _utc_now_iso()}
    if meta:
        envelope_meta.update(meta)
    payload = {"type": envelope_type, "data": data, "meta": envelope_meta}
    return json.dumps(payload, ensure_ascii=False, allow_nan=False)


def invalid_params_envelope(tool: str, invalid: InvalidRequest) -> str:
    return json_envelope(
        "error.invalid_params",
        {"reason": invalid.failure.value, "message": invalid.message},
        tool=tool,
    )


def git_error_envelope(tool: str, error: GitError) -> str:
    return json_envelope("error.git", {"message": str(error)}, tool=tool)


def _collect(
    root_uri: str, base_branch: str | None, tool: str
) -> tuple[Path, GitSnapshot] | str:
    """Resolve the project and read its changes, or return an error envelope."""
    project_dir = resolve_project_dir(root_uri)
    if isinstance(project_dir, InvalidRequest):
        return invalid_params_envelope(tool, project_dir)
    try:
        snapshot = GitRepository(project_dir).collect_changes(base_branch or None)
    except GitError as exc:
        _LOG.warning("git failed for %s: %s", project_dir, exc)
        return git_error_envelope(tool, exc)
    return project_dir, snapshot


def _generated_envelope(
    result: GeneratePRResult, full: str, config: PipelineConfig, tool: str
) -> str:
    """Serialise *result*, re-governing the document until the envelope fits.

    JSON escaping and the envelope fields add to the governed document, so the
    ceiling is lowered by the measured overflow until the whole response is
    within :data:`MCP_RESPONSE_LIMIT`.
    """
    raw = json_envelope("pr.generated", result.model_dump(), tool=tool)
    if len(raw) <= MCP_RESPONSE_LIMIT:
        return raw
    empty = result.model_copy(update={"document": ""})
    overhead = len(json_envelope("pr.generated", empty.model_dump(), tool=tool))
    ceiling = min(config.response_max_chars, MCP_RESPONSE_LIMIT - overhead)
    while True:
        governed = govern_output(full, max(ceiling, 0))
        fitted = result.model_copy(
            update={"document": governed.text, "truncated": governed.truncated}
        )
        raw = json_envelope("pr.generated", fitted.model_dump(), tool=tool)
        overflow = len(raw) - MCP_RESPONSE_LIMIT
        if overflow <= 0 or ceiling <= 0:
            break
        ceiling -= overflow
    if overflow > 0:
        _LOG.warning("generate_pr response is %d chars over the limit", overflow)
    return raw


def _analysis_envelope(data: dict[str, Any], tool: str, source: str) -> str:
    """Serialise an analysis, dropping list entries until the envelope fits."""
    meta = {"source": source}
    raw = json_envelope("diff.analysis", data, tool=tool, meta=meta)
    for key, omitted_key in (
        ("files", "files_omitted"),
        ("potentially_unnecessary_files", None),
    ):
        while len(raw) > MCP_RESPONSE_LIMIT and data[key]:
            items: list[Any] = data[key]
            keep = len(items) // 2
            data[key] = items[:keep]
            if omitted_key is not None:
                data[omitted_key] += len(items) - keep
            raw = json_envelope("diff.analysis", data, tool=tool, meta=meta)
    if len(raw) > MCP_RESPONSE_LIMIT:
        data["aspects"] = {
            name: hard_truncate(text, _ASPECT_FALLBACK_CHARS)
            for name, text in data["aspects"].items()
        }
        raw = json_envelope("diff.analysis", data, tool=tool, meta=meta)
    return raw


def generate_pr(
    config: PipelineConfig,
    *,
    title: str,
    description: str,
    root_uri: str = "",
    diff: str | None = None,
    base_branch: str | None = None,
    template: str | None = None,
    detail: str | None = None,
    change_type: str | None = None,
    screenshot_before: str | None = None,
    screenshot_after: str | None = None,
    use_suggested_title: bool = False,
    write_file: bool = True,
) -> str:
    """Generate a PR document from git state (or a supplied diff)."""
    tool = "generate_pr"
    checked = validate_pr_request(
        title,
        description,
        diff if diff is not None else "",
        screenshot_before=screenshot_before,
        screenshot_after=screenshot_after,
        template=template,
        detail=detail,
        change_type=change_type,
        use_suggested_title=use_suggested_title,
    )
    if isinstance(checked, InvalidRequest):
        return invalid_params_envelope(tool, checked)
    request = checked.request

    project_dir: Path | None = None
    local_changes = False
    source = "supplied diff"
    if diff is None:
        collected = _collect(root_uri, base_branch, tool)
        if isinstance(collected, str):
            return collected
        project_dir, snapshot = collected
        if not snapshot.has_changes:
            return git_error_envelope(
                tool,
                GitError(
                    f"No changes found to generate a PR for ({snapshot.describe()}). "
                    "Commit, stage or edit files first."
                ),
            )
        local_changes = snapshot.local_changes
        source = snapshot.describe()
        request = replace(
            request,
            diff=snapshot.diff,
            options=replace(
                request.options,
                target_branch=snapshot.current_branch,
                base_branch=snapshot.base_branch,
            ),
        )
    elif root_uri:
        resolved = resolve_project_dir(root_uri)
        if isinstance(resolved, InvalidRequest):
            return invalid_params_envelope(tool, resolved)
        project_dir = resolved

    document = generate_pr_document(request, config)

    file_path: Path | None = None
    if write_file and project_dir is not None:
        filename = document_filename(request.title, local_changes)
        try:
            file_path = write_document(project_dir, filename, document.full)
        except OSError as exc:
            _LOG.warning("Could not write %s: %s", filename, exc)
            return json_envelope(
                "error.io",
                {"message": f"Could not write {filename} in {project_dir}: {exc}"},
                tool=tool,
            )

    result = GeneratePRResult(
        message=f"PR document generated successfully for {source}",
        document=document.governed,
        truncated=document.truncated,
        file_path=str(file_path) if file_path is not None else None,
        template=document.template,
        change_type=document.change_type.value,
        confidence=document.confidence,
        notes=list(document.notes),
        stage_errors=list(document.stage_errors),
    )
    return _generated_envelope(result, document.full, config, tool)


def analyze(
    config: PipelineConfig,
    *,
    diff: str | None = None,
    root_uri: str = "",
    base_branch: str | None = None,
    detail: str | None = None,
) -> str:
    """Structured, rule-based analysis of a diff without rendering a document."""
    tool = "analyze_diff"
    try:
        if detail:
            config = replace(config, detail=OutputDetail.parse(detail))
    except ValueError as exc:
        return json_envelope(
            "error.invalid_params", {"reason": "invalid_option", "message": str(exc)}, tool=tool
        )

    source = "supplied diff"
    if diff is None:
        collected = _collect(root_uri, base_branch, tool)
        if isinstance(collected, str):
            return collected
        _, snapshot = collected
        diff = snapshot.diff
        source = snapshot.describe()

    result = analyze_diff(diff, config)
    data = result.to_dict(max_files=config.max_files_to_deep_process)
    return _analysis_envelope(data, tool, source)


def list_templates() -> str:
    items = [TemplateSummary(name=t.name, description=t.description) for t in available_templates()]
    payload = TemplateList(count=len(items), items=items)
    return json_envelope("templates.list", payload.model_dump(), tool="list_templates")


def _prompt_context(
    root_uri: str,
    *,
    feature_branch: str,
    base_branch: str,
    template_type: str,
    diff_content: str,
    commit_messages: str,
    status: str,
    files: str,
) -> GitContext:
    context = GitContext(
        feature_branch=feature_branch,
        base_branch=base_branch or "main",
        template_type=template_type or "default",
    )
    needs_git = not (diff_content and commit_messages and files and feature_branch)
    if needs_git and root_uri:
        project_dir = resolve_project_dir(root_uri)
        if isinstance(project_dir, InvalidRequest):
            raise ValueError(project_dir.message)
        snapshot = GitRepository(project_dir).collect_changes(base_branch or None)
        context = context.model_copy(
            update={
                "feature_branch": feature_branch or snapshot.current_branch,
                "base_branch": base_branch or snapshot.base_branch,
                "diff": snapshot.diff.strip() or context.diff,
                "commits": snapshot.commits.strip() or context.commits,
                "files": snapshot.files.strip() or context.files,
            }
        )
    updates = {
        key: value
        for key, value in (
            ("diff", diff_content),
            ("commits", commit_messages),
            ("status", status),
            ("files", files),
        )
        if value
    }
    return context.model_copy(update=updates) if updates else context


def quick_pr_prompt(
    config: PipelineConfig,
    *,
    root_uri: str = "",
    feature_branch: str = "",
    base_branch: str = "",
    template_type: str = "",
    diff_content: str = "",
    commit_messages: str = "",
    status: str = "",
    files: str = "",
    include_diff: str = "false",
    custom_sections: str = "",
) -> str:
    """User message asking the client model to write a PR from git context."""
    sections: dict[str, Any] = {}
    if custom_sections.strip():
        loaded: object = json.loads(custom_sections)
        if not isinstance(loaded, dict):
            raise ValueError("customSections must be a JSON object.")
        sections = dict(loaded)  # pyright: ignore[reportUnknownArgumentType]

    context = _prompt_context(
        root_uri,
        feature_branch=feature_branch,
        base_branch=base_branch,
        template_type=template_type,
        diff_content=diff_content,
        commit_messages=commit_messages,
        status=status,
        files=files,
    )
    lines = [
        "Generate a professional PR request with an appropriate title, description, and checklist.",
        "",
        "**Branch Information:**",
        f"- Feature Branch: {context.feature_branch or 'current branch'}",
        f"- Base Branch: {context.base_branch}",
        f"- Template Type: {context.template_type}",
        "",
        "**Git Data:**",
        f"- Commit Messages:\n{context.commits}",
        f"- Files Changed:\n{context.files}",
        f"- Status: {context.status}",
        f"- Diff Content:\n```diff\n{hard_truncate(context.diff, PROMPT_DIFF_MAX_CHARS)}\n```",
    ]
    if include_diff.strip().lower() in {"true", "1", "yes"} and context.diff != GitContext().diff:
        analysis = analyze_diff(context.diff, config)
        lines += ["", "**Diff Analysis:**", analysis.summary.to_markdown()]
    if sections:
        lines += ["", "**Custom Sections:**"]
        lines += [f"- {name}: {value}" for name, value in sections.items()]
    lines += ["", "Please generate a comprehensive PR request based on this information."]
    return "\n".join(lines)
