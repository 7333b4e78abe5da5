"""Markdown PR templates: discovery, context building and rendering.

Templates live in ``quickpr/templates/*.md``.  Each file starts with a YAML
frontmatter block (``name``, ``description``, ``enabled``) followed by a
Jinja2 body.  ``_base.md`` holds the shared layout; the named templates
extend it and override a few blocks.

Dependencies: diff/analysis.py, render/composer.py, models.py
Wired in: pipeline.py → render stage, server/mcp_tools.py → list_templates
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import cache
from importlib import resources
from typing import Any, cast

import yaml
from jinja2 import DictLoader, Environment, StrictUndefined

from quickpr.config import OutputDetail
from quickpr.diff.analysis import AggregateAnalysisResult, Aspect, Confidence
from quickpr.diff.change_type import ChangeType
from quickpr.models import Screenshots
from quickpr.render.composer import ComposedSummary, simple_logic_summary

_log = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "default"
BASE_TEMPLATE = "_base"

_CHANGE_TYPE_OPTIONS: tuple[tuple[tuple[ChangeType, ...], str], ...] = (
    ((ChangeType.BUGFIX, ChangeType.HOTFIX), "🐛 Bug fix (non-breaking change which fixes an issue)"),
    ((ChangeType.FEATURE,), "✨ New feature (non-breaking change which adds functionality)"),
    (
        (ChangeType.BREAKING_CHANGE,),
        "💥 Breaking change (fix or feature that would cause existing functionality "
        "to not work as expected)",
    ),
    ((ChangeType.DOCS,), "📚 Documentation update"),
    ((ChangeType.REFACTOR,), "♻️ Code refactoring (no functional changes, no api changes)"),
    ((ChangeType.PERFORMANCE,), "⚡ Performance improvements"),
)
_CHANGE_TYPE_EMOJI: dict[ChangeType, str] = {
    ChangeType.BUGFIX: "🐛",
    ChangeType.HOTFIX: "🚑",
    ChangeType.FEATURE: "✨",
    ChangeType.REFACTOR: "♻️",
    ChangeType.DOCS: "📚",
    ChangeType.PERFORMANCE: "⚡",
    ChangeType.SECURITY: "🔒",
    ChangeType.TESTING: "🧪",
    ChangeType.STYLE: "💄",
    ChangeType.CONFIG: "🔧",
    ChangeType.DEPENDENCY: "📦",
    ChangeType.BREAKING_CHANGE: "💥",
}
_TEMPLATE_FOR_CHANGE_TYPE: dict[ChangeType, str] = {
    ChangeType.FEATURE: "feature",
    ChangeType.BUGFIX: "bugfix",
    ChangeType.HOTFIX: "bugfix",
    ChangeType.REFACTOR: "refactor",
}


@dataclass(frozen=True)
class TemplateInfo:
    name: str
    description: str
    enabled: bool
    body: str

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "description": self.description}


def parse_template_md(content: str) -> tuple[dict[str, Any], str]:
    """Split a template file into (frontmatter dict, Jinja2 body)."""
    lines = content.splitlines(keepends=True)
    if not lines or lines[0].strip() != "---":
        return {}, content

    closing_idx: int | None = None
    for idx, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            closing_idx = idx
            break
    if closing_idx is None:
        return {}, content

    frontmatter_yaml = "".join(lines[1:closing_idx]).strip()
    body = "".join(lines[closing_idx + 1 :]).lstrip("\n")

    loaded: object = yaml.safe_load(frontmatter_yaml) if frontmatter_yaml else {}
    if not isinstance(loaded, dict):
        raise ValueError("Template frontmatter must be a mapping.")
    return cast(dict[str, Any], loaded), body


@cache
def load_templates() -> dict[str, TemplateInfo]:
    """Read every bundled template once per process."""
    templates: dict[str, TemplateInfo] = {}
    root = resources.files("quickpr") / "templates"
    for entry in sorted(root.iterdir(), key=lambda e: e.name):
        if not entry.name.endswith(".md"):
            continue
        frontmatter, body = parse_template_md(entry.read_text(encoding="utf-8"))
        name = str(frontmatter.get("name") or entry.name.removesuffix(".md"))
        templates[name] = TemplateInfo(
            name=name,
            description=str(frontmatter.get("description", "")),
            enabled=bool(frontmatter.get("enabled", True)),
            body=body,
        )
    if DEFAULT_TEMPLATE not in templates:
        raise RuntimeError("Bundled 'default' template is missing.")
    return templates


def available_templates() -> list[TemplateInfo]:
    """Enabled, user-selectable templates (``default`` first)."""
    templates = load_templates()
    names = [
        name
        for name, info in templates.items()
        if info.enabled and not name.startswith("_") and name != DEFAULT_TEMPLATE
    ]
    return [templates[DEFAULT_TEMPLATE], *(templates[n] for n in sorted(names))]


def resolve_template_name(requested: str | None, change_type: ChangeType) -> str:
    """Pick the template to render.

    An explicit name wins when it is known and enabled; otherwise ``default``.
    With no name, the change type selects its matching template.
    """
    selectable = {info.name for info in available_templates()}
    if requested and requested.strip():
        name = requested.strip().lower()
        if name in selectable:
            return name
        _log.info("Unknown template %r; using %r", requested, DEFAULT_TEMPLATE)
        return DEFAULT_TEMPLATE
    candidate = _TEMPLATE_FOR_CHANGE_TYPE.get(change_type, DEFAULT_TEMPLATE)
    return candidate if candidate in selectable else DEFAULT_TEMPLATE


def build_environment() -> Environment:
    loader = DictLoader({f"{name}.md": info.body for name, info in load_templates().items()})
    return Environment(
        loader=loader,
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def confidence_comment(confidence: float) -> str:
    if confidence >= Confidence.HIGH.value:
        return "<!-- High-confidence analysis -->"
    if confidence >= Confidence.MEDIUM.value:
        return "<!-- Heuristic analysis -->"
    return "<!-- Heuristic analysis, manual review recommended -->"


def change_type_options(change_type: ChangeType) -> list[dict[str, object]]:
    options: list[dict[str, object]] = [
        {"label": label, "checked": change_type in members}
        for members, label in _CHANGE_TYPE_OPTIONS
    ]
    if not any(option["checked"] for option in options):
        emoji = _CHANGE_TYPE_EMOJI.get(change_type, "🔄")
        options.append({"label": f"{emoji} Other: {change_type.title}", "checked": True})
    return options


def build_template_context(
    *,
    title: str,
    description: str,
    analysis: AggregateAnalysisResult,
    summary: ComposedSummary,
    detail: OutputDetail,
    screenshots: Screenshots | None = None,
    notes: Sequence[str] = (),
    target_branch: str = "",
    base_branch: str = "",
    generated_at: datetime | None = None,
) -> dict[str, object]:
    """Every variable the templates reference; ``StrictUndefined`` rejects gaps."""
    shots = screenshots or Screenshots()
    stamp = (generated_at or datetime.now(UTC)).isoformat(timespec="seconds")
    return {
        "title": title,
        "description": description,
        "confidence_comment": confidence_comment(analysis.confidence),
        "confidence_percent": round(analysis.confidence * 100),
        "low_confidence": analysis.is_low_confidence,
        "change_type": analysis.change_type.value,
        "change_type_emoji": _CHANGE_TYPE_EMOJI.get(analysis.change_type, "🔄"),
        "change_type_options": change_type_options(analysis.change_type),
        "project_type": analysis.project_type,
        "summary": summary,
        "metrics": summary.metrics,
        "key_points": list(analysis.key_points),
        "aspects": {aspect.value: analysis.aspect(aspect) for aspect in Aspect},
        "unnecessary_files": list(analysis.potentially_unnecessary_files),
        "detail": detail.value,
        "screenshots": {"before": shots.before, "after": shots.after, "present": shots.present},
        "notes": list(notes),
        "target_branch": target_branch,
        "base_branch": base_branch,
        "generated_at": stamp,
    }


def render_template(name: str, context: Mapping[str, object]) -> str:
    """Render template *name*; unknown names render ``default``."""
    templates = load_templates()
    if name not in templates or name.startswith("_"):
        _log.info("Unknown template %r; using %r", name, DEFAULT_TEMPLATE)
        name = DEFAULT_TEMPLATE
    env = build_environment()
    return env.get_template(f"{name}.md").render(**context)


def render_fallback_document(
    title: str,
    description: str,
    diff_text: str,
    notes: Sequence[str] = (),
) -> str:
    """Minimal document built without Jinja2, used when rendering fails."""
    parts = [
        f"# {title}",
        f"## 🎯 Overview\n\n{description}",
        "## 🔄 Changes Preview\n\n### Implementation Details:\n\n"
        f"```\n{simple_logic_summary(diff_text)}\n```\n\n"
        "**Key Implementation Points:**\n- Core functionality changes detected",
    ]
    if notes:
        parts.append("## 📝 Additional Notes\n\n" + "\n".join(f"- {note}" for note in notes))
    return "\n\n".join(parts) + "\n"
