"""Tests for template discovery, selection and rendering."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from diff_samples import file_diff

from quickpr.config import OutputDetail, PipelineConfig
from quickpr.diff.analysis import AggregateAnalysisResult, Confidence, fallback_analysis
from quickpr.diff.change_type import ChangeType
from quickpr.diff.parser import parse_diff
from quickpr.models import Screenshots
from quickpr.pipeline import analyze_diff
from quickpr.render.templates import (
    DEFAULT_TEMPLATE,
    available_templates,
    build_template_context,
    change_type_options,
    confidence_comment,
    load_templates,
    parse_template_md,
    render_fallback_document,
    render_template,
    resolve_template_name,
)

_DIFF = file_diff(
    "src/orders.py",
    ["def calculate_total(order):", "    return sum(item.price for item in order.items)"],
)


def _context(
    detail: OutputDetail = OutputDetail.BASIC,
    screenshots: Screenshots | None = None,
    analysis: AggregateAnalysisResult | None = None,
) -> dict[str, object]:
    result = analyze_diff(_DIFF, PipelineConfig(detail=detail))
    return build_template_context(
        title="Add order totals",
        description="Totals are computed server-side.",
        analysis=analysis or result.analysis,
        summary=result.summary,
        detail=detail,
        screenshots=screenshots,
        notes=["Heads up"],
        base_branch="develop",
        generated_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC),
    )


class TestParseTemplateMd:
    def test_frontmatter_split(self) -> None:
        meta, body = parse_template_md("---\nname: x\nenabled: false\n---\n\n# Body\n")
        assert meta == {"name": "x", "enabled": False}
        assert body == "# Body\n"

    def test_no_frontmatter(self) -> None:
        assert parse_template_md("# Just text\n") == ({}, "# Just text\n")

    def test_unclosed_frontmatter_is_body(self) -> None:
        content = "---\nname: x\n# Body\n"
        assert parse_template_md(content) == ({}, content)

    def test_non_mapping_frontmatter_rejected(self) -> None:
        with pytest.raises(ValueError, match="mapping"):
            parse_template_md("---\n- a\n- b\n---\nbody\n")


def test_bundled_templates() -> None:
    templates = load_templates()
    assert {"default", "feature", "bugfix", "refactor", "_base"} <= set(templates)
    names = [t.name for t in available_templates()]
    assert names[0] == DEFAULT_TEMPLATE
    assert sorted(names) == ["bugfix", "default", "feature", "refactor"]


class TestResolveTemplateName:
    def test_explicit_name(self) -> None:
        assert resolve_template_name("Bugfix", ChangeType.FEATURE) == "bugfix"

    @pytest.mark.parametrize("name", ["nonsense", "_base"])
    def test_unknown_falls_back_to_default(self, name: str) -> None:
        assert resolve_template_name(name, ChangeType.FEATURE) == DEFAULT_TEMPLATE

    @pytest.mark.parametrize(
        ("change_type", "expected"),
        [
            (ChangeType.FEATURE, "feature"),
            (ChangeType.HOTFIX, "bugfix"),
            (ChangeType.REFACTOR, "refactor"),
            (ChangeType.DOCS, "default"),
            (ChangeType.SECURITY, "default"),
        ],
    )
    def test_change_type_selects_template(self, change_type: ChangeType, expected: str) -> None:
        assert resolve_template_name(None, change_type) == expected


def test_change_type_options_mark_detected_type() -> None:
    options = change_type_options(ChangeType.FEATURE)
    checked = [o["label"] for o in options if o["checked"]]
    assert len(checked) == 1
    assert "New feature" in str(checked[0])


def test_change_type_options_add_other_for_unlisted_type() -> None:
    options = change_type_options(ChangeType.SECURITY)
    assert options[-1] == {"label": "🔒 Other: Security", "checked": True}


def test_confidence_comment_levels() -> None:
    assert "High-confidence" in confidence_comment(Confidence.HIGH.value)
    assert confidence_comment(Confidence.MEDIUM.value) == "<!-- Heuristic analysis -->"
    assert "manual review" in confidence_comment(Confidence.LOW.value)


@pytest.mark.parametrize("name", ["default", "feature", "bugfix", "refactor"])
def test_every_template_renders_core_sections(name: str) -> None:
    document = render_template(name, _context())
    assert document.startswith("# Add order totals\n")
    for heading in ("Overview", "Type of Change", "Changes Description", "Checklist", "Testing Done"):
        assert f" {heading}\n" in document
    assert "src/orders.py" in document
    assert "- Heads up" in document
    assert "Branch is up to date with develop" in document
    assert "2024-01-02T03:04:05+00:00" in document


def test_named_templates_differ() -> None:
    assert "### Root Cause:" in render_template("bugfix", _context())
    assert "### Rollout:" in render_template("feature", _context())
    assert "### Behaviour Preserved:" in render_template("refactor", _context())
    assert "### Root Cause:" not in render_template("default", _context())


def test_unknown_template_renders_default() -> None:
    assert render_template("nope", _context()) == render_template("default", _context())


def test_detail_sections_are_conditional() -> None:
    basic = render_template("default", _context(OutputDetail.BASIC))
    extended = render_template("default", _context(OutputDetail.EXTENDED))
    security = render_template("default", _context(OutputDetail.SECURITY))
    assert "Technical Metrics" not in basic
    assert "Security Review" not in basic
    assert "| Lines added | 2 |" in extended
    assert "No secrets, tokens or credentials are committed" in security


def test_screenshots_section() -> None:
    without = render_template("default", _context())
    with_shots = render_template(
        "default", _context(screenshots=Screenshots(after="https://example.com/a.png"))
    )
    assert "Visual Changes" not in without
    assert "![After Changes](https://example.com/a.png)" in with_shots
    assert "_No before screenshot provided_" in with_shots


def test_low_confidence_note() -> None:
    analysis = fallback_analysis(parse_diff(_DIFF))
    document = render_template("default", _context(analysis=analysis))
    assert "lower confidence (40%)" in document


def test_fallback_document_is_plain_markdown() -> None:
    document = render_fallback_document("Title", "Why", _DIFF, ["note one"])
    assert document.startswith("# Title\n")
    assert "## 🎯 Overview\n\nWhy" in document
    assert "def calculate_total(order):" in document
    assert "- note one" in document
