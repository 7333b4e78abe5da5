"""Tests for the output size governor."""

from __future__ import annotations

import pytest

from quickpr.render import governor
from quickpr.render.governor import (
    FALLBACK_MARKER,
    SECTION_TRUNCATED,
    TRUNCATION_NOTICE,
    govern_output,
    hard_truncate,
)


def _document(description_size: int = 5000) -> str:
    return (
        "# Add invoice export\n\n<!-- Heuristic analysis -->\n\n"
        "## 📝 Additional Notes\n\n- Split into smaller commits next time.\n\n"
        "## 🎯 Overview\n\nExports invoices as CSV.\n\n"
        "## 📋 Type of Change\n\n- [x] ✨ New feature\n\n"
        f"## 🔍 Changes Description\n\n{'x' * description_size}\n\n"
        "## ✅ Checklist\n\n- [ ] Code follows the style guidelines\n\n"
        "## 👥 Reviewers Guide\n\n1. Check implementation approach\n"
    )


def test_short_documents_pass_through_unchanged() -> None:
    document = _document(description_size=10)
    result = govern_output(document, 4800)
    assert result.text == document
    assert not result.truncated


@pytest.mark.parametrize("ceiling", [200, 350, 800, 1500, 4800])
def test_output_never_exceeds_the_ceiling(ceiling: int) -> None:
    for size in (500, 5000, 20_000):
        document = _document(size)
        result = govern_output(document, ceiling)
        assert len(result.text) <= ceiling
        assert result.truncated == (len(document) > ceiling)


def test_priority_sections_are_kept_and_the_overflowing_one_is_cut() -> None:
    result = govern_output(_document(), 1000)
    text = result.text
    assert text.startswith("# Add invoice export")
    assert "## 🎯 Overview" in text
    assert "## 📋 Type of Change" in text
    assert "## 🔍 Changes Description" in text
    assert SECTION_TRUNCATED.strip() in text
    assert "## ✅ Checklist" not in text
    assert "## 👥 Reviewers Guide" not in text
    assert text.endswith(TRUNCATION_NOTICE)
    assert text.index("## 🎯 Overview") < text.index("## 📋 Type of Change")


def test_lower_priority_sections_follow_when_room_allows() -> None:
    document = _document(description_size=200) + "z" * 2000 + "\n"
    result = govern_output(document, 900)
    assert result.truncated
    assert "## ✅ Checklist" in result.text
    assert "## 📝 Additional Notes" in result.text
    assert "## 👥 Reviewers Guide" not in result.text
    assert result.text.index("## ✅ Checklist") < result.text.index("## 📝 Additional Notes")


def test_oversized_title_falls_back_to_hard_truncation() -> None:
    document = "# " + "t" * 3000 + "\n\n## 🎯 Overview\n\nshort\n"
    result = govern_output(document, 500)
    assert len(result.text) == 500
    assert result.text.endswith(FALLBACK_MARKER)


def test_structural_failure_falls_back_to_hard_truncation(monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(document: str, ceiling: int) -> str:
        raise IndexError("unexpected layout")

    monkeypatch.setattr(governor, "_govern_sections", _broken)
    result = govern_output(_document(), 600)
    assert result.truncated
    assert len(result.text) <= 600
    assert result.text.endswith(FALLBACK_MARKER)


def test_hard_truncate() -> None:
    assert hard_truncate("short", 100) == "short"
    cut = hard_truncate("y" * 500, 120)
    assert len(cut) == 120
    assert cut.endswith(FALLBACK_MARKER)
    assert hard_truncate("y" * 500, 10) == "y" * 10


def test_partial_cut_closes_an_open_code_fence() -> None:
    example = "```python\n" + "".join(f"def handler_{i}(request):\n" for i in range(200)) + "```"
    document = _document(description_size=10).replace("x" * 10, example)
    result = govern_output(document, 1200)
    assert result.truncated
    assert len(result.text) <= 1200
    assert SECTION_TRUNCATED.strip() in result.text
    assert result.text.count("```") % 2 == 0
    before_marker = result.text.split(SECTION_TRUNCATED.strip())[0]
    assert before_marker.rstrip().endswith("```")
