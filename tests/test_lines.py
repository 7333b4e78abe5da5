"""Tests for single-line diff classification."""

from __future__ import annotations

from quickpr.diff.lines import (
    LineKind,
    classify_line,
    hunk_label,
    is_binary_marker,
    parse_file_header,
)


def test_file_header_yields_a_path() -> None:
    result = classify_line("diff --git a/src/app.py b/src/app.py")
    assert result.kind is LineKind.FILE_HEADER
    assert result.path == "src/app.py"


def test_quoted_file_header_paths() -> None:
    assert parse_file_header('diff --git "a/docs/my file.md" "b/docs/my file.md"') == "docs/my file.md"


def test_unparseable_file_header_is_other() -> None:
    result = classify_line("diff --git garbage")
    assert result.kind is LineKind.OTHER
    assert result.path is None


def test_hunk_header_keeps_section_label() -> None:
    result = classify_line("@@ -10,4 +10,6 @@ def handle(request):")
    assert result.kind is LineKind.HUNK_HEADER
    assert result.content == "def handle(request):"
    assert hunk_label("@@ -1 +1 @@") == ""


def test_additions_and_deletions_are_trimmed() -> None:
    added = classify_line("+    return total  ")
    removed = classify_line("-    return 0")
    assert (added.kind, added.content) == (LineKind.ADDITION, "return total")
    assert (removed.kind, removed.content) == (LineKind.DELETION, "return 0")


def test_file_markers_are_not_changes() -> None:
    assert classify_line("+++ b/src/app.py").kind is LineKind.OTHER
    assert classify_line("--- a/src/app.py").kind is LineKind.OTHER


def test_context_and_other_lines_have_no_content() -> None:
    assert classify_line(" unchanged").kind is LineKind.CONTEXT
    assert classify_line("index 1111111..2222222 100644").kind is LineKind.OTHER
    assert classify_line(" unchanged").content == ""


def test_overlong_lines_are_flagged_as_noise() -> None:
    short = classify_line("+x = 1", max_line_length=10)
    long = classify_line("+" + "x" * 20, max_line_length=10)
    assert not short.is_noise
    assert long.is_noise
    assert long.kind is LineKind.ADDITION


def test_binary_markers() -> None:
    assert is_binary_marker("Binary files a/logo.png and b/logo.png differ")
    assert is_binary_marker("GIT binary patch")
    assert not is_binary_marker("+Binary files are fun")
