"""Tests for the bounded unified-diff parser."""

from __future__ import annotations

from diff_samples import file_diff, join_diffs, numbered

from quickpr.config import PipelineConfig
from quickpr.diff.parser import parse_diff, truncate_to_bytes


def test_empty_and_blank_input_yield_no_files() -> None:
    for text in ("", "   \n\t\n"):
        result = parse_diff(text)
        assert result.is_empty
        assert result.total_files == 0
        assert result.total_added == 0


def test_file_order_follows_first_appearance() -> None:
    diff = join_diffs(
        file_diff("src/zeta.py", ["a = 1"]),
        file_diff("src/alpha.py", ["b = 2"]),
        file_diff("src/zeta.py", ["c = 3"]),
        file_diff("src/mid.py", ["d = 4"]),
    )
    result = parse_diff(diff)
    assert result.paths() == ["src/zeta.py", "src/alpha.py", "src/mid.py"]
    assert result.files["src/zeta.py"].added == ["a = 1", "c = 3"]


def test_added_lines_are_capped_exactly() -> None:
    cfg = PipelineConfig(max_lines_per_file=5)
    diff = file_diff("src/big.py", numbered("value_{i} = {i}", 8), numbered("old_{i} = {i}", 7))
    record = parse_diff(diff, cfg).files["src/big.py"]
    assert len(record.added) == 5
    assert len(record.removed) == 5
    assert record.added_count == 8
    assert record.removed_count == 7
    assert record.added[-1] == "value_4 = 4"


def test_totals_count_every_line() -> None:
    diff = join_diffs(
        file_diff("a.py", ["x = 1", "y = 2"], ["x = 0"]),
        file_diff("b.py", ["z = 3"]),
    )
    result = parse_diff(diff)
    assert (result.total_added, result.total_removed) == (3, 1)


def test_parsing_twice_gives_independent_equal_results() -> None:
    diff = file_diff("src/app.py", ["def run():", "    return 1"], ["pass"])
    first = parse_diff(diff)
    second = parse_diff(diff)
    assert first.paths() == second.paths()
    assert first.files["src/app.py"].added == second.files["src/app.py"].added
    assert first.files["src/app.py"] is not second.files["src/app.py"]


def test_hunk_headers_are_recorded() -> None:
    diff = file_diff("src/app.py", ["x = 1"], section="class Service:")
    record = parse_diff(diff).files["src/app.py"]
    assert record.hunks == ["Changed section: class Service:"]


def test_blank_changed_lines_are_ignored() -> None:
    diff = file_diff("src/app.py", ["", "x = 1", "   "])
    result = parse_diff(diff)
    assert result.files["src/app.py"].added == ["x = 1"]
    assert result.total_added == 1


def test_lines_before_any_file_header_are_ignored() -> None:
    diff = "+stray addition\n-stray removal\n" + file_diff("a.py", ["x = 1"])
    result = parse_diff(diff)
    assert result.paths() == ["a.py"]
    assert result.total_added == 1
    assert result.total_removed == 0


def test_malformed_header_does_not_abort_the_parse() -> None:
    diff = (
        file_diff("a.py", ["x = 1"])
        + "diff --git this-is-not-a-header\n"
        + "+y = 2\n"
        + file_diff("b.py", ["z = 3"])
    )
    result = parse_diff(diff)
    assert result.paths() == ["a.py", "b.py"]
    assert result.files["a.py"].added == ["x = 1", "y = 2"]


def test_binary_sections_are_skipped_until_next_header() -> None:
    diff = (
        "diff --git a/logo.png b/logo.png\n"
        "Binary files a/logo.png and b/logo.png differ\n"
        "+not really text\n"
        "-also not text\n"
        + file_diff("src/app.py", ["x = 1"])
    )
    result = parse_diff(diff)
    assert result.files["logo.png"].binary
    assert result.files["logo.png"].added == []
    assert result.files["src/app.py"].added == ["x = 1"]
    assert result.total_added == 1


def test_noise_lines_are_counted_but_not_kept() -> None:
    cfg = PipelineConfig(max_line_length=50)
    diff = file_diff("dist/app.min.js", ["x" * 200, "var a = 1;"])
    result = parse_diff(diff, cfg)
    record = result.files["dist/app.min.js"]
    assert record.added == ["var a = 1;"]
    assert record.added_count == 2
    assert result.total_added == 2


def test_crlf_line_endings() -> None:
    diff = file_diff("a.py", ["x = 1"]).replace("\n", "\r\n")
    result = parse_diff(diff)
    assert result.paths() == ["a.py"]
    assert result.files["a.py"].added == ["x = 1"]


def test_files_past_the_tracking_limit_are_counted_only() -> None:
    cfg = PipelineConfig(max_tracked_files=2)
    diff = join_diffs(*(file_diff(f"f{i}.py", ["x = 1"]) for i in range(4)))
    result = parse_diff(diff, cfg)
    assert result.paths() == ["f0.py", "f1.py"]
    assert result.dropped_files == 2
    assert result.total_files == 4
    assert result.total_added == 4


def test_oversized_input_is_truncated() -> None:
    cfg = PipelineConfig(max_total_input_bytes=300)
    diff = join_diffs(*(file_diff(f"f{i}.py", numbered("x_{i} = 1", 10)) for i in range(5)))
    result = parse_diff(diff, cfg)
    assert result.input_truncated
    assert result.paths()[0] == "f0.py"
    assert "f4.py" not in result.paths()


def test_truncate_to_bytes_keeps_codepoints_whole() -> None:
    text, cut = truncate_to_bytes("héllo", 2)
    assert cut
    assert text == "h"
    assert truncate_to_bytes("plain", 10) == ("plain", False)
