"""Bounded unified-diff parser producing per-file change records.

Every call builds its own records; nothing here is shared between calls, so
concurrent tool invocations cannot see each other's state.

Dependencies: diff/lines.py, config.py
Wired in: pipeline.py → prepare_context(), diff/analysis.py
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from quickpr.config import PipelineConfig
from quickpr.diff.lines import LineKind, classify_line, is_binary_marker

_log = logging.getLogger(__name__)


@dataclass
class FileChangeRecord:
    """Changes collected for one file path during a single parse."""

    path: str
    max_lines: int = 1000
    added: list[str] = field(default_factory=lambda: [])
    removed: list[str] = field(default_factory=lambda: [])
    hunks: list[str] = field(default_factory=lambda: [])
    added_count: int = 0
    """Every non-empty added line seen, including ones past the cap or noise."""

    removed_count: int = 0
    binary: bool = False

    def add_line(self, content: str, *, keep: bool = True) -> None:
        """Count an added line and retain it while under the cap."""
        self.added_count += 1
        if keep and len(self.added) < self.max_lines:
            self.added.append(content)

    def remove_line(self, content: str, *, keep: bool = True) -> None:
        """Count a removed line and retain it while under the cap."""
        self.removed_count += 1
        if keep and len(self.removed) < self.max_lines:
            self.removed.append(content)

    def add_hunk(self, label: str) -> None:
        self.hunks.append(f"Changed section: {label}" if label else "Changed section")


@dataclass(frozen=True)
class DiffParseResult:
    """Ordered per-file records plus aggregate line counts."""

    files: Mapping[str, FileChangeRecord] = field(
        default_factory=lambda: MappingProxyType({})
    )
    total_added: int = 0
    total_removed: int = 0
    input_truncated: bool = False
    """True when the input exceeded the byte limit and was cut."""

    dropped_files: int = 0
    """Files seen after ``max_tracked_files`` was reached."""

    @property
    def total_files(self) -> int:
        return len(self.files) + self.dropped_files

    @property
    def is_empty(self) -> bool:
        return not self.files and self.dropped_files == 0

    def paths(self) -> list[str]:
        return list(self.files)


def truncate_to_bytes(text: str, max_bytes: int) -> tuple[str, bool]:
    """Cut *text* to at most *max_bytes* UTF-8 bytes without splitting a codepoint."""
    encoded = text.encode("utf-8", errors="replace")
    if len(encoded) <= max_bytes:
        return text, False
    return encoded[:max_bytes].decode("utf-8", errors="ignore"), True


class _ParseState:
    """Mutable cursor for one parse; discarded when parsing completes."""

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config
        self.files: dict[str, FileChangeRecord] = {}
        self.current: FileChangeRecord | None = None
        self.has_current = False
        self.in_binary = False
        self.total_added = 0
        self.total_removed = 0
        self.dropped: set[str] = set()

    def switch_file(self, path: str) -> None:
        self.in_binary = False
        self.has_current = True
        record = self.files.get(path)
        if record is None and path not in self.dropped:
            if len(self.files) >= self.config.max_tracked_files:
                self.dropped.add(path)
            else:
                record = FileChangeRecord(path=path, max_lines=self.config.max_lines_per_file)
                self.files[path] = record
        self.current = record

    def handle(self, line: str) -> None:
        if self.in_binary and not line.startswith("diff --git"):
            return

        classified = classify_line(line, max_line_length=self.config.max_line_length)
        kind = classified.kind

        if kind is LineKind.FILE_HEADER and classified.path is not None:
            self.switch_file(classified.path)
            return
        if not self.has_current:
            return
        if is_binary_marker(line):
            self.in_binary = True
            if self.current is not None:
                self.current.binary = True
            return
        if kind is LineKind.HUNK_HEADER:
            if self.current is not None:
                self.current.add_hunk(classified.content)
            return
        if not classified.content:
            return
        if kind is LineKind.ADDITION:
            self.total_added += 1
            if self.current is not None:
                self.current.add_line(classified.content, keep=not classified.is_noise)
        elif kind is LineKind.DELETION:
            self.total_removed += 1
            if self.current is not None:
                self.current.remove_line(classified.content, keep=not classified.is_noise)


def parse_diff(diff: str, config: PipelineConfig | None = None) -> DiffParseResult:
    """Parse unified diff text into a :class:`DiffParseResult`.

    Input larger than ``max_total_input_bytes`` is truncated first (reported
    through ``input_truncated``).  Empty or whitespace-only input yields an
    empty result.  A line that fails to process is logged and skipped; it
    never aborts the rest of the parse.  Binary sections are ignored until
    the next file header.
    """
    cfg = config or PipelineConfig()
    if not diff.strip():
        return DiffParseResult()

    text, truncated = truncate_to_bytes(diff, cfg.max_total_input_bytes)
    if truncated:
        _log.warning(
            "Diff exceeds %d bytes; analysing the first %d bytes only",
            cfg.max_total_input_bytes,
            cfg.max_total_input_bytes,
        )

    state = _ParseState(cfg)
    for line in text.split("\n"):
        try:
            state.handle(line.rstrip("\r"))
        except Exception:
            _log.warning("Skipping unprocessable diff line: %.80r", line, exc_info=True)
            continue

    if state.dropped:
        _log.warning(
            "Diff touches more than %d files; %d files were not tracked",
            cfg.max_tracked_files,
            len(state.dropped),
        )

    return DiffParseResult(
        files=MappingProxyType(state.files),
        total_added=state.total_added,
        total_removed=state.total_removed,
        input_truncated=truncated,
        dropped_files=len(state.dropped),
    )
