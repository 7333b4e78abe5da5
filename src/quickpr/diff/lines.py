"""Single-line classification for unified diffs.

Dependencies: (none — leaf module)
Wired in: diff/parser.py → parse_diff()
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

DEFAULT_MAX_LINE_LENGTH = 500

_FILE_HEADER_PREFIX = "diff --git"
_FILE_HEADER_RE = re.compile(r'^diff --git "?a/(.*?)"? "?b/(.*?)"?$')
_HUNK_RANGE_RE = re.compile(r"^@@\s+-\d+(?:,\d+)?\s+\+\d+(?:,\d+)?\s+@@")
_BINARY_MARKERS = ("Binary files ", "GIT binary patch")


class LineKind(Enum):
    """Category of one raw diff line."""

    FILE_HEADER = "file_header"
    HUNK_HEADER = "hunk_header"
    ADDITION = "addition"
    DELETION = "deletion"
    CONTEXT = "context"
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedLine:
    """Result of classifying a single diff line."""

    kind: LineKind
    content: str = ""
    """Trimmed content for additions/deletions, hunk label for hunk headers."""

    path: str | None = None
    """The ``a/`` path for file headers."""

    is_noise: bool = False
    """True when the line exceeds the length limit (minified or generated)."""


def parse_file_header(line: str) -> str | None:
    """Return the ``a/`` path of a ``diff --git`` header, or ``None``."""
    match = _FILE_HEADER_RE.match(line.rstrip("\r"))
    if match is None or not match.group(1):
        return None
    return match.group(1)


def hunk_label(line: str) -> str:
    """Strip the ``@@ -a,b +c,d @@`` range, leaving the section label."""
    return _HUNK_RANGE_RE.sub("", line, count=1).strip()


def is_binary_marker(line: str) -> bool:
    """True for the markers git emits in place of binary file content."""
    return any(line.startswith(marker) for marker in _BINARY_MARKERS)


def classify_line(line: str, *, max_line_length: int = DEFAULT_MAX_LINE_LENGTH) -> ClassifiedLine:
    """Classify *line* by its leading marker.

    Rules are checked in priority order: file header, hunk header, addition
    (``+`` but not ``+++``), deletion (``-`` but not ``---``).  Everything else
    is context or other and carries no content.  A file header whose paths do
    not parse is reported as ``OTHER`` so the caller keeps its current file.
    """
    if line.startswith(_FILE_HEADER_PREFIX):
        path = parse_file_header(line)
        if path is None:
            return ClassifiedLine(LineKind.OTHER)
        return ClassifiedLine(LineKind.FILE_HEADER, path=path)

    if line.startswith("@@"):
        return ClassifiedLine(LineKind.HUNK_HEADER, content=hunk_label(line))

    is_noise = len(line) > max_line_length
    if line.startswith("+") and not line.startswith("+++"):
        return ClassifiedLine(LineKind.ADDITION, content=line[1:].strip(), is_noise=is_noise)
    if line.startswith("-") and not line.startswith("---"):
        return ClassifiedLine(LineKind.DELETION, content=line[1:].strip(), is_noise=is_noise)

    if line.startswith(" "):
        return ClassifiedLine(LineKind.CONTEXT)
    return ClassifiedLine(LineKind.OTHER)
