"""Output size governor for narrow-channel responses.

MCP clients reject tool results above roughly 5000 characters, so documents
returned over the protocol are cut down to a ceiling while the full version
is written to disk.

Dependencies: config.py
Wired in: pipeline.py → govern stage
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from quickpr.config import DEFAULT_RESPONSE_MAX_CHARS

_log = logging.getLogger(__name__)

SECTION_PRIORITY: tuple[str, ...] = (
    "Overview",
    "Type of Change",
    "Changes Description",
    "Checklist",
    "Testing Done",
    "Additional Notes",
)
SECTION_TRUNCATED = "\n\n*[Content truncated for MCP compatibility]*"
TRUNCATION_NOTICE = (
    "\n\n---\n*Note: Full PR document has been generated and saved to file. "
    "This is a truncated version for MCP client compatibility.*"
)
FALLBACK_MARKER = "\n\n*[Content truncated due to length constraints]*"
_MIN_PARTIAL_SECTION = 100
_FENCE = "```"
_SECTION_SPLIT_RE = re.compile(r"^(?=## )", re.MULTILINE)


@dataclass(frozen=True)
class GovernedOutput:
    text: str
    truncated: bool


class _DoesNotFit(Exception):
    """The title block alone exceeds the budget."""


def hard_truncate(document: str, ceiling: int) -> str:
    """Straight character cut with a marker, never longer than *ceiling*."""
    ceiling = max(ceiling, 0)
    if len(document) <= ceiling:
        return document
    if ceiling <= len(FALLBACK_MARKER):
        return document[:ceiling]
    return document[: ceiling - len(FALLBACK_MARKER)] + FALLBACK_MARKER


def _find_section(sections: list[str], name: str) -> str | None:
    wanted = name.lower()
    for section in sections:
        heading = section.split("\n", 1)[0]
        if wanted in heading.lower():
            return section
    return None


def _close_fence(text: str) -> str:
    """Close a code fence left open by a cut so trailing markers render as text."""
    if text.count(_FENCE) % 2:
        return text + "\n" + _FENCE
    return text


def _govern_sections(document: str, ceiling: int) -> str:
    sections = _SECTION_SPLIT_RE.split(document)
    title, body = sections[0], [s for s in sections[1:] if s]
    budget = ceiling - len(TRUNCATION_NOTICE)
    result = title.rstrip("\n") + "\n\n" if title.strip() else ""
    if len(result) > budget:
        raise _DoesNotFit

    for name in SECTION_PRIORITY:
        section = _find_section(body, name)
        if section is None:
            continue
        piece = section.rstrip("\n") + "\n\n"
        remaining = budget - len(result)
        if len(piece) <= remaining:
            result += piece
            continue
        room = remaining - len(SECTION_TRUNCATED) - len(_FENCE) - 2
        if room > _MIN_PARTIAL_SECTION:
            result += _close_fence(section[:room].rstrip()) + SECTION_TRUNCATED + "\n"
        break

    return result.rstrip("\n") + TRUNCATION_NOTICE


def govern_output(document: str, ceiling: int = DEFAULT_RESPONSE_MAX_CHARS) -> GovernedOutput:
    """Fit *document* under *ceiling* characters, keeping the most useful sections.

    The title block is always kept, then top-level ``## `` sections are added
    in priority order (overview, type of change, changes description,
    checklist, testing, additional notes).  The first section that does not
    fit is cut with a marker and nothing after it is added.  Any failure
    falls back to :func:`hard_truncate`; this function does not raise.
    """
    if len(document) <= ceiling:
        return GovernedOutput(document, truncated=False)
    try:
        text = _govern_sections(document, ceiling)
    except _DoesNotFit:
        text = hard_truncate(document, ceiling)
    except Exception:
        _log.warning("Section-aware truncation failed; cutting by length", exc_info=True)
        text = hard_truncate(document, ceiling)
    if len(text) > ceiling:
        text = hard_truncate(document, ceiling)
    return GovernedOutput(text, truncated=True)
