"""Request and result types at the pipeline boundary.

Dependencies: config.py, diff/change_type.py
Wired in: pipeline.py, validation.py, server/mcp_tools.py, cli.py
"""

from __future__ import annotations

from dataclasses import dataclass, field

from quickpr.config import OutputDetail
from quickpr.diff.change_type import ChangeType


@dataclass(frozen=True)
class Screenshots:
    before: str = ""
    after: str = ""

    @property
    def present(self) -> bool:
        return bool(self.before or self.after)


@dataclass(frozen=True)
class GenerationOptions:
    """Caller choices that shape the rendered document."""

    template: str | None = None
    """Template name; ``None`` selects one from the detected change type."""

    detail: OutputDetail | None = None
    """Overrides the configured detail level when set."""

    change_type: ChangeType | None = None
    """Skips change-type detection when set."""

    use_suggested_title: bool = False
    target_branch: str = ""
    base_branch: str = ""


@dataclass(frozen=True)
class PRRequest:
    title: str
    description: str
    diff: str
    screenshots: Screenshots | None = None
    options: GenerationOptions = field(default_factory=GenerationOptions)


@dataclass(frozen=True)
class PRDocument:
    """Full rendered document plus the size-governed variant."""

    full: str
    governed: str
    truncated: bool
    template: str
    change_type: ChangeType
    confidence: float
    notes: tuple[str, ...] = ()
    stage_errors: tuple[str, ...] = ()

    @property
    def degraded(self) -> bool:
        return bool(self.stage_errors)
