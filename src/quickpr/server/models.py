"""Pydantic models for MCP tool results and prompt context."""

from __future__ import annotations

from pydantic import BaseModel, Field


class GeneratePRResult(BaseModel):
    """``generate_pr`` result payload."""

    message: str
    document: str
    truncated: bool = False
    file_path: str | None = None
    template: str = "default"
    change_type: str = "refactor"
    confidence: float = 0.0
    notes: list[str] = Field(default_factory=list)
    stage_errors: list[str] = Field(default_factory=list)


class TemplateSummary(BaseModel):
    name: str
    description: str = ""


class TemplateList(BaseModel):
    """``list_templates`` result payload."""

    count: int
    items: list[TemplateSummary] = Field(default_factory=list)


class GitContext(BaseModel):
    """Repository state rendered into the ``quick-pr`` prompt."""

    feature_branch: str = ""
    base_branch: str = "main"
    template_type: str = "default"
    diff: str = "No changes detected"
    commits: str = "No commits found"
    status: str = "Working directory clean"
    files: str = "No files changed"
