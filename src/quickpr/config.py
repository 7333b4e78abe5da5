"""Pipeline configuration loading and TOML parsing.

A single ``PipelineConfig`` carries every bound the diff pipeline enforces
(bytes, lines, files) plus the output detail level.  Configs come from an
optional ``quickpr.toml`` file (``[pipeline]`` table) with environment
variables layered on top.  When no file exists the defaults are used.

Dependencies: (none — leaf module)
Wired in: cli.py → main(), pipeline.py, server/mcp_server.py
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import cast

DEFAULT_MAX_TOTAL_INPUT_BYTES = 5 * 1024 * 1024
"""Diffs larger than this (5 MB) are cut before parsing."""

DEFAULT_RESPONSE_MAX_CHARS = 4800
"""Ceiling for documents returned over MCP (clients cap at 5000)."""

MCP_RESPONSE_LIMIT = 5000
"""Hard cap on a serialised tool response, envelope included."""

DEFAULT_EXCLUDED_PATH_PATTERNS: tuple[str, ...] = (
    "node_modules/",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "Cargo.lock",
    "go.sum",
    "*.lock",
    "*.log",
    "*.env",
    ".env",
    ".env.*",
    "*.min.js",
    "*.min.css",
    "dist/",
    "build/",
)


class OutputDetail(Enum):
    """How much technical detail the rendered document carries."""

    BASIC = "basic"
    EXTENDED = "extended"
    SECURITY = "security"

    @classmethod
    def parse(cls, raw: str | None) -> OutputDetail:
        """Parse a user-supplied detail name, defaulting to ``BASIC``."""
        if raw is None or not raw.strip():
            return cls.BASIC
        try:
            return cls(raw.strip().lower())
        except ValueError:
            msg = f"Unknown detail level {raw!r}. Must be one of {[d.value for d in cls]}."
            raise ValueError(msg) from None


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable bounds and output options for one pipeline run."""

    max_lines_per_file: int = 1000
    """Per-file cap on retained added (and removed) lines."""

    max_files_to_deep_process: int = 20
    """Files expanded into the narrative before collapsing into a notice."""

    max_total_input_bytes: int = DEFAULT_MAX_TOTAL_INPUT_BYTES
    """Diff input is truncated to this many UTF-8 bytes."""

    max_tracked_files: int = 1000
    """Files beyond this count are tallied but get no change record."""

    max_line_length: int = 500
    """Longer lines are treated as minified/generated noise."""

    max_listed_files: int = 100
    """Paths shown in the flat changed-files list."""

    max_examples_per_file: int = 2
    """Representative example lines per narrative section."""

    response_max_chars: int = DEFAULT_RESPONSE_MAX_CHARS
    """Character ceiling applied by the output size governor."""

    detail: OutputDetail = OutputDetail.BASIC
    """Output detail level (basic / extended metrics / security-focused)."""

    excluded_path_patterns: tuple[str, ...] = field(
        default_factory=lambda: DEFAULT_EXCLUDED_PATH_PATTERNS
    )
    """Path patterns left out of the narrative (still counted in statistics)."""

    def __post_init__(self) -> None:
        for name in (
            "max_lines_per_file",
            "max_files_to_deep_process",
            "max_total_input_bytes",
            "max_tracked_files",
            "max_line_length",
            "max_listed_files",
            "max_examples_per_file",
            "response_max_chars",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                msg = f"{name} must be a positive integer, got {value!r}"
                raise ValueError(msg)


_INT_FIELDS = frozenset(
    {
        "max_lines_per_file",
        "max_files_to_deep_process",
        "max_total_input_bytes",
        "max_tracked_files",
        "max_line_length",
        "max_listed_files",
        "max_examples_per_file",
        "response_max_chars",
    }
)

_ENV_OVERRIDES: dict[str, str] = {
    "QUICKPR_MAX_DIFF_BYTES": "max_total_input_bytes",
    "QUICKPR_MAX_LINES_PER_FILE": "max_lines_per_file",
    "QUICKPR_MAX_FILES": "max_files_to_deep_process",
    "QUICKPR_RESPONSE_MAX_CHARS": "response_max_chars",
}


def _parse_int_env(var_name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        msg = f"{var_name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if value <= 0:
        msg = f"{var_name} must be positive, got {value}"
        raise ValueError(msg)
    return value


def _parse_pipeline_table(raw: dict[str, object]) -> dict[str, object]:
    """Validate a ``[pipeline]`` TOML table into ``PipelineConfig`` kwargs."""
    kwargs: dict[str, object] = {}
    for key, value in raw.items():
        if key in _INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                msg = f"pipeline.{key} must be an integer, got {value!r}"
                raise TypeError(msg)
            kwargs[key] = value
        elif key == "detail":
            kwargs["detail"] = OutputDetail.parse(str(value))
        elif key == "excluded_path_patterns":
            if not isinstance(value, list):
                msg = "pipeline.excluded_path_patterns must be a list."
                raise TypeError(msg)
            kwargs[key] = tuple(str(p) for p in cast(list[object], value))
        else:
            msg = f"Unknown pipeline setting {key!r}."
            raise ValueError(msg)
    return kwargs


def apply_env_overrides(config: PipelineConfig) -> PipelineConfig:
    """Return *config* with ``QUICKPR_*`` environment overrides applied.

    Blank variables are ignored.  Invalid values raise ``ValueError`` naming
    the offending variable.
    """
    updates: dict[str, object] = {}
    for var_name, field_name in _ENV_OVERRIDES.items():
        raw = os.getenv(var_name, "")
        if raw.strip():
            updates[field_name] = _parse_int_env(var_name, raw.strip())
    raw_detail = os.getenv("QUICKPR_DETAIL", "")
    if raw_detail.strip():
        updates["detail"] = OutputDetail.parse(raw_detail)
    if not updates:
        return config
    return replace(config, **updates)  # type: ignore[arg-type]


def load_pipeline_config(config_path: Path | None = None) -> PipelineConfig:
    """Load pipeline configuration from TOML plus environment overrides.

    The path is resolved from *config_path*, then ``$QUICKPR_CONFIG``.  A
    missing file (or no path at all) yields the defaults.
    """
    path = config_path
    if path is None:
        env_path = os.getenv("QUICKPR_CONFIG", "")
        path = Path(env_path) if env_path.strip() else None

    config = PipelineConfig()
    if path is not None and path.is_file():
        with path.open("rb") as fh:
            data = tomllib.load(fh)
        raw_table = data.get("pipeline")
        if isinstance(raw_table, dict):
            kwargs = _parse_pipeline_table(cast(dict[str, object], raw_table))
            config = PipelineConfig(**kwargs)  # type: ignore[arg-type]

    return apply_env_overrides(config)
