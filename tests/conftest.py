"""Shared test fixtures for quickpr."""

from __future__ import annotations

import pytest

from quickpr.config import PipelineConfig

_QUICKPR_ENV = (
    "QUICKPR_CONFIG",
    "QUICKPR_DETAIL",
    "QUICKPR_MAX_DIFF_BYTES",
    "QUICKPR_MAX_LINES_PER_FILE",
    "QUICKPR_MAX_FILES",
    "QUICKPR_RESPONSE_MAX_CHARS",
    "QUICKPR_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_quickpr_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer QUICKPR_* settings out of the tests."""
    for name in _QUICKPR_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def config() -> PipelineConfig:
    """Default pipeline configuration."""
    return PipelineConfig()
