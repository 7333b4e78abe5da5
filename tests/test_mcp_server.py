"""Tests for the FastMCP server wrapper and tool implementations."""

from __future__ import annotations

import json
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from diff_samples import file_diff, join_diffs, numbered

from quickpr.config import MCP_RESPONSE_LIMIT, PipelineConfig
from quickpr.server import mcp_server, mcp_tools

_DIFF = file_diff("src/invoice.py", ["def export_csv(invoice):", "    return render(invoice)"])
_LARGE_DIFF = join_diffs(
    *(
        file_diff(f"src/handlers/module_{n}.py", numbered("def handler_{i}(request):", 40))
        for n in range(40)
    )
)


class _FakeFastMCP:
    def __init__(self, name: str) -> None:
        self.name = name
        self.tools: dict[str, Callable[..., Any]] = {}
        self.prompts: dict[str, Callable[..., Any]] = {}

    def tool(self, *, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def _register(func: Callable[..., Any]) -> Callable[..., Any]:
            self.tools[name] = func
            return func

        return _register

    def prompt(self, *, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def _register(func: Callable[..., Any]) -> Callable[..., Any]:
            self.prompts[name] = func
            return func

        return _register


def _payload(raw: str) -> dict[str, Any]:
    payload: dict[str, Any] = json.loads(raw)
    assert set(payload) == {"type", "data", "meta"}
    return payload


def test_create_mcp_server_registers_tools_and_prompt() -> None:
    server = mcp_server.create_mcp_server(_FakeFastMCP)
    assert isinstance(server, _FakeFastMCP)
    assert server.name == "quickpr"
    assert sorted(server.tools) == ["analyze_diff", "generate_pr", "list_templates"]
    assert list(server.prompts) == ["quick-pr"]


def test_registered_tool_delegates_to_implementation() -> None:
    server = mcp_server.create_mcp_server(_FakeFastMCP, PipelineConfig())
    assert isinstance(server, _FakeFastMCP)
    payload = _payload(server.tools["analyze_diff"](diff=_DIFF))
    assert payload["type"] == "diff.analysis"
    assert payload["meta"]["tool"] == "analyze_diff"


def test_create_mcp_server_without_fastmcp(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mcp_server, "_load_fastmcp_class", lambda: None)
    assert mcp_server.create_mcp_server() is None
    with pytest.raises(RuntimeError, match="fastmcp"):
        mcp_server.run_server(PipelineConfig())


# ---------------------------------------------------------------------------
# generate_pr
# ---------------------------------------------------------------------------


def test_generate_pr_with_supplied_diff_writes_file(tmp_path: Path) -> None:
    raw = mcp_tools.generate_pr(
        PipelineConfig(),
        title="Add invoice export",
        description="Exports invoices as CSV.",
        root_uri=tmp_path.as_uri(),
        diff=_DIFF,
    )
    payload = _payload(raw)
    assert payload["type"] == "pr.generated"
    data = payload["data"]
    assert data["change_type"] == "feature"
    assert data["template"] == "feature"
    assert data["file_path"] == str(tmp_path / "add_invoice_export.md")
    written = (tmp_path / "add_invoice_export.md").read_text(encoding="utf-8")
    assert written.startswith("# Add invoice export\n")
    assert data["document"].startswith("# Add invoice export\n")


def test_generate_pr_without_project_dir_skips_writing() -> None:
    payload = _payload(
        mcp_tools.generate_pr(PipelineConfig(), title="T", description="D", diff=_DIFF)
    )
    assert payload["type"] == "pr.generated"
    assert payload["data"]["file_path"] is None


def test_generate_pr_returns_governed_document(tmp_path: Path) -> None:
    payload = _payload(
        mcp_tools.generate_pr(
            PipelineConfig(response_max_chars=1200),
            title="Big",
            description="d" * 3000,
            root_uri=str(tmp_path),
            diff=_DIFF,
        )
    )
    data = payload["data"]
    assert data["truncated"] is True
    assert len(data["document"]) <= 1200
    assert len((tmp_path / "big.md").read_text(encoding="utf-8")) > 1200


def test_generate_pr_envelope_fits_the_transport_limit() -> None:
    raw = mcp_tools.generate_pr(
        PipelineConfig(), title="Add handlers", description="Adds handlers.", diff=_LARGE_DIFF
    )
    assert len(raw) <= MCP_RESPONSE_LIMIT
    data = _payload(raw)["data"]
    assert data["truncated"] is True
    assert data["document"].startswith("# Add handlers\n")


@pytest.mark.parametrize(
    ("kwargs", "reason"),
    [
        ({"title": "", "description": "D", "diff": _DIFF}, "empty_title"),
        ({"title": "T", "description": "", "diff": _DIFF}, "empty_description"),
        ({"title": "T", "description": "D", "diff": _DIFF, "detail": "loud"}, "invalid_option"),
        ({"title": "T", "description": "D"}, "missing_project_dir"),
        (
            {"title": "T", "description": "D", "diff": _DIFF, "root_uri": "/no/such/dir"},
            "missing_project_dir",
        ),
    ],
)
def test_generate_pr_invalid_params(kwargs: dict[str, Any], reason: str) -> None:
    payload = _payload(mcp_tools.generate_pr(PipelineConfig(), **kwargs))
    assert payload["type"] == "error.invalid_params"
    assert payload["data"]["reason"] == reason
    assert payload["data"]["message"]


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_generate_pr_outside_a_repository_is_a_git_error(tmp_path: Path) -> None:
    payload = _payload(
        mcp_tools.generate_pr(PipelineConfig(), title="T", description="D", root_uri=str(tmp_path))
    )
    assert payload["type"] == "error.git"
    assert "Not a git repository" in payload["data"]["message"]


# ---------------------------------------------------------------------------
# analyze_diff / list_templates
# ---------------------------------------------------------------------------


def test_analyze_returns_structured_analysis() -> None:
    payload = _payload(mcp_tools.analyze(PipelineConfig(), diff=_DIFF, detail="extended"))
    assert payload["type"] == "diff.analysis"
    assert payload["meta"]["source"] == "supplied diff"
    data = payload["data"]
    assert data["change_type"] == "feature"
    assert data["confidence"] in {0.4, 0.6, 0.7, 0.9}
    assert set(data["aspects"]) == {
        "business_logic",
        "architecture",
        "technical_complexity",
        "security",
        "dependencies",
        "risk",
    }


def test_analyze_caps_listed_files_and_fits_the_transport_limit() -> None:
    raw = mcp_tools.analyze(PipelineConfig(), diff=_LARGE_DIFF)
    assert len(raw) <= MCP_RESPONSE_LIMIT
    data = _payload(raw)["data"]
    assert 0 < len(data["files"]) <= 20
    assert data["files_omitted"] == 40 - len(data["files"])
    assert data["statistics"]["total_files"] == 40


def test_analyze_rejects_unknown_detail() -> None:
    payload = _payload(mcp_tools.analyze(PipelineConfig(), diff=_DIFF, detail="loud"))
    assert payload["type"] == "error.invalid_params"


def test_list_templates() -> None:
    payload = _payload(mcp_tools.list_templates())
    assert payload["type"] == "templates.list"
    names = [item["name"] for item in payload["data"]["items"]]
    assert payload["data"]["count"] == len(names) == 4
    assert names[0] == "default"


# ---------------------------------------------------------------------------
# quick-pr prompt
# ---------------------------------------------------------------------------


def test_quick_pr_prompt_uses_supplied_context() -> None:
    text = mcp_tools.quick_pr_prompt(
        PipelineConfig(),
        feature_branch="feature/export",
        base_branch="develop",
        diff_content=_DIFF,
        commit_messages="abc123 Add export",
        files="M\tsrc/invoice.py",
        include_diff="true",
        custom_sections='{"Rollout": "behind a flag"}',
    )
    assert "- Feature Branch: feature/export" in text
    assert "- Base Branch: develop" in text
    assert "abc123 Add export" in text
    assert "**Diff Analysis:**" in text
    assert "### Main Logic Changes" in text
    assert "- Rollout: behind a flag" in text


def test_quick_pr_prompt_defaults() -> None:
    text = mcp_tools.quick_pr_prompt(PipelineConfig(), include_diff="true")
    assert "- Feature Branch: current branch" in text
    assert "- Base Branch: main" in text
    assert "No commits found" in text
    assert "**Diff Analysis:**" not in text


def test_quick_pr_prompt_rejects_non_object_sections() -> None:
    with pytest.raises(ValueError, match="JSON object"):
        mcp_tools.quick_pr_prompt(PipelineConfig(), custom_sections="[1, 2]")
