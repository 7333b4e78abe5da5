"""FastMCP server exposing PR generation tools and the ``quick-pr`` prompt."""

from __future__ import annotations

import logging
from importlib import import_module
from typing import Any, Literal, cast

from quickpr.config import PipelineConfig
from quickpr.server import mcp_tools

_LOG = logging.getLogger(__name__)

SERVER_NAME = "quickpr"
Transport = Literal["stdio", "http"]


def _load_fastmcp_class() -> type[Any] | None:
    try:
        module = import_module("fastmcp")
    except ModuleNotFoundError:
        _LOG.warning("fastmcp is not installed. Run `pip install quickpr` to enable the server.")
        return None

    fastmcp_class = getattr(module, "FastMCP", None)
    if not isinstance(fastmcp_class, type):
        _LOG.error("fastmcp.FastMCP is unavailable. MCP server disabled.")
        return None
    return cast(type[Any], fastmcp_class)


def _register(server: Any, config: PipelineConfig) -> None:
    def generate_pr(
        title: str,
        description: str,
        root_uri: str = "",
        diff: str | None = None,
        base_branch: str | None = None,
        template: str | None = None,
        detail: str | None = None,
        change_type: str | None = None,
        screenshot_before: str | None = None,
        screenshot_after: str | None = None,
        use_suggested_title: bool = False,
        write_file: bool = True,
    ) -> str:
        """Generate a PR description from the repository at root_uri (or a supplied diff).

        The full document is written to the project directory; the returned
        document is trimmed to fit MCP response limits.
        """
        return mcp_tools.generate_pr(
            config,
            title=title,
            description=description,
            root_uri=root_uri,
            diff=diff,
            base_branch=base_branch,
            template=template,
            detail=detail,
            change_type=change_type,
            screenshot_before=screenshot_before,
            screenshot_after=screenshot_after,
            use_suggested_title=use_suggested_title,
            write_file=write_file,
        )

    def analyze_diff(
        diff: str | None = None,
        root_uri: str = "",
        base_branch: str | None = None,
        detail: str | None = None,
    ) -> str:
        """Classify a diff (change type, per-file impact, risk) without rendering a document."""
        return mcp_tools.analyze(
            config, diff=diff, root_uri=root_uri, base_branch=base_branch, detail=detail
        )

    def list_templates() -> str:
        """List the PR templates available to generate_pr."""
        return mcp_tools.list_templates()

    def quick_pr(
        root_uri: str = "",
        feature_branch: str = "",
        base_branch: str = "",
        template_type: str = "",
        diff_content: str = "",
        commit_messages: str = "",
        status: str = "",
        files: str = "",
        include_diff: str = "false",
        custom_sections: str = "",
    ) -> str:
        """Generate a PR request from auto-fetched git context."""
        return mcp_tools.quick_pr_prompt(
            config,
            root_uri=root_uri,
            feature_branch=feature_branch,
            base_branch=base_branch,
            template_type=template_type,
            diff_content=diff_content,
            commit_messages=commit_messages,
            status=status,
            files=files,
            include_diff=include_diff,
            custom_sections=custom_sections,
        )

    server.tool(name="generate_pr")(generate_pr)
    server.tool(name="analyze_diff")(analyze_diff)
    server.tool(name="list_templates")(list_templates)
    server.prompt(name="quick-pr")(quick_pr)


def create_mcp_server(
    fastmcp_class: type[Any] | None = None,
    config: PipelineConfig | None = None,
) -> Any | None:
    """Create the MCP server instance with every tool and prompt registered."""
    server_class = fastmcp_class if fastmcp_class is not None else _load_fastmcp_class()
    if server_class is None:
        return None
    server = server_class(SERVER_NAME)
    _register(server, config or PipelineConfig())
    return server


def run_server(
    config: PipelineConfig,
    *,
    transport: Transport = "stdio",
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    server = create_mcp_server(config=config)
    if server is None:
        raise RuntimeError("fastmcp is not installed; cannot start the MCP server.")
    _LOG.info("Starting %s MCP server over %s", SERVER_NAME, transport)
    if transport == "stdio":
        server.run(transport="stdio")
    else:
        server.run(transport="http", host=host, port=port)
