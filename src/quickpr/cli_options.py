"""CLI argument and version helpers for the quickpr entrypoint."""

from __future__ import annotations

import argparse
import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_DEFAULT_VERSION = "0.1.0"


def project_version(repo_root: Path | None = None) -> str:
    """Installed package version, else pyproject.toml, else 0.1.0."""
    try:
        return version("quickpr")
    except PackageNotFoundError:
        pass
    if repo_root is None:
        return _DEFAULT_VERSION
    toml_path = repo_root / "pyproject.toml"
    if not toml_path.exists():
        return _DEFAULT_VERSION
    with open(toml_path, "rb") as fh:
        data = tomllib.load(fh)
    project_data: dict[str, object] = data.get("project", {})
    raw_version: object = project_data.get("version")
    return str(raw_version) if raw_version is not None else _DEFAULT_VERSION


def _add_generation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--project-dir", default=".", help="Git repository to read (default: .)")
    parser.add_argument("--base-branch", default=None, help="Base branch (default: main/master)")
    parser.add_argument(
        "--diff-file",
        default=None,
        help="Read the diff from this file ('-' for stdin) instead of git",
    )
    parser.add_argument(
        "--detail",
        default=None,
        choices=["basic", "extended", "security"],
        help="Output detail level (default: $QUICKPR_DETAIL or basic)",
    )


def build_parser(repo_root: Path | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quickpr", description="Generate pull-request descriptions from git diffs"
    )
    parser.add_argument("--version", action="version", version=project_version(repo_root))
    parser.add_argument(
        "--config",
        default=None,
        help="Path to quickpr.toml (default: $QUICKPR_CONFIG)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: $QUICKPR_LOG_LEVEL or WARNING)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the MCP server")
    serve.add_argument("--transport", choices=["stdio", "http"], default="stdio")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host (http transport)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (http transport)")

    generate = commands.add_parser("generate", help="Write a PR description")
    generate.add_argument("--title", required=True)
    generate.add_argument("--description", required=True)
    generate.add_argument("--template", default=None, help="default | feature | bugfix | refactor")
    generate.add_argument("--change-type", default=None, help="Override the detected change type")
    generate.add_argument("--screenshot-before", default=None)
    generate.add_argument("--screenshot-after", default=None)
    generate.add_argument(
        "--suggested-title", action="store_true", help="Use the generated title instead of --title"
    )
    generate.add_argument(
        "--output",
        default=None,
        help="Output file, or '-' for stdout (default: prd.md or <title>.md in the project)",
    )
    _add_generation_args(generate)

    analyze = commands.add_parser("analyze", help="Print the diff analysis as JSON")
    _add_generation_args(analyze)
    return parser


def parse_cli_args(argv: list[str], repo_root: Path | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    return build_parser(repo_root).parse_args(argv)
