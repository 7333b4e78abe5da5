"""Command-line entrypoint: run the MCP server or generate documents locally."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from quickpr.cli_options import parse_cli_args
from quickpr.config import OutputDetail, PipelineConfig, load_pipeline_config
from quickpr.infra import otel_tracing
from quickpr.io_utils import document_filename, write_document
from quickpr.pipeline import analyze_diff, generate_pr_document
from quickpr.server.mcp_server import run_server
from quickpr.validation import InvalidRequest, validate_pr_request
from quickpr.vcs.git_service import GitError, GitRepository, GitSnapshot

_log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_GIT_ERROR = 1
EXIT_INVALID_INPUT = 2


def configure_logging(level_name: str | None) -> None:
    """Log to stderr so stdio MCP traffic on stdout stays clean."""
    raw = (level_name or os.getenv("QUICKPR_LOG_LEVEL") or "WARNING").upper()
    level = logging.getLevelNamesMapping().get(raw, logging.WARNING)
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _read_diff(args: argparse.Namespace) -> tuple[str, GitSnapshot | None]:
    if args.diff_file == "-":
        return sys.stdin.read(), None
    if args.diff_file:
        return Path(args.diff_file).read_text(encoding="utf-8", errors="replace"), None
    snapshot = GitRepository(Path(args.project_dir)).collect_changes(args.base_branch)
    return snapshot.diff, snapshot


def _generate(args: argparse.Namespace, config: PipelineConfig) -> int:
    diff, snapshot = _read_diff(args)
    checked = validate_pr_request(
        args.title,
        args.description,
        diff,
        screenshot_before=args.screenshot_before,
        screenshot_after=args.screenshot_after,
        template=args.template,
        detail=args.detail,
        change_type=args.change_type,
        use_suggested_title=args.suggested_title,
        target_branch=snapshot.current_branch if snapshot else "",
        base_branch=snapshot.base_branch if snapshot else "",
    )
    if isinstance(checked, InvalidRequest):
        print(f"error: {checked.message}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    if snapshot is not None and not snapshot.has_changes:
        print(f"error: no changes found ({snapshot.describe()})", file=sys.stderr)
        return EXIT_GIT_ERROR

    document = generate_pr_document(checked.request, config)
    if args.output == "-":
        sys.stdout.write(document.full)
        return EXIT_OK

    if args.output:
        target = Path(args.output)
        path = write_document(target.parent, target.name, document.full)
    else:
        filename = document_filename(checked.request.title, bool(snapshot and snapshot.local_changes))
        path = write_document(Path(args.project_dir), filename, document.full)
    print(f"PR document written to {path}")
    for note in document.notes:
        print(f"note: {note}", file=sys.stderr)
    return EXIT_OK


def _analyze(args: argparse.Namespace, config: PipelineConfig) -> int:
    diff, _ = _read_diff(args)
    if args.detail:
        config = replace(config, detail=OutputDetail.parse(args.detail))
    result = analyze_diff(diff, config)
    json.dump(result.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    repo_root = Path(__file__).resolve().parents[2]
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    args = parse_cli_args(argv if argv is not None else sys.argv[1:], repo_root)
    configure_logging(args.log_level)
    otel_tracing.configure()

    try:
        config = load_pipeline_config(Path(args.config) if args.config else None)
    except (ValueError, TypeError) as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    _log.debug("Pipeline config: %s", config)

    if args.command == "serve":
        run_server(config, transport=args.transport, host=args.host, port=args.port)
        return EXIT_OK
    try:
        if args.command == "generate":
            return _generate(args, config)
        return _analyze(args, config)
    except GitError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_GIT_ERROR
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_GIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
