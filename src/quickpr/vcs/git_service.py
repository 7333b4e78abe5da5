"""Read-only git access for collecting the changes a PR describes.

Every command runs through ``subprocess.run`` with an argument list (no
shell), captured text output and a timeout.

Dependencies: (stdlib only, requires the ``git`` executable)
Wired in: server/mcp_tools.py, cli.py → generate
"""

from __future__ import annotations

import logging
import shutil
import subprocess  # nosec B404 — fixed git argument lists, no shell
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

_log = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 30.0
_PREFERRED_BASE_BRANCHES = ("main", "master")


class GitError(RuntimeError):
    """A git command failed; the message tells the user what to do."""


@dataclass(frozen=True)
class GitSnapshot:
    """Everything a PR description needs from the repository."""

    current_branch: str
    base_branch: str
    diff: str
    commits: str
    files: str
    local_changes: bool
    """True when on the base branch, so the diff is staged or unstaged work."""

    @property
    def has_changes(self) -> bool:
        return bool(self.diff.strip())

    def describe(self) -> str:
        if self.local_changes:
            return f"local changes on {self.current_branch} branch"
        return f"{self.current_branch} compared to {self.base_branch}"


class GitRepository:
    """Git commands scoped to one project directory."""

    def __init__(self, project_dir: Path, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> None:
        self.project_dir = project_dir
        self.timeout = timeout

    def _run(self, args: Sequence[str], *, failure: str) -> str:
        if shutil.which("git") is None:
            raise GitError("git executable not found on PATH. Install git and try again.")
        try:
            completed = subprocess.run(  # nosec B603
                ["git", *args],
                cwd=self.project_dir,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitError(f"git {args[0]} timed out after {self.timeout:.0f}s.") from exc
        except OSError as exc:
            raise GitError(f"{failure} ({exc})") from exc
        if completed.returncode != 0:
            _log.debug("git %s failed: %s", " ".join(args), completed.stderr.strip())
            raise GitError(f"{failure} ({completed.stderr.strip() or 'exit ' + str(completed.returncode)})")
        return completed.stdout

    def _succeeds(self, args: Sequence[str]) -> bool:
        try:
            self._run(args, failure="")
        except GitError:
            return False
        return True

    def ensure_repository(self) -> None:
        try:
            self._run(["rev-parse", "--is-inside-work-tree"], failure="")
        except GitError as exc:
            raise GitError(
                f"Not a git repository: {self.project_dir}. Please initialize git (git init) "
                "or navigate to a valid git repository."
            ) from exc

    def current_branch(self) -> str:
        return self._run(
            ["rev-parse", "--abbrev-ref", "HEAD"],
            failure="Failed to determine current git branch. Please ensure you have at "
            "least one commit in your repository.",
        ).strip()

    def local_branches(self) -> list[str]:
        output = self._run(
            ["branch", "--format=%(refname:short)"],
            failure="Cannot determine available branches.",
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def find_base_branch(self, current_branch: str) -> str:
        """``main``, then ``master``, then the first other local branch."""
        for candidate in _PREFERRED_BASE_BRANCHES:
            if self._succeeds(["show-ref", "--verify", "--quiet", f"refs/heads/{candidate}"]):
                return candidate
        others = [b for b in self.local_branches() if b != current_branch]
        if not others:
            raise GitError(
                "No base branch found for comparison. Please create a main or master branch, "
                "or ensure you have multiple branches for comparison."
            )
        return others[0]

    def staged_diff(self) -> str:
        return self._run(["diff", "--staged"], failure="Failed to read staged changes.")

    def unstaged_diff(self) -> str:
        return self._run(["diff"], failure="Failed to read unstaged changes.")

    def diff_between(self, base: str, head: str) -> str:
        return self._run(
            ["diff", f"{base}..{head}"], failure=f"Failed to diff {head} against {base}."
        )

    def commit_log(self, base: str) -> str:
        return self._run(
            ["log", f"{base}..HEAD", "--oneline"], failure=f"Failed to read commits since {base}."
        )

    def name_status(self, base: str | None = None, *, staged: bool = False) -> str:
        if base is None:
            args = ["diff", "--name-status", *(["--staged"] if staged else [])]
        else:
            args = ["diff", "--name-status", f"{base}...HEAD"]
        return self._run(args, failure="Failed to list changed files.")

    def collect_changes(self, base_branch: str | None = None) -> GitSnapshot:
        """Gather diff, commits and file status for the current branch.

        On the base branch itself the staged diff is used, or the unstaged
        diff when nothing is staged.
        """
        self.ensure_repository()
        current = self.current_branch()
        base = base_branch or self.find_base_branch(current)

        if current == base:
            diff = self.staged_diff()
            staged = bool(diff.strip())
            if not staged:
                diff = self.unstaged_diff()
            return GitSnapshot(
                current_branch=current,
                base_branch=base,
                diff=diff,
                commits="",
                files=self.name_status(staged=staged),
                local_changes=True,
            )

        return GitSnapshot(
            current_branch=current,
            base_branch=base,
            diff=self.diff_between(base, current),
            commits=self.commit_log(base),
            files=self.name_status(base),
            local_changes=False,
        )
