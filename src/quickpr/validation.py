"""Boundary validation for PR generation requests.

Returns a discriminated result instead of raising so protocol and CLI
layers can turn each failure into their own error shape.

Dependencies: models.py, config.py, diff/change_type.py
Wired in: server/mcp_tools.py, cli.py
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import unquote, urlparse

from quickpr.config import OutputDetail
from quickpr.diff.change_type import ChangeType
from quickpr.models import GenerationOptions, PRRequest, Screenshots

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 50_000
_ALLOWED_SCREENSHOT_SCHEMES = frozenset({"", "http", "https", "file"})
_UNSAFE_URL_CHARS = re.compile(r"[\s()<>]")


class ValidationFailure(Enum):
    EMPTY_TITLE = "empty_title"
    TITLE_TOO_LONG = "title_too_long"
    EMPTY_DESCRIPTION = "empty_description"
    DESCRIPTION_TOO_LONG = "description_too_long"
    DIFF_NOT_STRING = "diff_not_string"
    INVALID_SCREENSHOT = "invalid_screenshot"
    INVALID_OPTION = "invalid_option"
    MISSING_PROJECT_DIR = "missing_project_dir"


@dataclass(frozen=True)
class ValidRequest:
    request: PRRequest


@dataclass(frozen=True)
class InvalidRequest:
    failure: ValidationFailure
    message: str


ValidationResult = ValidRequest | InvalidRequest


def _screenshot_error(label: str, url: str) -> InvalidRequest | None:
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme.lower() not in _ALLOWED_SCREENSHOT_SCHEMES or _UNSAFE_URL_CHARS.search(url):
        return InvalidRequest(
            ValidationFailure.INVALID_SCREENSHOT,
            f"The {label} screenshot must be an http(s) URL or a path without spaces or "
            f"parentheses, got {url!r}.",
        )
    return None


def validate_pr_request(
    title: object,
    description: object,
    diff: object,
    *,
    screenshot_before: object = None,
    screenshot_after: object = None,
    template: object = None,
    detail: object = None,
    change_type: object = None,
    use_suggested_title: bool = False,
    target_branch: str = "",
    base_branch: str = "",
) -> ValidationResult:
    """Check raw inputs and build a :class:`PRRequest` from them."""
    if not isinstance(title, str) or not title.strip():
        return InvalidRequest(
            ValidationFailure.EMPTY_TITLE,
            "PR title cannot be empty. Please provide a descriptive title for your pull request.",
        )
    if len(title.strip()) > MAX_TITLE_LENGTH:
        return InvalidRequest(
            ValidationFailure.TITLE_TOO_LONG,
            f"PR title is too long (max {MAX_TITLE_LENGTH} characters). "
            "Please use a more concise title.",
        )
    if not isinstance(description, str) or not description.strip():
        return InvalidRequest(
            ValidationFailure.EMPTY_DESCRIPTION,
            "PR description cannot be empty. Please provide a clear description of your changes.",
        )
    if len(description) > MAX_DESCRIPTION_LENGTH:
        return InvalidRequest(
            ValidationFailure.DESCRIPTION_TOO_LONG,
            f"PR description is extremely long (max {MAX_DESCRIPTION_LENGTH:,} characters). "
            "Please provide a more concise description or break it into smaller sections.",
        )
    if not isinstance(diff, str):
        return InvalidRequest(
            ValidationFailure.DIFF_NOT_STRING,
            f"Diff must be a string of unified diff text, got {type(diff).__name__}.",
        )

    shots: dict[str, str] = {}
    for label, raw in (("before", screenshot_before), ("after", screenshot_after)):
        if raw is None:
            shots[label] = ""
            continue
        if not isinstance(raw, str):
            return InvalidRequest(
                ValidationFailure.INVALID_SCREENSHOT, f"The {label} screenshot must be a string."
            )
        error = _screenshot_error(label, raw.strip())
        if error is not None:
            return error
        shots[label] = raw.strip()

    try:
        options = GenerationOptions(
            template=str(template).strip().lower() if template else None,
            detail=OutputDetail.parse(str(detail)) if detail else None,
            change_type=ChangeType.parse(str(change_type)) if change_type else None,
            use_suggested_title=bool(use_suggested_title),
            target_branch=target_branch,
            base_branch=base_branch,
        )
    except ValueError as exc:
        return InvalidRequest(ValidationFailure.INVALID_OPTION, str(exc))

    screenshots = Screenshots(**shots)
    return ValidRequest(
        PRRequest(
            title=title.strip(),
            description=description.strip(),
            diff=diff,
            screenshots=screenshots if screenshots.present else None,
            options=options,
        )
    )


def resolve_project_dir(root_uri: object) -> Path | InvalidRequest:
    """Turn a ``file://`` URI or plain path into an existing directory."""
    if not isinstance(root_uri, str) or not root_uri.strip():
        return InvalidRequest(
            ValidationFailure.MISSING_PROJECT_DIR,
            "Root URI is required. Please ensure the project path is provided correctly.",
        )
    raw = root_uri.strip()
    if raw.startswith("file://"):
        raw = unquote(urlparse(raw).path)
    path = Path(raw).expanduser()
    if not path.is_dir():
        return InvalidRequest(
            ValidationFailure.MISSING_PROJECT_DIR,
            f"Project directory {str(path)!r} does not exist or is not a directory.",
        )
    return path
