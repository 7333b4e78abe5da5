"""Output file naming and writing for generated PR documents."""

from __future__ import annotations

import re
from pathlib import Path

LOCAL_CHANGES_FILENAME = "prd.md"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\-]")


def document_filename(title: str, local_changes: bool) -> str:
    """``prd.md`` for local changes, else the title as a lower-case slug."""
    if local_changes:
        return LOCAL_CHANGES_FILENAME
    slug = _UNSAFE_FILENAME_CHARS.sub("", title.strip().lower().replace(" ", "_"))
    slug = slug.strip("._")
    return f"{slug or 'pull_request'}.md"


def write_document(project_dir: Path, filename: str, content: str) -> Path:
    """Write *content* verbatim as UTF-8 and return the path written."""
    if Path(filename).name != filename:
        raise ValueError(f"Output filename must not contain directories: {filename!r}")
    path = project_dir / filename
    path.write_text(content, encoding="utf-8")
    return path
