"""File extension, language and excluded-path helpers."""

from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatch
from pathlib import PurePosixPath

SOURCE_EXTENSIONS: frozenset[str] = frozenset(
    {
        "ts", "js", "tsx", "jsx", "mjs", "cjs", "vue", "svelte",
        "py", "go", "java", "rb", "rs", "cs", "kt", "swift", "php",
        "c", "cc", "cpp", "h", "hpp", "scala", "dart",
    }
)  # fmt: skip
UI_EXTENSIONS: frozenset[str] = frozenset({"tsx", "jsx", "vue", "svelte"})
DOC_EXTENSIONS: frozenset[str] = frozenset({"md", "mdx", "rst", "txt", "adoc"})
STYLE_EXTENSIONS: frozenset[str] = frozenset({"css", "scss", "sass", "less"})
YAML_EXTENSIONS: frozenset[str] = frozenset({"yml", "yaml"})
CONFIG_EXTENSIONS: frozenset[str] = frozenset({"json", "toml", "ini", "cfg", "conf", "xml"})
DEPENDENCY_MANIFESTS: frozenset[str] = frozenset(
    {
        "package.json",
        "requirements.txt",
        "pyproject.toml",
        "setup.py",
        "setup.cfg",
        "pom.xml",
        "build.gradle",
        "go.mod",
        "Cargo.toml",
        "Gemfile",
        "composer.json",
    }
)

_LANGUAGES: dict[str, str] = {
    "js": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "ts": "typescript",
    "jsx": "jsx",
    "tsx": "tsx",
    "py": "python",
    "rb": "ruby",
    "java": "java",
    "go": "go",
    "php": "php",
    "cs": "csharp",
    "rs": "rust",
    "swift": "swift",
    "kt": "kotlin",
    "md": "markdown",
    "json": "json",
    "yml": "yaml",
    "yaml": "yaml",
    "toml": "toml",
    "xml": "xml",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "less": "less",
    "sql": "sql",
    "sh": "bash",
    "bash": "bash",
    "ps1": "powershell",
}


def extension(path: str) -> str:
    """Lower-cased extension without the dot (``""`` when there is none)."""
    suffix = PurePosixPath(path).suffix
    return suffix[1:].lower() if suffix else ""


def basename(path: str) -> str:
    return PurePosixPath(path).name


def language_for(path: str) -> str:
    """Code-fence language tag for *path* (``text`` when unknown)."""
    return _LANGUAGES.get(extension(path), "text")


def is_excluded_path(path: str, patterns: Iterable[str]) -> bool:
    """True when *path* matches an excluded pattern.

    Patterns ending in ``/`` match a directory anywhere in the path; other
    patterns are globbed against the file name and the full path.
    """
    name = basename(path)
    parts = PurePosixPath(path).parts[:-1]
    for pattern in patterns:
        if pattern.endswith("/"):
            if pattern.rstrip("/") in parts:
                return True
        elif fnmatch(name, pattern) or fnmatch(path, pattern):
            return True
    return False
