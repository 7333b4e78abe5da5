"""Independent pattern taggers over a file's added lines.

Each tagger is a pure function taking a sequence of line strings and
returning a hit count (``count_*``) or a flag (``has_*``).  They share no
state, so classifiers can combine them freely and tests can probe them one
at a time.

Dependencies: (none — leaf module)
Wired in: diff/impact.py, diff/analysis.py, render/composer.py
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, fields

_log = logging.getLogger(__name__)

_FUNCTION_RE = re.compile(
    r"\bfunction\b\s*\*?\s*\w*\s*\("
    r"|\b(?:async\s+)?def\s+\w+\s*\("
    r"|\bfunc\s+(?:\([^)]*\)\s*)?\w+\s*\("
    r"|\bfn\s+\w+\s*[<(]"
    r"|\b(?:const|let|var)\s+\w+\s*=\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>"
    r"|^(?:(?:public|private|protected|static|async)\s+)*"
    r"(?!(?:if|for|while|switch|catch|return|else)\b)\w+\s*\([^)]*\)\s*(?::\s*[\w<>\[\]|, ]+)?\s*\{$"
)
_CLASS_RE = re.compile(r"\bclass\s+\w+")
_INTERFACE_RE = re.compile(r"\binterface\s+\w+|\btype\s+\w+\s*=|\bstruct\s+\w+|\bProtocol\b")
_API_RE = re.compile(
    r"\bapi\.|\bapi/|\bendpoint|\broute[rs]?\b|\bapp\.(?:get|post|put|patch|delete)\b"
    r"|@(?:app|router)\.(?:get|post|put|patch|delete|route)\b|\bfetch\(|\baxios\b",
    re.IGNORECASE,
)
_DATA_MODEL_RE = re.compile(r"\bschema|\bmodel|\bdatabase\b|\bmigration|\binterface\s+\w+", re.IGNORECASE)
_COMPONENT_RE = re.compile(r"\bcomponent\b|return\s*\(?\s*<\w|<\w+[^>]*/?>", re.IGNORECASE)
_STATE_RE = re.compile(r"\buse(?:State|Reducer|Context|Store)\b|\bsetState\b|\bstate\b|\bdispatch\(")
_SECURITY_RE = re.compile(
    r"\bauth\w*|\blogin\b|\blogout\b|\bpassword\w*|\bpermission\w*|\bcsrf\b|\bxss\b"
    r"|\bjwt\b|\boauth\w*|\bencrypt\w*|\bdecrypt\w*|\bhash(?:ed|ing)?\b|\bsanitiz\w*|\bsession\w*",
    re.IGNORECASE,
)
_CREDENTIAL_NAME_RE = re.compile(
    r"API_KEY|SECRET|PASSWORD|TOKEN|PRIVATE_KEY|ACCESS_KEY|-----BEGIN [A-Z ]*PRIVATE KEY-----"
)
_CREDENTIAL_ASSIGN_RE = re.compile(
    r"(?:api[_-]?key|secret|passw(?:or)?d|token)\w*[\"']?\s*[:=]\s*[\"'][^\"']+[\"']",
    re.IGNORECASE,
)
_CONFIG_LITERAL_RE = re.compile(r"=\s*[\"'].*[\"']")
_ASYNC_RE = re.compile(r"\basync\b|\bawait\b|\.then\(|\bPromise\b|\basyncio\b")
_STYLE_RE = re.compile(
    r"\bclassName\b|\bstyle[ds]?\b|\bcss\b|\bcolor\s*:|\bmargin|\bpadding|\bfont-|\btailwind\b",
    re.IGNORECASE,
)
_LAYOUT_RE = re.compile(r"\bflex\b|\bgrid\b|display\s*:\s*(?:flex|grid)")
_EVENT_RE = re.compile(r"\bon(?:Click|Change|Submit|Press|Input|Blur|Focus)\b|addEventListener")
_BUSINESS_RE = re.compile(
    r"\bbusiness\w*|\bvalidat\w*|\bprocess\w*|\bcalculat\w*|\btransform\w*"
    r"|\bpricing\b|\binvoice\w*|\bcheckout\b|\border(?:s|ing)?\b",
    re.IGNORECASE,
)
_IMPORT_RE = re.compile(r"^(?:import\s|from\s+\S+\s+import\s|require\(|\S+\s*=\s*require\(|use\s+\w)")


def _count(pattern: re.Pattern[str], lines: Sequence[str]) -> int:
    return sum(1 for line in lines if pattern.search(line))


def count_function_definitions(lines: Sequence[str]) -> int:
    return sum(1 for line in lines if _FUNCTION_RE.search(line.strip()))


def count_class_definitions(lines: Sequence[str]) -> int:
    return _count(_CLASS_RE, lines)


def count_interface_declarations(lines: Sequence[str]) -> int:
    return _count(_INTERFACE_RE, lines)


def count_api_references(lines: Sequence[str]) -> int:
    return _count(_API_RE, lines)


def count_data_model_references(lines: Sequence[str]) -> int:
    return _count(_DATA_MODEL_RE, lines)


def count_component_references(lines: Sequence[str]) -> int:
    return _count(_COMPONENT_RE, lines)


def count_state_references(lines: Sequence[str]) -> int:
    return _count(_STATE_RE, lines)


def count_security_keywords(lines: Sequence[str]) -> int:
    return _count(_SECURITY_RE, lines)


def count_async_markers(lines: Sequence[str]) -> int:
    return _count(_ASYNC_RE, lines)


def count_style_markers(lines: Sequence[str]) -> int:
    return _count(_STYLE_RE, lines)


def count_business_keywords(lines: Sequence[str]) -> int:
    return _count(_BUSINESS_RE, lines)


def count_imports(lines: Sequence[str]) -> int:
    return sum(1 for line in lines if is_import(line))


def count_credential_lines(lines: Sequence[str]) -> int:
    return sum(1 for line in lines if is_credential_like(line))


def has_layout_markers(lines: Sequence[str]) -> bool:
    return any(_LAYOUT_RE.search(line) for line in lines)


def has_event_handlers(lines: Sequence[str]) -> bool:
    return any(_EVENT_RE.search(line) for line in lines)


def is_import(line: str) -> bool:
    """True for import/require/use statements."""
    return bool(_IMPORT_RE.match(line.strip()))


def is_credential_like(line: str) -> bool:
    """True when *line* looks like it carries a secret or config literal.

    Such lines are counted for the security tag but must never be echoed
    into example snippets.
    """
    if _CREDENTIAL_NAME_RE.search(line) or _CREDENTIAL_ASSIGN_RE.search(line):
        return True
    return bool(_CONFIG_LITERAL_RE.search(line)) and "config" in line.lower()


def is_logic_line(line: str) -> bool:
    """True for lines worth showing as a representative example change."""
    stripped = line.strip()
    if not stripped or is_import(stripped) or is_credential_like(stripped):
        return False
    return bool(
        _FUNCTION_RE.search(stripped)
        or _CLASS_RE.search(stripped)
        or _INTERFACE_RE.search(stripped)
        or _API_RE.search(stripped)
        or _DATA_MODEL_RE.search(stripped)
        or _COMPONENT_RE.search(stripped)
    )


@dataclass(frozen=True)
class FileTags:
    """All tagger results for one file's added lines."""

    functions: int = 0
    classes: int = 0
    interfaces: int = 0
    api: int = 0
    data_models: int = 0
    components: int = 0
    state: int = 0
    security: int = 0
    credentials: int = 0
    async_ops: int = 0
    styling: int = 0
    business: int = 0
    imports: int = 0
    layout: bool = False
    events: bool = False

    def __add__(self, other: FileTags) -> FileTags:
        merged: dict[str, int | bool] = {}
        for f in fields(self):
            left = getattr(self, f.name)
            right = getattr(other, f.name)
            merged[f.name] = (left or right) if isinstance(left, bool) else left + right
        return FileTags(**merged)  # type: ignore[arg-type]


_TAGGERS: dict[str, Callable[[Sequence[str]], int | bool]] = {
    "functions": count_function_definitions,
    "classes": count_class_definitions,
    "interfaces": count_interface_declarations,
    "api": count_api_references,
    "data_models": count_data_model_references,
    "components": count_component_references,
    "state": count_state_references,
    "security": count_security_keywords,
    "credentials": count_credential_lines,
    "async_ops": count_async_markers,
    "styling": count_style_markers,
    "business": count_business_keywords,
    "imports": count_imports,
    "layout": has_layout_markers,
    "events": has_event_handlers,
}


def tag_lines(lines: Sequence[str]) -> FileTags:
    """Run every tagger over *lines*.

    A tagger that raises contributes its zero value; the failure is logged
    and the remaining taggers still run.
    """
    results: dict[str, int | bool] = {}
    for name, tagger in _TAGGERS.items():
        try:
            results[name] = tagger(lines)
        except Exception:
            _log.warning("Tagger %s failed; treating as no hits", name, exc_info=True)
            results[name] = False if name in ("layout", "events") else 0
    return FileTags(**results)  # type: ignore[arg-type]
