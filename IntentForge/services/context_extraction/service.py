"""
Context Extraction Service.

Builds a compact excerpt of a source file around intent accessor usage, for the
semantic inference agent. Windows open on every intent-relevant line, stay open
until the enclosing brace block closes, and are unioned without repeating lines.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from ...core.config import get_config
from ...core.exceptions import ParseFailureError
from ...core.logging import get_logger

logger = get_logger(__name__)

# Intent accessor fragments, grouped by what they touch
INTENT_ACCESSORS: tuple[str, ...] = (
    # action
    "getAction", "hasAction", "setAction",
    # category
    "getCategories", "hasCategory", "addCategory",
    # data
    "getData", "setData", "getScheme", "getHost", "getPath", "getQuery",
    # type
    "getType", "setType", "resolveType",
    # extras
    "getExtras", "getStringExtra", "getIntExtra", "getBooleanExtra",
    "getLongExtra", "getFloatExtra", "getDoubleExtra", "getParcelableExtra",
    # flags
    "getFlags", "addFlags", "setFlags",
    # component
    "getComponent", "setComponent", "resolveActivity",
    # uri
    "toUri", "parseUri", "normalize",
    # bundle
    "getBundle", "putExtra", "putExtras",
)

MUTATION_VERBS: tuple[str, ...] = (".get", ".set", ".has", ".add", ".put")

_INTENT_RECEIVERS: tuple[str, ...] = ("intent", "getIntent()")


def is_intent_relevant(line: str) -> bool:
    """True if the line reads or writes intent state."""
    if any(fragment in line for fragment in INTENT_ACCESSORS):
        return True
    return any(receiver in line for receiver in _INTENT_RECEIVERS) and any(
        verb in line for verb in MUTATION_VERBS
    )


class _OrderedLines:
    """Insertion-ordered line collection that ignores repeats."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._seen: set[str] = set()

    def add(self, line: str) -> None:
        if line not in self._seen:
            self._seen.add(line)
            self._lines.append(line)

    def extend(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.add(line)

    def render(self) -> str:
        return "\n".join(self._lines)


class ContextExtractor:
    """Heuristic extractor of intent-handling code windows."""

    def __init__(self, leading_lines: int | None = None, trailing_lines: int | None = None) -> None:
        config = get_config().extraction
        self.leading_lines = config.leading_lines if leading_lines is None else leading_lines
        self.trailing_lines = config.trailing_lines if trailing_lines is None else trailing_lines

    def extract(self, lines: Sequence[str]) -> str:
        """Return the deduplicated context, or "" if no line touches an intent."""
        context = _OrderedLines()
        found = False
        in_block = False
        depth = 0
        last_relevant = 0

        for i, line in enumerate(lines):
            if is_intent_relevant(line):
                found = True
                in_block = True
                depth = 0
                last_relevant = i
                context.extend(lines[max(0, i - self.leading_lines):i])

            if not in_block:
                continue

            context.add(line)
            depth += line.count("{") - line.count("}")
            if "}" in line and depth <= 0:
                in_block = False
                context.extend(lines[i + 1:i + 1 + self.trailing_lines])

        if not found:
            logger.info("No intent-related code found in the source file")
            return ""

        context.extend(lines[last_relevant + 1:last_relevant + 1 + self.trailing_lines])
        return context.render()

    def extract_file(self, source_file: Path) -> str:
        return self.extract(read_source_lines(source_file))


def read_source_lines(source_file: Path) -> list[str]:
    """Read a source file as lines; undecodable bytes are replaced.

    Raises:
        ParseFailureError: If the file cannot be read.
    """
    try:
        text = Path(source_file).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ParseFailureError(
            message=f"Failed to read source file: {e}",
            source_path=str(source_file),
            cause=e,
        )
    return text.splitlines()
