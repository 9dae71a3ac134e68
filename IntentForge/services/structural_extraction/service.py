"""
Structural Extraction Service.

Recovers typed intent parameters by matching declarative patterns against the
syntax tree of a source file. Patterns are written against a small node
protocol (kind, children, byte range, named fields), which tree-sitter nodes
satisfy; the Java grammar supplies the concrete tree.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import tree_sitter_java
from tree_sitter import Language, Parser

from ...core.exceptions import ParseFailureError
from ...core.logging import get_logger
from ...models.intent import ExtractedParameter

logger = get_logger(__name__)

JAVA_LANGUAGE = Language(tree_sitter_java.language())

SUPPORTED_SUFFIXES = {".java"}


class SyntaxNode(Protocol):
    """The subset of a concrete syntax tree node the matcher relies on."""

    @property
    def type(self) -> str: ...

    @property
    def children(self) -> Sequence[SyntaxNode]: ...

    @property
    def named_children(self) -> Sequence[SyntaxNode]: ...

    @property
    def start_byte(self) -> int: ...

    @property
    def end_byte(self) -> int: ...

    def child_by_field_name(self, name: str) -> SyntaxNode | None: ...


Captures = dict[str, SyntaxNode]


def node_text(node: SyntaxNode, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class NodePattern:
    """Declarative pattern over one node and, through named fields, its children.

    Attributes:
        kind: Required node type.
        capture: Name under which the matched node is captured.
        fields: Sub-patterns the node's named fields must match.
        text: Regex the node's full source text must match.
        predicate: Extra check on the node.
    """

    kind: str
    capture: str | None = None
    fields: Mapping[str, NodePattern] = field(default_factory=dict)
    text: re.Pattern[str] | None = None
    predicate: Callable[[SyntaxNode, bytes], bool] | None = None

    def match(self, node: SyntaxNode, source: bytes) -> Captures | None:
        if node.type != self.kind:
            return None
        if self.text is not None and not self.text.fullmatch(node_text(node, source)):
            return None
        if self.predicate is not None and not self.predicate(node, source):
            return None

        captures: Captures = {}
        if self.capture:
            captures[self.capture] = node
        for field_name, sub_pattern in self.fields.items():
            child = node.child_by_field_name(field_name)
            if child is None:
                return None
            sub_captures = sub_pattern.match(child, source)
            if sub_captures is None:
                return None
            captures.update(sub_captures)
        return captures


def query(
    root: SyntaxNode,
    patterns: Sequence[NodePattern],
    source: bytes,
) -> Iterator[tuple[int, Captures]]:
    """Yield (pattern index, captures) for every match, in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        for index, pattern in enumerate(patterns):
            captures = pattern.match(node, source)
            if captures is not None:
                yield index, captures
        stack.extend(reversed(node.children))


def argument_nodes(arguments: SyntaxNode) -> list[SyntaxNode]:
    """Expressions of an argument_list, without punctuation or comments."""
    return [n for n in arguments.named_children if not n.type.endswith("comment")]


# intent.getStringExtra("key"), getIntent().getIntExtra("key", 0), ...
EXTRA_ACCESSOR = NodePattern(
    kind="method_invocation",
    fields={
        "name": NodePattern(kind="identifier", capture="method", text=re.compile(r"get.*Extra")),
        "arguments": NodePattern(kind="argument_list", capture="args"),
    },
)

# intent.getData()
DATA_ACCESSOR = NodePattern(
    kind="method_invocation",
    fields={
        "name": NodePattern(kind="identifier", capture="method", text=re.compile(r"getData")),
        "arguments": NodePattern(
            kind="argument_list",
            predicate=lambda node, _source: not argument_nodes(node),
        ),
    },
)

INTENT_PATTERNS: tuple[NodePattern, ...] = (EXTRA_ACCESSOR, DATA_ACCESSOR)


def infer_extra_type(method_name: str) -> str:
    """Type of an extra from its accessor name (getStringExtra -> string)."""
    if "String" in method_name:
        return "string"
    if "Int" in method_name:
        return "int"
    if "Float" in method_name or "Double" in method_name:
        return "float"
    if "Boolean" in method_name:
        return "boolean"
    return "unknown"


class StructuralExtractor:
    """Extracts intent extras and data access from Java syntax trees."""

    def __init__(self) -> None:
        self._parser = Parser(JAVA_LANGUAGE)

    def extract_file(self, source_file: Path) -> list[ExtractedParameter]:
        """Parse `source_file` and extract its intent parameters.

        Raises:
            ParseFailureError: If the file is unreadable or in an unsupported
                language.
        """
        source_file = Path(source_file)
        if source_file.suffix.lower() not in SUPPORTED_SUFFIXES:
            raise ParseFailureError(
                message=f"No grammar available for '{source_file.suffix}' sources",
                source_path=str(source_file),
            )
        try:
            source = source_file.read_bytes()
        except OSError as e:
            raise ParseFailureError(
                message=f"Failed to read source file: {e}",
                source_path=str(source_file),
                cause=e,
            )
        return self.extract_source(source, source_path=str(source_file))

    def extract_source(self, source: bytes, source_path: str = "<memory>") -> list[ExtractedParameter]:
        """Extract parameters from Java source bytes.

        tree-sitter recovers from syntax errors, so a file with a broken method
        still yields the accessors found in the rest of the tree.

        Raises:
            ParseFailureError: If no syntax tree could be produced.
        """
        tree = self._parser.parse(source)
        root = tree.root_node if tree is not None else None
        if root is None:
            raise ParseFailureError(
                message="Parser produced no syntax tree",
                source_path=source_path,
            )
        if root.has_error:
            logger.warning("Source contains syntax errors, using recovered tree", source=source_path)

        parameters: list[ExtractedParameter] = []
        seen: set[tuple[str, str, str]] = set()

        for pattern_index, captures in query(root, INTENT_PATTERNS, source):
            method_name = node_text(captures["method"], source)
            if INTENT_PATTERNS[pattern_index] is DATA_ACCESSOR:
                parameter = ExtractedParameter(
                    key="data", param_type="uri", value="uri", method_name=method_name
                )
            else:
                parameter = self._extra_parameter(method_name, captures["args"], source)
                if parameter is None:
                    continue

            if parameter.dedup_key in seen:
                continue
            seen.add(parameter.dedup_key)
            parameters.append(parameter)

        logger.debug("Structural extraction finished", source=source_path, parameters=len(parameters))
        return parameters

    @staticmethod
    def _extra_parameter(
        method_name: str,
        arguments: SyntaxNode,
        source: bytes,
    ) -> ExtractedParameter | None:
        args = argument_nodes(arguments)
        if not args:
            return None
        key = node_text(args[0], source).strip('"')
        param_type = infer_extra_type(method_name)
        value = node_text(args[1], source) if len(args) > 1 else param_type
        return ExtractedParameter(key=key, param_type=param_type, value=value, method_name=method_name)
