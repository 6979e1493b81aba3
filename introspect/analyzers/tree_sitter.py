"""Tree-sitter parser adapter and literal helpers for TypeScript sources."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

_LANGUAGES: Dict[str, Language] = {
    "typescript": Language(tree_sitter_typescript.language_typescript()),
    "tsx": Language(tree_sitter_typescript.language_tsx()),
}

_WRAPPER_TYPES = {
    "as_expression",
    "satisfies_expression",
    "type_assertion",
    "parenthesized_expression",
}

_ESCAPE_PATTERN = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])"
)
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_LINE_CONTINUATIONS = {"\n", "\r", "\r\n", "\u2028", "\u2029"}


class NodeKind(Enum):
    """Closed set of literal shapes the extractor understands."""

    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    BOOLEAN = "boolean"
    OTHER = "other"


@dataclass
class ParseOutcome:
    """Result of parsing one source text; never raised, always returned."""

    source: bytes
    tree: Optional[Tree] = None
    error: Optional[str] = None
    has_syntax_errors: bool = False

    @property
    def ok(self) -> bool:
        return self.tree is not None

    @property
    def root(self) -> Optional[Node]:
        return self.tree.root_node if self.tree is not None else None


class SourceParser:
    """Converts TypeScript source text into tree-sitter syntax trees."""

    def __init__(self) -> None:
        self._local = threading.local()

    def parse(self, text: str, path: Optional[str] = None) -> ParseOutcome:
        language_key = language_for_path(path)
        try:
            source = text.encode("utf-8")
        except UnicodeEncodeError as exc:
            return ParseOutcome(source=b"", error=f"Unencodable source text: {exc}")
        try:
            tree = self._get_parser(language_key).parse(source)
        except Exception as exc:  # pragma: no cover - parser guard
            return ParseOutcome(source=source, error=f"{type(exc).__name__}: {exc}")
        return ParseOutcome(
            source=source,
            tree=tree,
            has_syntax_errors=tree.root_node.has_error,
        )

    def _get_parser(self, language_key: str) -> Parser:
        # tree-sitter parsers are not thread-safe; keep one per thread.
        parsers: Dict[str, Parser] | None = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        parser = parsers.get(language_key)
        if parser is None:
            parser = Parser(_LANGUAGES[language_key])
            parsers[language_key] = parser
        return parser


def language_for_path(path: Optional[str]) -> str:
    if path and str(path).lower().endswith(".tsx"):
        return "tsx"
    return "typescript"


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def named_children(node: Node) -> Iterator[Node]:
    """Yield named children, skipping comments."""
    for child in node.named_children:
        if child.type != "comment":
            yield child


def unwrap_expression(node: Node) -> Node:
    """Strip ``as const``, ``satisfies``, ``<T>`` and parenthesis wrappers."""
    current = node
    while current.type in _WRAPPER_TYPES:
        children = list(named_children(current))
        if not children:
            break
        # `<T>expr` puts the type arguments first; every other wrapper leads with the expression.
        current = children[-1] if current.type == "type_assertion" else children[0]
    return current


def classify(node: Node) -> NodeKind:
    node_type = node.type
    if node_type == "string":
        return NodeKind.STRING
    if node_type == "template_string":
        if any(child.type == "template_substitution" for child in node.children):
            return NodeKind.OTHER
        return NodeKind.STRING
    if node_type == "array":
        return NodeKind.ARRAY
    if node_type == "object":
        return NodeKind.OBJECT
    if node_type in {"true", "false"}:
        return NodeKind.BOOLEAN
    return NodeKind.OTHER


def string_value(node: Node, source: bytes) -> Optional[str]:
    """Return the cooked value of a string literal, or None for anything else.

    Interpolated template literals are not evaluated; they count as absent.
    """
    if classify(node) is not NodeKind.STRING:
        return None
    raw = node_text(node, source)
    if len(raw) < 2:
        return None
    return decode_escapes(raw[1:-1])


def decode_escapes(raw: str) -> str:
    return _ESCAPE_PATTERN.sub(_replace_escape, raw)


def _replace_escape(match: "re.Match[str]") -> str:
    token = match.group(1)
    if token.startswith("u{"):
        return chr(int(token[2:-1], 16))
    if token.startswith("u") and len(token) == 5:
        return chr(int(token[1:], 16))
    if token.startswith("x") and len(token) == 3:
        return chr(int(token[1:], 16))
    if token in _LINE_CONTINUATIONS:
        return ""
    return _SIMPLE_ESCAPES.get(token, token)


def walk(node: Node) -> Iterator[Node]:
    """Iterative pre-order traversal."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


__all__ = [
    "NodeKind",
    "ParseOutcome",
    "SourceParser",
    "classify",
    "decode_escapes",
    "language_for_path",
    "named_children",
    "node_text",
    "string_value",
    "unwrap_expression",
    "walk",
]
