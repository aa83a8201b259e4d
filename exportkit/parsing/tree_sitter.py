"""Tree-sitter parser access for TypeScript and JavaScript sources."""

from __future__ import annotations

import threading
from typing import Dict, Optional

from tree_sitter import Node, Parser, Tree
from tree_sitter_language_pack import get_parser

_GRAMMAR_BY_SUFFIX = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "typescript",
    ".mjs": "typescript",
    ".cjs": "typescript",
    ".tsx": "tsx",
    ".jsx": "tsx",
}

_DEFAULT_GRAMMAR = "typescript"

_local = threading.local()


class ParseError(ValueError):
    """Raised when a source file does not parse into an error-free tree."""

    def __init__(self, path: str, line: Optional[int] = None) -> None:
        location = f"{path}:{line}" if line is not None else path
        super().__init__(f"Syntax error in {location}")
        self.path = path
        self.line = line


def grammar_for(path: str) -> str:
    lower = path.lower()
    for suffix, grammar in _GRAMMAR_BY_SUFFIX.items():
        if lower.endswith(suffix):
            return grammar
    return _DEFAULT_GRAMMAR


def _get_parser(grammar: str) -> Parser:
    # Parsers are not thread-safe; keep one per thread and grammar.
    parsers: Optional[Dict[str, Parser]] = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = {}
        _local.parsers = parsers
    parser = parsers.get(grammar)
    if parser is None:
        parser = get_parser(grammar)
        parsers[grammar] = parser
    return parser


def parse_source(source_bytes: bytes, path: str, *, strict: bool = True) -> Tree:
    """Parse ``source_bytes`` with the grammar matching ``path``.

    With ``strict`` set, a tree containing error or missing nodes raises
    :class:`ParseError` pointing at the first problem.
    """
    tree = _get_parser(grammar_for(path)).parse(source_bytes)
    if strict and tree.root_node.has_error:
        error = first_error(tree.root_node)
        line = error.start_point[0] + 1 if error is not None else None
        raise ParseError(path, line)
    return tree


def first_error(node: Node) -> Optional[Node]:
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = first_error(child)
            if found is not None:
                return found
    return None


def node_text(node: Optional[Node], source_bytes: bytes) -> str:
    if node is None:
        return ""
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def field_text(node: Node, field_name: str, source_bytes: bytes) -> Optional[str]:
    child = node.child_by_field_name(field_name)
    if child is None:
        return None
    return node_text(child, source_bytes)


def has_token(node: Node, token: str) -> bool:
    """Return True when ``node`` has a direct child token such as ``async``."""
    return any(child.type == token for child in node.children)


def string_value(node: Optional[Node], source_bytes: bytes) -> Optional[str]:
    """Return the unquoted value of a string literal node."""
    if node is None:
        return None
    raw = node_text(node, source_bytes)
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in {"'", '"', "`"}:
        return raw[1:-1]
    return raw


__all__ = [
    "ParseError",
    "field_text",
    "first_error",
    "grammar_for",
    "has_token",
    "node_text",
    "parse_source",
    "string_value",
]
