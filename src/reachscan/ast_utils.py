"""Parser boundary: tree-sitter parsing and small node helpers."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Iterator, List, Tuple

from tree_sitter import Language, Parser
from tree_sitter_javascript import language as javascript_language
from tree_sitter_typescript import language_tsx, language_typescript


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".js", ".mjs", ".cjs", ".jsx", ".ts", ".mts", ".tsx"}

_JS_LANGUAGE = Language(javascript_language())
_TS_LANGUAGE = Language(language_typescript())
_TSX_LANGUAGE = Language(language_tsx())

JS_PARSER = Parser()
JS_PARSER.language = _JS_LANGUAGE
TS_PARSER = Parser()
TS_PARSER.language = _TS_LANGUAGE
TSX_PARSER = Parser()
TSX_PARSER.language = _TSX_LANGUAGE

FUNCTION_TYPES = {
    "function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "generator_function_declaration",
    "arrow_function",
    "method_definition",
}
CLASS_TYPES = {"class_declaration", "class"}
STRING_TYPES = {"string", "template_string"}

NodeKey = Tuple[int, int, str]


@dataclass(frozen=True, slots=True)
class ParsedFile:
    """A parsed source file together with the bytes it was parsed from."""

    path: str
    source: bytes
    tree: object
    has_error: bool = False

    @property
    def root(self):
        return self.tree.root_node


def node_key(node) -> NodeKey:
    return (node.start_byte, node.end_byte, node.type)


def node_text(node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def named_children(node) -> List:
    """Named children without comments."""
    return [child for child in node.named_children if child.type != "comment"]


def location_of(node) -> Tuple[int, int, int, int]:
    start_row, start_column = node.start_point
    end_row, end_column = node.end_point
    return (start_row + 1, start_column, end_row + 1, end_column)


def walk(node) -> Iterator:
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def unwrap_parentheses(node):
    while node is not None and node.type == "parenthesized_expression":
        inner = named_children(node)
        if not inner:
            return node
        node = inner[-1]
    return node


def string_literal_value(node, source: bytes) -> str | None:
    """Literal value of a plain string or a template without substitutions."""

    if node is None:
        return None
    if node.type == "template_string":
        if any(child.type == "template_substitution" for child in node.named_children):
            return None
    elif node.type != "string":
        return None
    text = node_text(node, source)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"', "`"}:
        return text[1:-1]
    return text


def call_arguments(node) -> List:
    args = node.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return named_children(args)


def parser_for_extension(ext: str) -> Parser:
    if ext in {".ts", ".mts"}:
        return TS_PARSER
    if ext == ".tsx":
        return TSX_PARSER
    return JS_PARSER


def neutralize_shebang(source: bytes) -> bytes:
    if source.startswith(b"#!"):
        return b"//" + source[2:]
    return source


def parse_source(source: bytes, path: str = "<memory>") -> ParsedFile:
    parser = parser_for_extension(Path(path).suffix.lower())
    source = neutralize_shebang(source)
    tree = parser.parse(source)
    has_error = tree.root_node.has_error
    if has_error:
        logger.debug("Strict parse of %s failed, continuing with the recovered tree", path)
    return ParsedFile(path=path, source=source, tree=tree, has_error=has_error)


def parse_file(path: str) -> ParsedFile:
    """Parse a file from disk; raises OSError when it cannot be read."""

    return parse_source(Path(path).read_bytes(), path)


def concatenation_wildcard(node, source: bytes) -> str | None:
    """``lit.*`` or ``.*lit`` for a ``+`` concatenation with one string literal operand."""

    if node is None or node.type != "binary_expression":
        return None
    operator = node.child_by_field_name("operator")
    if operator is None or operator.type != "+":
        return None
    left = string_literal_value(node.child_by_field_name("left"), source)
    if left is not None:
        return f"{left}.*"
    right = string_literal_value(node.child_by_field_name("right"), source)
    if right is not None:
        return f".*{right}"
    return None
