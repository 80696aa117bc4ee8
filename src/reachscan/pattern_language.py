"""Parser for vulnerability API patterns such as ``call <lib>.merge() [2,3]``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

from .errors import PatternSyntaxError
from .glob_pattern import GlobPattern, parse_glob_pattern


NUM_ARGS_RE = re.compile(r"^\[\s*(\d+)\s*,\s*(\d+)\s*\]$")


@dataclass(frozen=True, slots=True)
class ImportPathPattern:
    glob: GlobPattern

    def __str__(self) -> str:
        return f"<{self.glob}>"


@dataclass(frozen=True, slots=True)
class PropertyPathPattern:
    receiver: "AccessPathPattern"
    prop_names: Tuple[str, ...]

    def __str__(self) -> str:
        if len(self.prop_names) == 1:
            return f"{self.receiver}.{self.prop_names[0]}"
        return f"{self.receiver}.{{{','.join(self.prop_names)}}}"


@dataclass(frozen=True, slots=True)
class CallAccessPathPattern:
    callee: "AccessPathPattern"

    def __str__(self) -> str:
        return f"{self.callee}()"


@dataclass(frozen=True, slots=True)
class DisjunctionAccessPathPattern:
    patterns: Tuple["AccessPathPattern", ...]

    def __str__(self) -> str:
        return "{" + ",".join(str(pattern) for pattern in self.patterns) + "}"


AccessPathPattern = ImportPathPattern | PropertyPathPattern | CallAccessPathPattern | DisjunctionAccessPathPattern


class Filter:
    """Extra condition a matched call site has to satisfy."""

    def accepts(self, num_args: int) -> bool:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class NumArgsFilter(Filter):
    min_args: int
    max_args: int

    def accepts(self, num_args: int) -> bool:
        return self.min_args <= num_args <= self.max_args

    def __str__(self) -> str:
        return f"[{self.min_args},{self.max_args}]"


@dataclass(frozen=True, slots=True)
class ImportPattern:
    import_path: ImportPathPattern
    only_default: bool

    def __str__(self) -> str:
        return f"{'importD' if self.only_default else 'import'} {self.import_path}"


@dataclass(frozen=True, slots=True)
class ReadPropertyPattern:
    property_path: PropertyPathPattern
    not_invoked: bool

    def __str__(self) -> str:
        return f"{'readO' if self.not_invoked else 'read'} {self.property_path}"


@dataclass(frozen=True, slots=True)
class CallPattern:
    access_path: AccessPathPattern
    filters: Tuple[Filter, ...]
    only_return_changed: bool

    def __str__(self) -> str:
        parts = ["callR" if self.only_return_changed else "call", str(self.access_path)]
        parts.extend(str(item) for item in self.filters)
        return " ".join(parts)


Pattern = ImportPattern | ReadPropertyPattern | CallPattern


def _split_top_level(text: str, separator: str, opening: str, closing: str) -> List[str]:
    """Split on ``separator`` wherever the bracket depth is zero."""

    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    if depth != 0:
        raise PatternSyntaxError(f"Unbalanced '{opening}{closing}' in pattern: {text}")
    parts.append("".join(current))
    return parts


def _last_top_level_dot(text: str) -> int:
    depth = 0
    for index in range(len(text) - 1, -1, -1):
        char = text[index]
        if char in "}>)":
            depth += 1
        elif char in "{<(":
            depth -= 1
        elif char == "." and depth == 0:
            return index
    return -1


def parse_access_path_pattern(text: str) -> AccessPathPattern:
    text = text.strip()
    if not text:
        raise PatternSyntaxError("Empty access path pattern")
    if text.startswith("<") and text.endswith(">") and text.count("<") == 1:
        return ImportPathPattern(parse_glob_pattern(text[1:-1]))
    if text.startswith("{") and text.endswith("}") and _matching_close(text, 0) == len(text) - 1:
        branches = _split_top_level(text[1:-1], ",", "{", "}")
        return DisjunctionAccessPathPattern(tuple(parse_access_path_pattern(branch) for branch in branches))
    if text.endswith("()"):
        return CallAccessPathPattern(parse_access_path_pattern(text[:-2]))
    dot = _last_top_level_dot(text)
    if dot <= 0 or dot == len(text) - 1:
        raise PatternSyntaxError(f"Invalid access path pattern: {text}")
    receiver = parse_access_path_pattern(text[:dot])
    prop = text[dot + 1:]
    if prop.startswith("{") and prop.endswith("}"):
        names = tuple(name.strip() for name in prop[1:-1].split(","))
    else:
        names = (prop,)
    if not all(names):
        raise PatternSyntaxError(f"Empty property name in pattern: {text}")
    return PropertyPathPattern(receiver, names)


def _matching_close(text: str, start: int) -> int:
    depth = 0
    for index in range(start, len(text)):
        if text[index] == "{":
            depth += 1
        elif text[index] == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def parse_filter(text: str) -> Filter:
    match = NUM_ARGS_RE.match(text.strip())
    if not match:
        raise PatternSyntaxError(f"Invalid filter: {text}")
    return NumArgsFilter(int(match.group(1)), int(match.group(2)))


def parse_pattern(pattern: str) -> Pattern:
    """Parse ``<kind> <path> [filters...]`` where kind is import[D], read[O] or call[R]."""

    parts = pattern.strip().split(" ", 1)
    if len(parts) != 2:
        raise PatternSyntaxError(f"Pattern needs a kind and a path: {pattern!r}")
    kind, rest = parts[0], parts[1].strip()
    path, _, filter_text = rest.partition(" ")
    if kind in ("import", "importD"):
        if not path:
            raise PatternSyntaxError(f"import pattern expects a module glob: {pattern!r}")
        if path.startswith("<") and path.endswith(">"):
            path = path[1:-1]
        if "<" in path or ">" in path:
            raise PatternSyntaxError(f"import pattern expects a module glob: {pattern!r}")
        return ImportPattern(ImportPathPattern(parse_glob_pattern(path)), kind == "importD")
    if kind in ("read", "readO"):
        access_path = parse_access_path_pattern(path)
        if not isinstance(access_path, PropertyPathPattern):
            raise PatternSyntaxError(f"read pattern expects a property path: {pattern!r}")
        return ReadPropertyPattern(access_path, kind == "readO")
    if kind in ("call", "callR"):
        filters: List[Filter] = []
        if filter_text.strip():
            for item in _split_top_level(filter_text.strip(), " ", "[", "]"):
                if item.strip():
                    filters.append(parse_filter(item))
        return CallPattern(parse_access_path_pattern(path), tuple(filters), kind == "callR")
    raise PatternSyntaxError(f"Unknown pattern kind {kind!r} in {pattern!r}")
