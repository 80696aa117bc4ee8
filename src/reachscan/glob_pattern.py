"""Glob patterns over package paths: ``/**/`` any depth, ``*`` within a segment, ``{a,b}`` alternatives."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .errors import PatternSyntaxError


GLOB_STAR = "/**/"
STAR = "*"
OPEN_CURLY = "{"


@dataclass(frozen=True, slots=True)
class Literal:
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True, slots=True)
class AnySegment:
    def __str__(self) -> str:
        return STAR


@dataclass(frozen=True, slots=True)
class AnyDepth:
    def __str__(self) -> str:
        return GLOB_STAR


@dataclass(frozen=True, slots=True)
class Alternatives:
    branches: Tuple["GlobPattern", ...]

    def __str__(self) -> str:
        return "{" + ",".join(str(branch) for branch in self.branches) + "}"


Fragment = Literal | AnySegment | AnyDepth | Alternatives


@dataclass(frozen=True, slots=True)
class GlobMatch:
    """One way a pattern matches: how much of the path it consumed and what each wildcard captured."""

    matched_length: int
    captures: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GlobPattern:
    fragments: Tuple[Fragment, ...]

    def __str__(self) -> str:
        return "".join(str(fragment) for fragment in self.fragments)

    def matches(self, path: str, wildcard_number: int = 1) -> List[GlobMatch]:
        """Every match of the whole of ``path``; wildcards are numbered from ``wildcard_number``."""

        return [GlobMatch(length, captures) for length, captures in _match(self, path, 0, wildcard_number, True)]


def _match(
    pattern: GlobPattern, path: str, start: int, number: int, anchored: bool
) -> List[Tuple[int, Dict[str, str]]]:
    """Explicit-stack matcher; only alternatives recurse, once per nesting level of the pattern."""

    fragments = pattern.fragments
    results: List[Tuple[int, Dict[str, str]]] = []
    stack: List[Tuple[int, int, int, Dict[str, str]]] = [(0, start, number, {})]
    while stack:
        index, at, num, captures = stack.pop()
        if index == len(fragments):
            if not anchored or at == len(path):
                results.append((at - start, captures))
            continue
        fragment = fragments[index]
        key = f"#{num}"
        if isinstance(fragment, Literal):
            if path.startswith(fragment.text, at):
                stack.append((index + 1, at + len(fragment.text), num, captures))
        elif isinstance(fragment, AnySegment):
            slash = path.find("/", at)
            end = len(path) if slash == -1 else slash
            for stop in range(end, at - 1, -1):
                stack.append((index + 1, stop, num + 1, {**captures, key: path[at:stop]}))
        elif isinstance(fragment, AnyDepth):
            if not path.startswith("/", at):
                continue
            cuts = []
            slash = path.find("/", at)
            while slash != -1:
                cuts.append(slash + 1)
                slash = path.find("/", slash + 1)
            for stop in reversed(cuts):
                stack.append((index + 1, stop, num + 1, {**captures, key: path[at:stop]}))
        else:
            for branch in reversed(fragment.branches):
                for length, _ in reversed(_match(branch, path, at, -1, False)):
                    stop = at + length
                    stack.append((index + 1, stop, num + 1, {**captures, key: path[at:stop]}))
    return results


def parse_glob_pattern(pattern: str) -> GlobPattern:
    fragments: List[Fragment] = []
    rest = pattern
    while rest:
        found = [(rest.find(token), token) for token in (GLOB_STAR, STAR, OPEN_CURLY) if token in rest]
        if not found:
            fragments.append(Literal(rest))
            break
        index, token = min(found)
        if index:
            fragments.append(Literal(rest[:index]))
        if token == GLOB_STAR:
            fragments.append(AnyDepth())
            rest = rest[index + len(GLOB_STAR):]
        elif token == STAR:
            fragments.append(AnySegment())
            rest = rest[index + len(STAR):]
        else:
            close = rest.find("}", index)
            if close == -1:
                raise PatternSyntaxError(f"Unclosed '{{' in glob pattern: {pattern}")
            branches = tuple(parse_glob_pattern(part.strip()) for part in rest[index + 1:close].split(","))
            fragments.append(Alternatives(branches))
            rest = rest[close + 1:]
    return GlobPattern(tuple(fragments))


def glob_match(path: str, pattern: GlobPattern) -> bool:
    return bool(pattern.matches(path))
