from __future__ import annotations

import unittest

from reachscan.errors import PatternSyntaxError
from reachscan.glob_pattern import (
    AnyDepth,
    AnySegment,
    Alternatives,
    Literal,
    glob_match,
    parse_glob_pattern,
)


class ParseGlobPatternTests(unittest.TestCase):
    def test_literal_only(self) -> None:
        pattern = parse_glob_pattern("lodash/merge.js")
        self.assertEqual(pattern.fragments, (Literal("lodash/merge.js"),))

    def test_fragments_in_order(self) -> None:
        pattern = parse_glob_pattern("lib/**/x-*.{js,ts}")
        kinds = [type(fragment) for fragment in pattern.fragments]
        self.assertEqual(kinds, [Literal, AnyDepth, Literal, AnySegment, Literal, Alternatives])
        self.assertEqual(str(pattern), "lib/**/x-*.{js,ts}")

    def test_unclosed_alternatives_raise(self) -> None:
        with self.assertRaises(PatternSyntaxError):
            parse_glob_pattern("lib/{a,b")


class GlobMatchTests(unittest.TestCase):
    def test_any_depth_then_segment(self) -> None:
        self.assertTrue(glob_match("/a/b/c", parse_glob_pattern("/**/b/*")))

    def test_alternatives_capture_branch(self) -> None:
        pattern = parse_glob_pattern("{/a/b,/x/y}")
        self.assertTrue(glob_match("/a/b", pattern))
        self.assertTrue(glob_match("/x/y", pattern))
        self.assertFalse(glob_match("/a/y", pattern))
        self.assertEqual([match.captures for match in pattern.matches("/a/b")], [{"#1": "/a/b"}])

    def test_any_depth_capture_includes_slashes(self) -> None:
        matches = parse_glob_pattern("lib/**/index.js").matches("lib/a/b/index.js")
        self.assertEqual(len(matches), 1)
        self.assertEqual(matches[0].captures, {"#1": "/a/b/"})
        self.assertEqual(matches[0].matched_length, len("lib/a/b/index.js"))

    def test_any_depth_matches_single_slash(self) -> None:
        self.assertTrue(glob_match("lib/index.js", parse_glob_pattern("lib/**/index.js")))

    def test_literal_matches_only_exact_string(self) -> None:
        pattern = parse_glob_pattern("lodash")
        self.assertTrue(glob_match("lodash", pattern))
        self.assertFalse(glob_match("lodash/merge", pattern))
        self.assertFalse(glob_match("lodas", pattern))

    def test_star_stays_within_segment(self) -> None:
        pattern = parse_glob_pattern("lib/*.js")
        self.assertTrue(glob_match("lib/merge.js", pattern))
        self.assertFalse(glob_match("lib/deep/merge.js", pattern))

    def test_wildcards_are_numbered_in_order(self) -> None:
        matches = parse_glob_pattern("*/{a,b}").matches("x/b")
        self.assertEqual(matches[0].captures, {"#1": "x", "#2": "b"})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
