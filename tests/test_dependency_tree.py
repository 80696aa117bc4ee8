from __future__ import annotations

import json
import os
from pathlib import Path
import subprocess
import tempfile
import unittest
from unittest.mock import patch

from reachscan.dependency_tree import DependencyTree, parse_npm_ls_tree


NPM_LS_OUTPUT = """app@1.0.0 /work/app
├─┬ a@1.0.0
│ └── b@2.0.0
├── @scope/c@3.0.0
└── UNMET PEER DEPENDENCY d@^1.0.0
"""


class DependencyTreeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(os.path.realpath(self.temp_dir.name))
        (self.root / "package.json").write_text(json.dumps({"name": "app"}))
        for package in ("a", "a/node_modules/b", "@scope/c"):
            (self.root / "node_modules" / package).mkdir(parents=True)
        self.modules = self.root / "node_modules"

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_parse_tree_lines(self) -> None:
        main, entries = parse_npm_ls_tree(NPM_LS_OUTPUT)
        self.assertEqual(main, "app")
        self.assertEqual([name for _, name in entries], ["a", "b", "@scope/c", "d"])
        self.assertLess(entries[0][0], entries[1][0])

    def test_parent_child_relation_uses_package_dirs(self) -> None:
        tree = DependencyTree.from_npm_ls_output(str(self.root), NPM_LS_OUTPUT)
        a = str(self.modules / "a")
        b = str(self.modules / "a" / "node_modules" / "b")
        c = str(self.modules / "@scope" / "c")
        self.assertEqual(tree.main_module, "app")
        self.assertEqual(tree.children_map["app"], {a, c})
        self.assertEqual(tree.children_map[a], {b})
        self.assertEqual(tree.parent_map[b], {a})

    def test_estimated_modules_and_scopes(self) -> None:
        tree = DependencyTree.from_npm_ls_output(str(self.root), NPM_LS_OUTPUT)
        a = str(self.modules / "a")
        b = str(self.modules / "a" / "node_modules" / "b")
        self.assertEqual(tree.get_estimated_npm_module(str(self.root / "src" / "x.js")), "app")
        self.assertEqual(tree.get_estimated_npm_module(f"{b}/lib/x.js"), b)
        self.assertEqual(tree.get_modules_with_distance1(f"{a}/index.js"), [a, "app", b])
        self.assertEqual(sorted(tree.get_modules_in_subtree(str(self.root / "main.js"))), sorted(
            ["app", a, b, str(self.modules / "@scope" / "c")]
        ))

    def test_load_without_npm_gives_empty_tree(self) -> None:
        with patch("reachscan.dependency_tree.subprocess.run", side_effect=FileNotFoundError("npm")):
            tree = DependencyTree.load(str(self.root))
        self.assertEqual(tree.main_module, "app")
        self.assertEqual(tree.children_map, {})

    def test_load_uses_output_of_failed_npm(self) -> None:
        completed = subprocess.CompletedProcess(["npm"], 1, stdout=NPM_LS_OUTPUT, stderr="peer dep missing")
        with patch("reachscan.dependency_tree.subprocess.run", return_value=completed):
            with self.assertLogs("reachscan.dependency_tree", level="WARNING"):
                tree = DependencyTree.load(str(self.root))
        self.assertIn(str(self.modules / "a"), tree.children_map["app"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
