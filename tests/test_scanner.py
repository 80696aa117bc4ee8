from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
import unittest

from reachscan.access_paths import FunctionCreation, ModuleMainPath, SourceLocation
from reachscan.config import ScannerConfig
from reachscan.dependency_analysis import InstalledPackage
from reachscan.dependency_tree import DependencyTree
from reachscan.pattern_language import PatternSyntaxError
from reachscan.scanner import (
    AdvisoryMatch,
    VulnerabilityPattern,
    client_main_file,
    load_vulnerability_patterns,
    patterns_for_installed,
    scan_client,
)


def _pattern(pattern: str, id: int = 1, version_max: str = "1.2.0") -> VulnerabilityPattern:
    return VulnerabilityPattern("vuln-lib", "0.0.1", version_max, pattern, id)


INSTALLED = [InstalledPackage("vuln-lib", "1.0.0")]


class ScannerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(os.path.realpath(self.temp_dir.name))
        self.tree = DependencyTree(str(self.root), "app")
        self._write(
            "package.json",
            json.dumps({"name": "app", "main": "main.js", "dependencies": {"vuln-lib": "1.0.0"}}),
        )
        self._write("node_modules/vuln-lib/package.json", json.dumps({"name": "vuln-lib", "main": "index.js"}))
        self.bad_file = self._write(
            "node_modules/vuln-lib/index.js",
            "module.exports = function bad() {};\nmodule.exports.helper = function helper() {};\n",
        )
        self.lib_file = self._write(
            "lib.js", "module.exports = { foo: function () { return require('vuln-lib')(); } };\n"
        )
        self.main_file = self._write("main.js", "const f = require('./lib').foo;\nf();\n")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _write(self, relative: str, contents: str) -> str:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(contents)
        return str(path)

    def _config(self, **overrides) -> ScannerConfig:
        return ScannerConfig(project_root=self.root, **overrides)

    def _scan(self, patterns, **overrides):
        return scan_client(self._config(**overrides), patterns, INSTALLED, self.tree)

    @property
    def bad(self) -> FunctionCreation:
        return FunctionCreation(SourceLocation(1, 17, 1, 17), self.bad_file)

    @property
    def foo(self) -> FunctionCreation:
        return FunctionCreation(SourceLocation(1, 24, 1, 24), self.lib_file)

    def test_reachable_vulnerable_call_raises_alarm(self) -> None:
        for modular in (True, False):
            with self.subTest(modular=modular):
                with self.assertLogs("reachscan.scanner", level="WARNING") as logs:
                    result = self._scan([_pattern("call <vuln-lib> [0,0]", id=7)], modular=modular)
                self.assertEqual(result.alarms, {7})
                self.assertEqual(
                    result.matches,
                    [AdvisoryMatch(7, "vuln-lib", str(self.bad), (str(self.foo), str(ModuleMainPath(self.main_file))))],
                )
                self.assertTrue(any("StackTrace" in line for line in logs.output))

    def test_property_call_on_library(self) -> None:
        self._write("node_modules/vuln-lib/index.js", "exports.bad = function () {};\n")
        self._write("lib.js", "module.exports = { foo: function () { return require('vuln-lib').bad(); } };\n")
        result = self._scan([_pattern("call <vuln-lib>.bad", id=5)], modular=False)
        bad = FunctionCreation(SourceLocation(1, 14, 1, 14), self.bad_file)
        self.assertEqual(result.alarms, {5})
        self.assertEqual(result.matches[0].function, str(bad))
        self.assertEqual(result.matches[0].stack_trace, (str(self.foo), str(ModuleMainPath(self.main_file))))

    def test_library_property_call_names_the_caller_in_the_trace(self) -> None:
        self._write("node_modules/vuln-lib/index.js", "function bad() {}\nmodule.exports = bad;\nmodule.exports.bad = bad;\n")
        self._write("lib.js", "module.exports = { foo: function () { return require('vuln-lib').bad(); } };\n")
        bad = FunctionCreation(SourceLocation(1, 0, 1, 0), self.bad_file)
        patterns = [_pattern("call <vuln-lib> [0,0]", id=7), _pattern("call <vuln-lib>.bad", id=8)]
        for modular in (True, False):
            with self.subTest(modular=modular):
                result = self._scan(patterns, modular=modular)
                self.assertEqual(result.alarms, {7, 8})
                trace = (str(self.foo), str(ModuleMainPath(self.main_file)))
                self.assertEqual(
                    sorted((match.id, match.function, match.stack_trace) for match in result.matches),
                    [(7, str(bad), trace), (8, str(bad), trace)],
                )

    def test_argument_filters_restrict_call_sites(self) -> None:
        result = self._scan([_pattern("call <vuln-lib> [1,1]", id=1), _pattern("call <vuln-lib> [0,2]", id=2)], modular=False)
        self.assertEqual(result.alarms, {2})

    def test_spread_arguments_pass_filters(self) -> None:
        self._write("lib.js", "module.exports = { foo: function () { return require('vuln-lib')(...[]); } };\n")
        result = self._scan([_pattern("call <vuln-lib> [3,3]", id=4)], modular=False)
        self.assertEqual(result.alarms, {4})

    def test_reachability_statistics(self) -> None:
        result = self._scan([], modular=False)
        self.assertEqual(result.number_functions_reachable, 2)
        self.assertEqual(result.number_modules_reachable, 3)
        self.assertEqual(result.number_packages_reachable, 1)
        self.assertGreaterEqual(result.cg_construction_time, 0)
        self.assertIsNotNone(result.call_graph)

    def test_unreached_property_is_not_reported(self) -> None:
        result = self._scan([_pattern("call <vuln-lib>.helper")], modular=False)
        self.assertEqual(result.alarms, set())
        self.assertEqual(len(result.candidate_patterns), 1)

    def test_uncalled_library_is_not_reported(self) -> None:
        self._write("main.js", "const lib = require('./lib');\n")
        result = self._scan([_pattern("call <vuln-lib>")], modular=False)
        self.assertEqual(result.alarms, set())

    def test_versions_outside_range_are_skipped(self) -> None:
        result = self._scan([_pattern("call <vuln-lib>", version_max="0.9.0")], modular=False)
        self.assertEqual(result.candidate_patterns, [])
        self.assertEqual(result.alarms, set())

    def test_import_pattern_matches_loaded_module(self) -> None:
        result = self._scan([_pattern("import <vuln-lib/**>", id=3)], modular=False)
        self.assertEqual(result.alarms, {3})
        self.assertEqual(result.matches[0].function, str(ModuleMainPath(self.bad_file)))

    def test_read_patterns_are_skipped_with_warning(self) -> None:
        with self.assertLogs("reachscan.scanner", level="WARNING") as logs:
            result = self._scan([_pattern("read <vuln-lib>.helper")], modular=False)
        self.assertEqual(result.alarms, set())
        self.assertTrue(any("Read patterns" in line for line in logs.output))

    def test_result_serialization(self) -> None:
        result = self._scan([_pattern("call <vuln-lib>", id=7)], modular=False)
        data = result.to_dict()
        self.assertEqual(data["alarms"], [7])
        self.assertEqual(data["matches"][0]["stackTrace"][-1], str(ModuleMainPath(self.main_file)))
        self.assertEqual(data["candidatePatterns"][0]["versionMax"], "1.2.0")
        self.assertNotIn("call_graph", data)

    def test_client_main_defaults_to_package_main(self) -> None:
        self.assertEqual(client_main_file(self.root), self.main_file)
        self.assertEqual(client_main_file(self.root, self.root / "lib.js"), self.lib_file)

    def test_patterns_for_installed(self) -> None:
        patterns = [
            _pattern("call <vuln-lib>", id=1),
            VulnerabilityPattern("other", "0.0.0", "9.0.0", "call <other>", 2),
        ]
        self.assertEqual([p.id for p in patterns_for_installed(patterns, INSTALLED)], [1])

    def test_load_vulnerability_patterns(self) -> None:
        path = self._write(
            "patterns.json",
            json.dumps([{"library": "vuln-lib", "versionMin": "0.0.1", "versionMax": "1.2.0", "pattern": "call <vuln-lib>", "id": 1}]),
        )
        (pattern,) = load_vulnerability_patterns(path)
        self.assertEqual(pattern, _pattern("call <vuln-lib>"))

    def test_loaded_bare_import_glob_matches_module(self) -> None:
        path = self._write(
            "patterns.json",
            json.dumps(
                [
                    {"library": "vuln-lib", "versionMin": "0.0.1", "versionMax": "1.2.0", "pattern": "import vuln-lib/index.js", "id": 3},
                    {"library": "vuln-lib", "versionMin": "0.0.1", "versionMax": "1.2.0", "pattern": "call <vuln-lib>.helper", "id": 4},
                ]
            ),
        )
        patterns = load_vulnerability_patterns(path)
        self.assertEqual([pattern.id for pattern in patterns], [3, 4])
        result = self._scan(patterns, modular=False)
        self.assertEqual(result.alarms, {3})
        self.assertEqual(result.matches[0].function, str(ModuleMainPath(self.bad_file)))

    def test_load_rejects_bad_patterns(self) -> None:
        cases = {
            "object.json": json.dumps({"library": "x"}),
            "missing.json": json.dumps([{"library": "x"}]),
            "invalid.json": "[",
        }
        for name, contents in cases.items():
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    load_vulnerability_patterns(self._write(name, contents))
        broken = self._write(
            "broken.json",
            json.dumps([{"library": "x", "versionMin": "1", "versionMax": "2", "pattern": "call <x", "id": 1}]),
        )
        with self.assertRaises(PatternSyntaxError):
            load_vulnerability_patterns(broken)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
