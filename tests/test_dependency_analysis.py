from __future__ import annotations

import json
import os
from pathlib import Path
import subprocess
import tempfile
import unittest
from unittest.mock import patch

from reachscan.dependency_analysis import (
    InstalledPackage,
    direct_dependencies,
    list_dependencies,
    parse_npm_ls_json,
    version_in_range,
)


NPM_LS_JSON = {
    "name": "app",
    "version": "1.0.0",
    "dependencies": {
        "express": {
            "version": "4.18.2",
            "dependencies": {"qs": {"version": "6.11.0"}},
        },
        "qs": {"version": "6.5.0"},
        "broken": {"missing": True},
    },
}


class DependencyAnalysisTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(os.path.realpath(self.temp_dir.name))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _write_package_json(self, deps: dict) -> None:
        package = {
            "name": "app",
            "version": "1.0.0",
            "dependencies": deps,
        }
        (self.root / "package.json").write_text(json.dumps(package))

    def _write_lock(self, data: dict) -> None:
        (self.root / "package-lock.json").write_text(json.dumps(data))

    def test_flattens_every_installed_version(self) -> None:
        packages = parse_npm_ls_json(json.dumps(NPM_LS_JSON))
        self.assertEqual(
            packages,
            [
                InstalledPackage("express", "4.18.2"),
                InstalledPackage("qs", "6.11.0"),
                InstalledPackage("qs", "6.5.0"),
            ],
        )

    def test_npm_ls_output_used_despite_non_zero_exit(self) -> None:
        completed = subprocess.CompletedProcess(["npm"], 1, stdout=json.dumps(NPM_LS_JSON), stderr="")
        with patch("reachscan.dependency_analysis.subprocess.run", return_value=completed) as run:
            with self.assertLogs("reachscan.dependency_analysis", level="WARNING"):
                packages = list_dependencies(self.root)
        self.assertEqual(run.call_args.args[0], ["npm", "ls", "--json", "--all"])
        self.assertIn(InstalledPackage("express", "4.18.2"), packages)

    def test_falls_back_to_lockfile_without_npm(self) -> None:
        self._write_lock(
            {
                "name": "app",
                "lockfileVersion": 3,
                "packages": {
                    "": {"name": "app", "version": "1.0.0"},
                    "node_modules/lodash": {"version": "4.17.20"},
                    "node_modules/a/node_modules/@s/b": {"version": "1.2.3"},
                },
            }
        )
        with patch("reachscan.dependency_analysis.subprocess.run", side_effect=FileNotFoundError("npm")):
            packages = list_dependencies(self.root)
        self.assertEqual(packages, [InstalledPackage("@s/b", "1.2.3"), InstalledPackage("lodash", "4.17.20")])

    def test_legacy_lockfile_dependencies(self) -> None:
        self._write_lock({"dependencies": {"express": {"version": "4.18.2", "dependencies": {"qs": {"version": "6.5.0"}}}}})
        with patch("reachscan.dependency_analysis.subprocess.run", side_effect=FileNotFoundError("npm")):
            packages = list_dependencies(self.root)
        self.assertEqual(packages, [InstalledPackage("express", "4.18.2"), InstalledPackage("qs", "6.5.0")])

    def test_direct_dependencies(self) -> None:
        self._write_package_json({"lodash": "^4.17.0", "weird": 3})
        self.assertEqual(direct_dependencies(self.root), {"lodash": "^4.17.0"})

    def test_version_ranges(self) -> None:
        self.assertTrue(version_in_range("4.17.20", "4.0.0", "4.17.20"))
        self.assertTrue(version_in_range("v1.0.0", "1.0.0", "1.0.0"))
        self.assertFalse(version_in_range("4.17.21", "4.0.0", "4.17.20"))
        self.assertTrue(version_in_range("2.0.0-beta.1", "1.0.0", "2.0.0"))
        self.assertFalse(version_in_range("2.0.0-beta.1", "2.0.0", "2.0.0"))
        self.assertFalse(version_in_range("not-a-version", "0.0.0", "9.9.9"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
