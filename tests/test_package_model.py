from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
import subprocess
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from reachscan.access_paths import FunctionCreation, ImportAccessPath, SourceLocation
from reachscan.errors import DynamicAnalysisError
from reachscan.package_model import (
    exports_from_package_model,
    load_package_model,
    obtain_package_model,
    package_model_path,
    run_dynamic_analysis,
)


class PackageModelTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(os.path.realpath(self.temp_dir.name))
        self.file = self.root / "index.js"
        self.file.write_text("module.exports = function () {};\n")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_path_is_content_addressed(self) -> None:
        digest = hashlib.sha1(self.file.read_bytes()).hexdigest()
        path = package_model_path(str(self.file), self.root / "models")
        self.assertEqual(path, self.root / "models" / f"{digest}-index.js.json")

    def test_load_rejects_non_objects(self) -> None:
        target = self.root / "model.json"
        target.write_text("[1, 2]")
        self.assertIsNone(load_package_model(target))
        target.write_text("{not json")
        self.assertIsNone(load_package_model(target))
        self.assertIsNone(load_package_model(self.root / "absent.json"))

    def test_exports_from_model_entries(self) -> None:
        model = {
            "<MAIN_MODULE>": {"source": "index.js", "start": {"line": 1, "column": 17}, "end": {"line": 1, "column": 31}},
            "<MAIN_MODULE>.version": "string",
            "<MAIN_MODULE>.parse": "JSON.parse",
            "<MAIN_MODULE>.odd": "NoSuchGlobal.x",
        }
        exports = exports_from_package_model(model, {}, str(self.file))
        self.assertEqual(exports["<MAIN_MODULE>"], frozenset({FunctionCreation(SourceLocation(1, 17, 1, 31), str(self.file))}))
        self.assertEqual(exports["version"], frozenset())
        (builtin,) = exports["parse"]
        self.assertIsInstance(builtin, ImportAccessPath)
        self.assertTrue(builtin.is_builtin)
        self.assertNotIn("odd", exports)

    def test_class_locations_map_to_constructor(self) -> None:
        model = {"<MAIN_MODULE>.Klass": {"start": {"line": 2, "column": 0}}}
        constructor = SourceLocation(3, 2, 3, 20)
        exports = exports_from_package_model(model, {"2:0": constructor}, str(self.file))
        self.assertEqual(exports["Klass"], frozenset({FunctionCreation(constructor, str(self.file))}))

    def test_timeout_kills_process_group(self) -> None:
        process = MagicMock()
        process.pid = 4242
        process.communicate.side_effect = [subprocess.TimeoutExpired("analysis", 1), ("", "")]
        with patch("reachscan.package_model.subprocess.Popen", return_value=process) as popen, patch(
            "reachscan.package_model.os.killpg"
        ) as killpg:
            with self.assertRaises(DynamicAnalysisError):
                run_dynamic_analysis("analyze {source} {output}", str(self.file), self.root / "out.json", timeout=1)
        argv = popen.call_args.args[0]
        self.assertEqual(argv, ["analyze", str(self.file), str(self.root / "out.json")])
        self.assertTrue(popen.call_args.kwargs["start_new_session"])
        self.assertEqual(killpg.call_args.args[0], 4242)

    def test_non_zero_exit_is_only_a_warning(self) -> None:
        process = MagicMock()
        process.communicate.return_value = ("", "boom")
        process.returncode = 3
        with patch("reachscan.package_model.subprocess.Popen", return_value=process):
            with self.assertLogs("reachscan.package_model", level="WARNING"):
                code = run_dynamic_analysis(["analyze"], str(self.file), self.root / "out.json")
        self.assertEqual(code, 3)

    def test_missing_command_raises(self) -> None:
        with patch("reachscan.package_model.subprocess.Popen", side_effect=FileNotFoundError("nope")):
            with self.assertRaises(DynamicAnalysisError):
                run_dynamic_analysis(["analyze"], str(self.file), self.root / "out.json")

    def test_obtain_reads_cached_model_without_running(self) -> None:
        models = self.root / "models"
        path = package_model_path(str(self.file), models)
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"<MAIN_MODULE>": "number"}))
        with patch("reachscan.package_model.subprocess.Popen") as popen:
            model = obtain_package_model(str(self.file), models, command=["analyze"])
        popen.assert_not_called()
        self.assertEqual(model, {"<MAIN_MODULE>": "number"})

    def test_obtain_without_command_or_cache(self) -> None:
        self.assertIsNone(obtain_package_model(str(self.file), self.root / "models"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
