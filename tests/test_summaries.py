from __future__ import annotations

import os
from pathlib import Path
import tempfile
import unittest

from reachscan.access_paths import FunctionCreation, ImportAccessPath, SourceLocation
from reachscan.model_generator import usage_model_for_file


class SummaryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(os.path.realpath(self.temp_dir.name))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _write(self, relative: str, contents: str) -> str:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(contents)
        return str(path)

    def test_arrow_expression_body_is_returned(self) -> None:
        lib = self._write("lib.js", "")
        path = self._write("a.js", "const h = () => require('./lib');\n")
        model = usage_model_for_file(path)
        arrow = FunctionCreation(SourceLocation(1, 10, 1, 10), path)
        returned = model.returns_of(arrow)
        self.assertIn(lib, {p.file_location for p in returned if isinstance(p, ImportAccessPath)})

    def test_code_outside_functions_belongs_to_the_module(self) -> None:
        path = self._write("a.js", "foo();\nfunction bar() { baz(); }\n")
        model = usage_model_for_file(path)
        module = ImportAccessPath.for_module(path)
        self.assertEqual(len(model.function_usage_summaries[module]), 1)
        bar = FunctionCreation(SourceLocation(2, 0, 2, 0), path)
        self.assertEqual(len(model.function_usage_summaries[bar]), 1)

    def test_getters_from_define_property(self) -> None:
        path = self._write(
            "g.js",
            "Object.defineProperty(exports, 'name', { get: function () { return 1; } });\n",
        )
        model = usage_model_for_file(path)
        getters = [p for p in model.getters_summary["name"] if isinstance(p, FunctionCreation)]
        self.assertEqual(len(getters), 1)

    def test_event_listeners_by_name_and_prefix(self) -> None:
        path = self._write(
            "e.js",
            "emitter.on('data', function onData() {});\n"
            "emitter.on('pre' + kind, function onPre() {});\n",
        )
        model = usage_model_for_file(path)
        self.assertEqual(len(model.event_listener_summary["data"]), 1)
        self.assertEqual(len(model.event_listener_summary["pre.*"]), 1)

    def test_computed_property_writes_are_wildcard_fields(self) -> None:
        path = self._write("w.js", "obj['get' + name] = function () {};\n")
        model = usage_model_for_file(path)
        self.assertIn("get.*", model.field_based_summary_with_wildcards)
        self.assertNotIn("get.*", model.field_based_summary)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
