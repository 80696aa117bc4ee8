from __future__ import annotations

import unittest

from reachscan.access_paths import FunctionCreation, ImportAccessPath, SourceLocation
from reachscan.usage_model import UsageModel


class UsageModelTests(unittest.TestCase):
    def test_empty_model_knows_its_module(self) -> None:
        model = UsageModel.empty("/p/a.js")
        self.assertEqual(model.file, "/p/a.js")
        self.assertEqual(model.returns_of(model.module_path), frozenset())
        self.assertEqual(model.returns_of(FunctionCreation(SourceLocation(1, 0, 1, 5), "/p/a.js")), frozenset())

    def test_to_dict_uses_strings(self) -> None:
        module = ImportAccessPath.for_module("/p/a.js")
        function = FunctionCreation(SourceLocation(1, 0, 1, 5), "/p/a.js")
        model = UsageModel(
            module_path=module,
            function_return_summaries={module: frozenset({function})},
            field_based_summary={"run": frozenset({function})},
        )
        data = model.to_dict()
        self.assertEqual(data["file"], "/p/a.js")
        self.assertEqual(data["fieldBasedSummary"], {"run": [str(function)]})
        self.assertEqual(data["functionReturnSummaries"], {str(module): [str(function)]})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
