"""Immutable per-file usage models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping

from .access_paths import AccessPath, ImportAccessPath


MAIN_MODULE = "<MAIN_MODULE>"

PathSummary = Mapping[str, FrozenSet[AccessPath]]


def _summary_to_dict(summary: Mapping[object, FrozenSet[AccessPath]]) -> Dict[str, list]:
    return {str(key): sorted(str(path) for path in paths) for key, paths in summary.items()}


@dataclass(frozen=True, slots=True)
class UsageModel:
    """Static summary of one source file.

    Created once per file and never mutated; the call graph only reads it.
    """

    module_path: ImportAccessPath
    exports_summary: PathSummary = field(default_factory=dict)
    function_usage_summaries: Mapping[AccessPath, FrozenSet[AccessPath]] = field(default_factory=dict)
    function_return_summaries: Mapping[AccessPath, FrozenSet[AccessPath]] = field(default_factory=dict)
    field_based_summary: PathSummary = field(default_factory=dict)
    field_based_summary_with_wildcards: PathSummary = field(default_factory=dict)
    getters_summary: PathSummary = field(default_factory=dict)
    event_listener_summary: PathSummary = field(default_factory=dict)

    @classmethod
    def empty(cls, file: str) -> "UsageModel":
        module_path = ImportAccessPath.for_module(file)
        return cls(
            module_path=module_path,
            function_usage_summaries={module_path: frozenset()},
            function_return_summaries={module_path: frozenset()},
        )

    @property
    def file(self) -> str:
        return self.module_path.file_location

    def returns_of(self, function: AccessPath) -> FrozenSet[AccessPath]:
        return self.function_return_summaries.get(function, frozenset())

    def to_dict(self) -> Dict[str, object]:
        return {
            "file": self.file,
            "exportsSummary": _summary_to_dict(self.exports_summary),
            "functionUsageSummaries": _summary_to_dict(self.function_usage_summaries),
            "functionReturnSummaries": _summary_to_dict(self.function_return_summaries),
            "fieldBasedSummary": _summary_to_dict(self.field_based_summary),
            "fieldBasedSummaryWithWildcards": _summary_to_dict(self.field_based_summary_with_wildcards),
            "gettersSummary": _summary_to_dict(self.getters_summary),
            "eventListenerSummary": _summary_to_dict(self.event_listener_summary),
        }
