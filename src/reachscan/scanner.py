"""Reachability of known-vulnerable library APIs from a client package."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
import time
from typing import Dict, Iterable, List, Sequence

from .access_paths import AccessPath, FunctionCreation, ModuleMainPath
from .call_graph import (
    CallGraph,
    build_call_graph_from_main,
    build_call_graphs_for_dependencies,
    extend_call_graph_with_main,
    join_call_graphs,
)
from .config import ScannerConfig
from .dependency_analysis import InstalledPackage, list_dependencies, version_in_range
from .dependency_tree import DependencyTree
from .glob_pattern import glob_match
from .module_resolution import ModuleNotFound, estimate_npm_module, package_name, resolve_module
from .pattern_language import (
    AccessPathPattern,
    CallAccessPathPattern,
    CallPattern,
    DisjunctionAccessPathPattern,
    Filter,
    ImportPathPattern,
    ImportPattern,
    Pattern,
    PropertyPathPattern,
    ReadPropertyPattern,
    parse_pattern,
)
from .simple_call_graph import SimpleCallGraph


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VulnerabilityPattern:
    """One advisory: a library version range and the API pattern that triggers it."""

    library: str
    version_min: str
    version_max: str
    pattern: str
    id: int | str

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "VulnerabilityPattern":
        try:
            return cls(
                library=str(data["library"]),
                version_min=str(data["versionMin"]),
                version_max=str(data["versionMax"]),
                pattern=str(data["pattern"]),
                id=data["id"],  # type: ignore[arg-type]
            )
        except KeyError as exc:
            raise ValueError(f"Vulnerability pattern is missing {exc.args[0]!r}: {data}") from exc

    def parsed(self) -> Pattern:
        return parse_pattern(self.pattern)

    def to_dict(self) -> Dict[str, object]:
        return {
            "library": self.library,
            "versionMin": self.version_min,
            "versionMax": self.version_max,
            "pattern": self.pattern,
            "id": self.id,
        }


def load_vulnerability_patterns(path: str | Path) -> List[VulnerabilityPattern]:
    """Read a JSON array of advisories; every pattern string is parsed up front."""

    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError(f"Vulnerability patterns in {path} must be a JSON array")
    patterns = []
    for item in data:
        if not isinstance(item, dict):
            raise ValueError(f"Vulnerability pattern must be an object: {item!r}")
        pattern = VulnerabilityPattern.from_dict(item)
        pattern.parsed()
        patterns.append(pattern)
    return patterns


@dataclass(frozen=True, slots=True)
class AdvisoryMatch:
    id: int | str
    library: str
    function: str
    stack_trace: tuple[str, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "library": self.library,
            "function": self.function,
            "stackTrace": list(self.stack_trace),
        }


@dataclass(slots=True)
class ScanResult:
    """Advisories reachable from the client main, plus graph statistics."""

    alarms: set = field(default_factory=set)
    matches: list[AdvisoryMatch] = field(default_factory=list)
    cg_construction_time: float = 0.0
    cg_filtering_time: float = 0.0
    number_functions_reachable: int = 0
    number_modules_reachable: int = 0
    number_packages_reachable: int = 0
    candidate_patterns: list[VulnerabilityPattern] = field(default_factory=list)
    call_graph: SimpleCallGraph | None = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "alarms": sorted(self.alarms, key=str),
            "matches": [match.to_dict() for match in self.matches],
            "cgConstructionTime": self.cg_construction_time,
            "cgFilteringTime": self.cg_filtering_time,
            "numberFunctionsReachable": self.number_functions_reachable,
            "numberModulesReachable": self.number_modules_reachable,
            "numberPackagesReachable": self.number_packages_reachable,
            "candidatePatterns": [pattern.to_dict() for pattern in self.candidate_patterns],
        }


def patterns_for_installed(
    patterns: Iterable[VulnerabilityPattern], installed: Iterable[InstalledPackage]
) -> List[VulnerabilityPattern]:
    """Patterns whose library is installed in a version inside the advisory range."""

    installed = list(installed)
    return [
        pattern
        for pattern in patterns
        if any(
            package.name == pattern.library
            and version_in_range(package.version, pattern.version_min, pattern.version_max)
            for package in installed
        )
    ]


def client_main_file(project_root: Path, client_main: Path | None = None) -> str:
    if client_main is not None:
        if not os.path.isfile(client_main):
            raise ModuleNotFound(f"Client main {client_main} does not exist")
        return os.path.abspath(client_main)
    return resolve_module(".", project_root)


def _access_path_patterns(pattern: CallPattern) -> List[AccessPathPattern]:
    access_path = pattern.access_path
    if isinstance(access_path, DisjunctionAccessPathPattern):
        return list(access_path.patterns)
    return [access_path]


def vulnerable_functions(
    graph: CallGraph, pattern: CallPattern, library_file: str
) -> List[AccessPath]:
    """Function creations and modules of the library that ``pattern`` denotes."""

    usage_model = graph.get_usage_model(library_file)
    if usage_model is None:
        return []
    found: List[AccessPath] = []
    for access_path in _access_path_patterns(pattern):
        if isinstance(access_path, ImportPathPattern):
            exports = usage_model.field_based_summary.get("exports", ())
            found.extend(graph.get_aps_for_resolved_nodes(exports))
        elif isinstance(access_path, PropertyPathPattern):
            for name in access_path.prop_names:
                found.extend(graph.get_aps_for_resolved_nodes(usage_model.field_based_summary.get(name, ())))
        elif isinstance(access_path, CallAccessPathPattern):
            exports = usage_model.field_based_summary.get("exports", ())
            for callee in graph.get_aps_for_resolved_nodes(exports):
                callee_file = callee.file if isinstance(callee, FunctionCreation) else library_file
                callee_model = graph.get_usage_model(callee_file) or usage_model
                found.extend(graph.get_aps_for_resolved_nodes(callee_model.returns_of(callee)))
        else:
            logger.warning("Unsupported access path pattern %s", access_path)
    return found


def imported_modules(reachable: SimpleCallGraph, pattern: ImportPattern, library: str) -> List[AccessPath]:
    """Reachable modules of ``library`` whose ``<library>/<relative path>`` matches the glob."""

    found: List[AccessPath] = []
    for module in sorted(reachable.modules_loaded(), key=str):
        if module.is_builtin:
            continue
        package_dir = estimate_npm_module(module.file_location)
        if package_name(package_dir) != library:
            continue
        relative = os.path.relpath(module.file_location, package_dir).replace(os.sep, "/")
        candidates = [f"{library}/{relative}"]
        if not pattern.only_default:
            candidates.append(library)
        if any(glob_match(candidate, pattern.import_path.glob) for candidate in candidates):
            found.append(module)
    return found


def call_sites_accepted(reachable: SimpleCallGraph, function: AccessPath, filters: Sequence[Filter]) -> bool:
    """Whether some reachable call of ``function`` passes every argument filter.

    Calls with unknown arguments (spread, ``apply``, callbacks invoked by
    built-ins) pass any filter.
    """

    key = str(function)
    for edge, targets in reachable.edge_to_targets.items():
        if not any(str(target) == key for target in targets):
            continue
        if edge.unknown_arguments or all(item.accepts(len(edge.args)) for item in filters):
            return True
    return False


def build_client_call_graph(
    config: ScannerConfig, main_file: str, dependency_tree: DependencyTree | None = None
) -> CallGraph:
    options = config.graph_options()
    options["dependency_tree"] = dependency_tree or DependencyTree.load(str(config.project_root))
    directory = str(config.project_root)
    if config.modular:
        graphs = build_call_graphs_for_dependencies(
            directory, config.strategy, config.modules_to_ignore, **options
        )
        if graphs:
            graph = join_call_graphs(graphs)
        else:
            graph = CallGraph(directory, config.strategy, config.modules_to_ignore, **options)
        return extend_call_graph_with_main(main_file, graph)
    graph = build_call_graph_from_main(directory, [main_file], config.strategy, config.modules_to_ignore, **options)
    if config.use_worklist:
        graph.resolve_unresolved_nodes()
    else:
        graph.resolve_unresolved_nodes_without_worklist()
    return graph


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


def scan_client(
    config: ScannerConfig,
    patterns: Sequence[VulnerabilityPattern] | None = None,
    installed: Sequence[InstalledPackage] | None = None,
    dependency_tree: DependencyTree | None = None,
) -> ScanResult:
    """Build the client's call graph and report advisories whose vulnerable API it reaches."""

    root = config.project_root
    logger.info("Looking for vulnerabilities in client %s", root)
    if patterns is None:
        if config.patterns_file is None:
            raise ValueError("No vulnerability patterns file configured")
        patterns = load_vulnerability_patterns(config.patterns_file)
    if installed is None:
        installed = list_dependencies(root)
    candidates = patterns_for_installed(patterns, installed)
    logger.debug("%d of %d patterns match installed versions", len(candidates), len(patterns))

    main_file = client_main_file(root, config.client_main)
    start = time.perf_counter()
    graph = build_client_call_graph(config, main_file, dependency_tree)
    construction_time = _elapsed_ms(start)
    start = time.perf_counter()
    reachable = graph.filter_reachable_edges_from_load_of_module(main_file)
    filtering_time = _elapsed_ms(start)

    result = ScanResult(
        cg_construction_time=construction_time,
        cg_filtering_time=filtering_time,
        number_functions_reachable=reachable.number_functions_reachable(),
        number_modules_reachable=reachable.number_modules_reachable(),
        number_packages_reachable=reachable.number_packages_reachable(),
        candidate_patterns=list(candidates),
        call_graph=reachable,
    )
    used = reachable.all_resolved_paths()
    for vulnerability in candidates:
        pattern = vulnerability.parsed()
        if isinstance(pattern, ReadPropertyPattern):
            logger.warning("Read patterns are not supported yet, skipping advisory %s", vulnerability.id)
            continue
        filters = pattern.filters if isinstance(pattern, CallPattern) else ()
        if isinstance(pattern, ImportPattern):
            functions = imported_modules(reachable, pattern, vulnerability.library)
        else:
            try:
                library_file = resolve_module(vulnerability.library, root)
            except ModuleNotFound:
                logger.warning("Cannot resolve vulnerable library %s from %s", vulnerability.library, root)
                continue
            functions = vulnerable_functions(graph, pattern, library_file)
        for function in dict.fromkeys(functions):
            if function not in used:
                continue
            if filters and not call_sites_accepted(reachable, function, filters):
                logger.debug(
                    "No call of %s passes the argument filters of advisory %s", function.pretty(), vulnerability.id
                )
                continue
            trace = reachable.stack_trace_to(function, config.stack_trace_depth)
            logger.warning("Usage of vulnerable function %s detected in client %s", function.pretty(), root)
            logger.warning("StackTrace: %s", "\n".join(frame.pretty() for frame in trace))
            result.alarms.add(vulnerability.id)
            result.matches.append(
                AdvisoryMatch(
                    id=vulnerability.id,
                    library=vulnerability.library,
                    function=str(function),
                    stack_trace=tuple(str(frame) for frame in trace[1:]),
                )
            )
    return result
