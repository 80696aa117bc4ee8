"""Configuration loading helpers for the scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any, Dict, Iterable

from .call_graph import FieldBasedScope, FieldBasedStrategy
from .package_model import DEFAULT_TIMEOUT, default_package_model_dir


DEFAULT_CONFIG: Dict[str, Any] = {
    "client_main": None,
    "strategy": FieldBasedStrategy.FIELD_BASED_FROM_LIBRARY.value,
    "field_based_scope": FieldBasedScope.DISTANCE_1.value,
    "modular": True,
    "modules_to_ignore": [],
    "patterns_file": "vulnerability-patterns.json",
    "package_model_dir": None,
    "dynamic_analysis_command": None,
    "dynamic_analysis_timeout": DEFAULT_TIMEOUT,
    "stack_trace_depth": 10,
    "use_worklist": True,
}


@dataclass(slots=True)
class ScannerConfig:
    """Represents the flattened scanner configuration."""

    project_root: Path
    client_main: Path | None = None
    strategy: FieldBasedStrategy = FieldBasedStrategy.FIELD_BASED_FROM_LIBRARY
    field_based_scope: FieldBasedScope = FieldBasedScope.DISTANCE_1
    modular: bool = True
    modules_to_ignore: list[str] = field(default_factory=list)
    patterns_file: Path | None = None
    package_model_dir: Path | None = None
    dynamic_analysis_command: str | list[str] | None = None
    dynamic_analysis_timeout: float = DEFAULT_TIMEOUT
    stack_trace_depth: int = 10
    use_worklist: bool = True

    def graph_options(self) -> Dict[str, Any]:
        """Keyword options shared by every call graph built for this scan."""

        return {
            "scope": self.field_based_scope,
            "package_model_dir": self.package_model_dir,
            "dynamic_analysis_command": self.dynamic_analysis_command,
            "dynamic_analysis_timeout": self.dynamic_analysis_timeout,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_root": str(self.project_root),
            "client_main": str(self.client_main) if self.client_main else None,
            "strategy": self.strategy.value,
            "field_based_scope": self.field_based_scope.value,
            "modular": self.modular,
            "modules_to_ignore": list(self.modules_to_ignore),
            "patterns_file": str(self.patterns_file) if self.patterns_file else None,
            "package_model_dir": str(self.package_model_dir) if self.package_model_dir else None,
            "dynamic_analysis_command": self.dynamic_analysis_command,
            "dynamic_analysis_timeout": self.dynamic_analysis_timeout,
            "stack_trace_depth": self.stack_trace_depth,
            "use_worklist": self.use_worklist,
        }


def _merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = {**base}
    for key, value in updates.items():
        if (
            isinstance(value, dict)
            and isinstance(merged.get(key), dict)
        ):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_json_file(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {path} must be a JSON object")
    return data


def _config_sources(project_root: Path, user_config: Path | None) -> Iterable[Path]:
    default_file = project_root / ".reachscanrc.json"
    if default_file.exists():
        yield default_file
    if user_config is not None:
        user_file = user_config
        if not user_file.is_absolute():
            user_file = project_root / user_file
        if not user_file.exists():
            raise ValueError(f"Configuration file {user_file} does not exist")
        yield user_file


def _relative_path(root: Path, value: Any) -> Path | None:
    if not value:
        return None
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else root / path


def _enum_value(enum_type, value: Any, key: str):
    try:
        return enum_type(value)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_type)
        raise ValueError(f"Invalid {key} {value!r}, expected one of: {choices}") from exc


def load_config(
    project_root: Path,
    config_path: Path | None = None,
    overrides: Dict[str, Any] | None = None,
) -> ScannerConfig:
    """Load configuration from defaults, files, and CLI overrides."""

    root = project_root.expanduser().resolve()
    config_data: Dict[str, Any] = {**DEFAULT_CONFIG}
    for path in _config_sources(root, config_path):
        config_data = _merge(config_data, _read_json_file(path))
    if overrides:
        config_data = _merge(config_data, overrides)

    model_dir = _relative_path(root, config_data.get("package_model_dir")) or default_package_model_dir()
    ignore = config_data.get("modules_to_ignore") or []
    if not isinstance(ignore, list):
        raise ValueError("modules_to_ignore must be a list of package names")
    try:
        timeout = float(config_data.get("dynamic_analysis_timeout", DEFAULT_TIMEOUT))
        depth = int(config_data.get("stack_trace_depth", 10))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid numeric configuration value: {exc}") from exc
    return ScannerConfig(
        project_root=root,
        client_main=_relative_path(root, config_data.get("client_main")),
        strategy=_enum_value(FieldBasedStrategy, config_data.get("strategy"), "strategy"),
        field_based_scope=_enum_value(FieldBasedScope, config_data.get("field_based_scope"), "field_based_scope"),
        modular=bool(config_data.get("modular", True)),
        modules_to_ignore=[str(name) for name in ignore],
        patterns_file=_relative_path(root, config_data.get("patterns_file")),
        package_model_dir=model_dir,
        dynamic_analysis_command=config_data.get("dynamic_analysis_command"),
        dynamic_analysis_timeout=timeout,
        stack_trace_depth=depth,
        use_worklist=bool(config_data.get("use_worklist", True)),
    )
