"""Installed package versions and vulnerable-range checks."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
import subprocess
from typing import Dict, List, Mapping, Set

from packaging.version import InvalidVersion, Version


logger = logging.getLogger(__name__)

NPM_LS_JSON_COMMAND = ["npm", "ls", "--json", "--all"]


@dataclass(frozen=True, slots=True)
class InstalledPackage:
    """One installed ``name@version``; a package may be installed in several versions."""

    name: str
    version: str

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "version": self.version}


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _flatten_dependencies(node: Mapping[str, object], acc: Set[InstalledPackage]) -> None:
    deps = node.get("dependencies")
    if not isinstance(deps, dict):
        return
    worklist = [deps]
    while worklist:
        current = worklist.pop()
        for name, entry in current.items():
            if not isinstance(entry, dict):
                continue
            version = entry.get("version")
            if isinstance(version, str):
                acc.add(InstalledPackage(name, version))
            nested = entry.get("dependencies")
            if isinstance(nested, dict):
                worklist.append(nested)


def _flatten_lockfile_packages(data: Mapping[str, object], acc: Set[InstalledPackage]) -> None:
    """``packages`` section of lockfile v2/v3, keyed by ``node_modules/...`` paths."""

    packages = data.get("packages")
    if not isinstance(packages, dict):
        return
    for path, entry in packages.items():
        if not path or not isinstance(entry, dict):
            continue
        version = entry.get("version")
        if not isinstance(version, str):
            continue
        name = entry.get("name")
        if not isinstance(name, str):
            name = path.rsplit("node_modules/", 1)[-1]
        acc.add(InstalledPackage(name, version))


def _packages_from_lockfile(root: Path) -> List[InstalledPackage]:
    lock_file = root / "package-lock.json"
    if not lock_file.exists():
        return []
    data = _read_json(lock_file)
    collected: Set[InstalledPackage] = set()
    _flatten_lockfile_packages(data, collected)
    _flatten_dependencies(data, collected)
    return sorted(collected, key=lambda package: (package.name, package.version))


def parse_npm_ls_json(text: str) -> List[InstalledPackage]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("npm ls produced output that is not JSON")
        return []
    if not isinstance(data, dict):
        return []
    collected: Set[InstalledPackage] = set()
    _flatten_dependencies(data, collected)
    return sorted(collected, key=lambda package: (package.name, package.version))


def list_dependencies(project_root: str | Path) -> List[InstalledPackage]:
    """Every installed package of the project, direct or transitive.

    ``npm ls`` exits non-zero on unmet peer dependencies while still
    printing a usable tree, so its output is used regardless. Without npm
    the versions come from ``package-lock.json``.
    """

    root = Path(project_root)
    try:
        completed = subprocess.run(
            NPM_LS_JSON_COMMAND,
            cwd=root,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        logger.warning("Could not run npm ls in %s, reading package-lock.json: %s", root, exc)
        return _packages_from_lockfile(root)
    if completed.returncode != 0:
        logger.warning("npm ls exited with %s in %s, using its partial output", completed.returncode, root)
    if not completed.stdout.strip():
        return _packages_from_lockfile(root)
    return parse_npm_ls_json(completed.stdout)


def direct_dependencies(project_root: str | Path) -> Dict[str, str]:
    """Names and declared ranges from the ``dependencies`` of ``package.json``."""

    data = _read_json(Path(project_root) / "package.json")
    deps = data.get("dependencies") or {}
    if not isinstance(deps, dict):
        return {}
    return {name: spec for name, spec in deps.items() if isinstance(spec, str)}


def _normalize_version(value: str) -> Version | None:
    cleaned = value.strip()
    for prefix in ("^", "~", "=", "v"):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):].strip()
    if not cleaned:
        return None
    try:
        return Version(cleaned)
    except InvalidVersion:
        # npm prereleases look like 1.2.3-beta.1
        head, _, tail = cleaned.partition("-")
        try:
            return Version(f"{head}.dev0" if tail else head)
        except InvalidVersion:
            return None


def version_in_range(version: str, version_min: str, version_max: str) -> bool:
    """``version_min <= version <= version_max``; unparsable versions never match."""

    installed = _normalize_version(version)
    low = _normalize_version(version_min)
    high = _normalize_version(version_max)
    if installed is None or low is None or high is None:
        return False
    return low <= installed <= high
