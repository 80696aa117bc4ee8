"""Package parent/child relation parsed from ``npm ls --all`` text output."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import subprocess
from typing import Dict, List, Set, Tuple

from .module_resolution import estimate_npm_module, find_package_dir


logger = logging.getLogger(__name__)

NPM_LS_TREE_COMMAND = ["npm", "ls", "--all", "--only=prod"]
_TREE_CHARS = set(" │├└─┬|`+-\\")
_UNMET_PREFIXES = ("UNMET OPTIONAL DEPENDENCY ", "UNMET PEER DEPENDENCY ", "UNMET DEPENDENCY ")
_ERROR = "ERROR"


def _package_spec_name(spec: str) -> str:
    """``name`` of a ``name@version`` spec, keeping a leading ``@scope/``."""

    spec = spec.split()[0] if spec.split() else spec
    at = spec.find("@", 1)
    return spec if at < 0 else spec[:at]


def parse_npm_ls_tree(text: str) -> Tuple[str | None, List[Tuple[int, str]]]:
    """Split tree output into the root package name and ``(indent, name)`` entries."""

    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return None, []
    main = _package_spec_name(lines[0].strip())
    entries: List[Tuple[int, str]] = []
    for line in lines[1:]:
        index = next((i for i, char in enumerate(line) if char not in _TREE_CHARS), None)
        if index is None:
            continue
        rest = line[index:]
        for prefix in _UNMET_PREFIXES:
            if rest.startswith(prefix):
                index += len(prefix)
                rest = rest[len(prefix):]
                break
        if rest.startswith("("):
            continue
        entries.append((index, _package_spec_name(rest)))
    return main, entries


def _name_from_package_json(main_dir: str) -> str:
    try:
        data = json.loads((Path(main_dir) / "package.json").read_text())
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        data = {}
    name = data.get("name") if isinstance(data, dict) else None
    return name if isinstance(name, str) and name else os.path.basename(os.path.abspath(main_dir))


class DependencyTree:
    """Estimated packages and who depends on whom.

    The client package is known by its name; every installed dependency by
    its package directory, the same form :func:`estimate_npm_module` yields
    for files below ``node_modules``.
    """

    def __init__(self, main_dir: str, main_module: str | None = None) -> None:
        self.main_dir = os.path.abspath(main_dir)
        self.main_module = main_module or _name_from_package_json(self.main_dir)
        self.parent_map: Dict[str, Set[str]] = {}
        self.children_map: Dict[str, Set[str]] = {}

    @classmethod
    def from_npm_ls_output(cls, main_dir: str, text: str) -> "DependencyTree":
        main, entries = parse_npm_ls_tree(text)
        tree = cls(main_dir, main)
        stack = [tree.main_module]
        last_index = 2
        for index, name in entries:
            while index - 2 < last_index and len(stack) > 1:
                stack.pop()
                last_index -= 2
            last_index = index
            parent = stack[-1]
            parent_dir = tree.main_dir if parent == tree.main_module else parent
            package_dir = find_package_dir(name, parent_dir) if parent != _ERROR else None
            if package_dir is None:
                stack.append(_ERROR)
                continue
            tree.add_dependency(parent, package_dir)
            stack.append(package_dir)
        return tree

    @classmethod
    def load(cls, main_dir: str) -> "DependencyTree":
        """Run ``npm ls`` in ``main_dir``; a missing npm yields an empty tree."""

        try:
            completed = subprocess.run(
                NPM_LS_TREE_COMMAND,
                cwd=main_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            logger.warning("Could not run npm ls in %s: %s", main_dir, exc)
            return cls(main_dir)
        if completed.returncode != 0:
            logger.warning("npm ls exited with %s in %s, using its partial output", completed.returncode, main_dir)
        if not completed.stdout.strip():
            return cls(main_dir)
        return cls.from_npm_ls_output(main_dir, completed.stdout)

    def add_dependency(self, parent: str, child: str) -> None:
        self.children_map.setdefault(parent, set()).add(child)
        self.parent_map.setdefault(child, set()).add(parent)

    def get_estimated_npm_module(self, file: str) -> str:
        if "node_modules" in file:
            return estimate_npm_module(file)
        return self.main_module

    def get_modules_with_distance1(self, file: str) -> List[str]:
        module = self.get_estimated_npm_module(file)
        result = [module]
        result.extend(sorted(self.parent_map.get(module, ())))
        result.extend(sorted(self.children_map.get(module, ())))
        return result

    def get_modules_in_subtree(self, file: str) -> List[str]:
        result: List[str] = []
        worklist = [self.get_estimated_npm_module(file)]
        while worklist:
            item = worklist.pop()
            if item in result:
                continue
            result.append(item)
            worklist.extend(sorted(self.children_map.get(item, ())))
        return result
