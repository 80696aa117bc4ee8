"""Node-style module resolution (``require.resolve``) for files on disk."""

from __future__ import annotations

import json
import os
from pathlib import Path
import re
from typing import Iterator, List

from .errors import ReachScanError


FILE_EXTENSIONS = (".js", ".json", ".node", ".mjs", ".cjs", ".ts")
NODE_CORE_MODULES = {
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console", "constants",
    "crypto", "dgram", "diagnostics_channel", "dns", "domain", "events", "fs", "http", "http2",
    "https", "inspector", "module", "net", "os", "path", "perf_hooks", "process", "punycode",
    "querystring", "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi", "worker_threads", "zlib",
}
_NPM_MODULE_PATTERN = re.compile(r"(.*node_modules/(?:@[^/]+/)?[^/]+)")


class ModuleNotFound(ReachScanError, LookupError):
    """Raised when a module specifier cannot be resolved."""


def is_builtin_module(specifier: str) -> bool:
    if specifier.startswith("node:"):
        return True
    return specifier.split("/")[0] in NODE_CORE_MODULES


def _package_main(directory: Path) -> str | None:
    package_file = directory / "package.json"
    if not package_file.is_file():
        return None
    try:
        data = json.loads(package_file.read_text())
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        return None
    main = data.get("main") if isinstance(data, dict) else None
    return main if isinstance(main, str) and main else None


def _load_as_file(candidate: Path) -> Path | None:
    if candidate.is_file():
        return candidate
    for ext in FILE_EXTENSIONS:
        target = candidate.with_name(candidate.name + ext)
        if target.is_file():
            return target
    return None


def _load_index(directory: Path) -> Path | None:
    for ext in FILE_EXTENSIONS:
        target = directory / f"index{ext}"
        if target.is_file():
            return target
    return None


def _load_as_directory(directory: Path) -> Path | None:
    if not directory.is_dir():
        return None
    main = _package_main(directory)
    if main:
        target = directory / main
        resolved = _load_as_file(target) or _load_index(target)
        if resolved:
            return resolved
    return _load_index(directory)


def _node_modules_dirs(start: Path) -> Iterator[Path]:
    current = start
    while True:
        if current.name != "node_modules":
            yield current / "node_modules"
        if current.parent == current:
            return
        current = current.parent


def _normalize(path: Path) -> str:
    return os.path.normpath(os.path.abspath(str(path)))


def resolve_module(specifier: str, base_dir: str | Path) -> str:
    """Resolve ``specifier`` as ``require`` would from a file in ``base_dir``.

    Core modules resolve to their bare name. Anything else resolves to an
    absolute file path, or raises :class:`ModuleNotFound`.
    """

    if is_builtin_module(specifier):
        return specifier[len("node:"):] if specifier.startswith("node:") else specifier
    base = Path(base_dir)
    if specifier.startswith(("./", "../", "/")) or specifier in {".", ".."}:
        candidate = base / specifier
        resolved = _load_as_file(candidate) or _load_as_directory(candidate)
        if resolved:
            return _normalize(resolved)
        raise ModuleNotFound(f"Cannot find module '{specifier}' from {base}")
    for modules_dir in _node_modules_dirs(Path(os.path.abspath(base))):
        candidate = modules_dir / specifier
        resolved = _load_as_file(candidate) or _load_as_directory(candidate)
        if resolved:
            return _normalize(resolved)
    raise ModuleNotFound(f"Cannot find module '{specifier}' from {base}")


def find_package_dir(name: str, from_dir: str | Path) -> str | None:
    """Directory of the installed package ``name`` visible from ``from_dir``."""

    for modules_dir in _node_modules_dirs(Path(os.path.abspath(from_dir))):
        candidate = modules_dir / name
        if candidate.is_dir():
            return _normalize(candidate)
    return None


def estimate_npm_module(file: str) -> str:
    """Package directory owning ``file``, or its basename outside ``node_modules``."""

    match = _NPM_MODULE_PATTERN.match(file.replace(os.sep, "/"))
    if match:
        return match.group(1)
    return os.path.basename(file)


def package_name(estimated_module: str) -> str:
    """Package name of an estimated module, e.g. ``@scope/name`` or ``lodash``."""

    parts: List[str] = estimated_module.replace(os.sep, "/").split("/")
    if len(parts) >= 2 and parts[-2].startswith("@"):
        return "/".join(parts[-2:])
    return parts[-1]
