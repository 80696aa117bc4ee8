"""On-disk package models and the external dynamic analysis that produces them."""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
import shlex
import signal
import subprocess
from typing import Dict, FrozenSet, Mapping, Sequence

from .access_paths import (
    DUMMY_LOCATION,
    GLOBAL_OBJECTS,
    AccessPath,
    FunctionCreation,
    SourceLocation,
    global_object_path,
)
from .errors import DynamicAnalysisError
from .usage_model import MAIN_MODULE


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300
PRIMITIVE_TYPE_NAMES = {
    "string", "number", "boolean", "object", "undefined", "symbol", "regexp", "null", "bigint",
}


def default_package_model_dir() -> Path:
    override = os.environ.get("REACHSCAN_PACKAGE_MODEL_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cache" / "reachscan" / "package-models"


def package_model_path(file: str, model_dir: str | Path | None = None) -> Path:
    """Content-addressed cache location: ``sha1(contents)-basename.json``."""

    digest = hashlib.sha1(Path(file).read_bytes()).hexdigest()
    directory = Path(model_dir) if model_dir else default_package_model_dir()
    return directory / f"{digest}-{os.path.basename(file)}.json"


def load_package_model(path: str | Path) -> Dict[str, object] | None:
    try:
        data = json.loads(Path(path).read_text())
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _location_from_record(record: Mapping[str, object]) -> SourceLocation | None:
    start = record.get("start")
    end = record.get("end") or start
    if not isinstance(start, dict) or not isinstance(end, dict):
        return None
    try:
        return SourceLocation(
            int(start.get("line", 0)),
            int(start.get("column", 0)),
            int(end.get("line", 0)),
            int(end.get("column", 0)),
        )
    except (TypeError, ValueError):
        return None


def exports_from_package_model(
    package_model: Mapping[str, object],
    location_mapper: Mapping[str, SourceLocation],
    file: str,
    base_dir: str | None = None,
) -> Dict[str, FrozenSet[AccessPath]]:
    """Translate a package model into an exports summary.

    Location records become function creations (a class location is mapped to
    its constructor when the record points into ``file``), primitive type
    names export nothing and dotted built-in names become built-in imports.
    """

    base = base_dir or os.path.dirname(file)
    exports: Dict[str, FrozenSet[AccessPath]] = {}
    for member, value in package_model.items():
        if member.startswith(MAIN_MODULE + "."):
            member = member[len(MAIN_MODULE) + 1:]
        if isinstance(value, dict):
            location = _location_from_record(value)
            if location is None:
                logger.debug("Ignoring malformed package model entry %s in %s", member, file)
                continue
            source = value.get("source")
            target = os.path.normpath(os.path.join(base, source)) if isinstance(source, str) else file
            if target == file:
                location = location_mapper.get(location.start(), location)
            exports[member] = exports.get(member, frozenset()) | {FunctionCreation(location, target)}
        elif isinstance(value, str) and value in PRIMITIVE_TYPE_NAMES:
            exports.setdefault(member, frozenset())
        elif isinstance(value, str):
            builtin = value.split(".", 1)[0]
            if builtin not in GLOBAL_OBJECTS:
                logger.warning("No global object for %s (package model of %s)", builtin, file)
                continue
            exports[member] = exports.get(member, frozenset()) | {
                global_object_path(builtin, DUMMY_LOCATION, file)
            }
    return exports


def _expand_command(command: str | Sequence[str], source_file: str, output_file: str) -> list[str]:
    parts = shlex.split(command) if isinstance(command, str) else list(command)
    return [part.format(source=source_file, output=output_file) for part in parts]


def run_dynamic_analysis(
    command: str | Sequence[str],
    source_file: str,
    output_file: str | Path,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """Run the API inference command for ``source_file``.

    ``{source}`` and ``{output}`` placeholders in ``command`` are substituted.
    The process runs in its own session so a timeout can kill the whole
    process group.
    """

    argv = _expand_command(command, source_file, str(output_file))
    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    try:
        process = subprocess.Popen(
            argv,
            cwd=os.path.dirname(source_file) or None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            start_new_session=True,
        )
    except OSError as exc:
        raise DynamicAnalysisError(f"Could not start dynamic analysis {argv[0]!r}: {exc}") from exc
    try:
        _, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        process.communicate()
        raise DynamicAnalysisError(
            f"Dynamic analysis of {source_file} timed out after {timeout}s"
        ) from exc
    if process.returncode != 0:
        logger.warning(
            "Dynamic analysis of %s exited with %s: %s",
            source_file,
            process.returncode,
            (stderr or "").strip()[:500],
        )
    return process.returncode


def obtain_package_model(
    file: str,
    model_dir: str | Path | None = None,
    command: str | Sequence[str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Dict[str, object] | None:
    """Cached package model for ``file``, running the analysis when it is missing."""

    try:
        path = package_model_path(file, model_dir)
    except OSError as exc:
        logger.debug("Cannot hash %s: %s", file, exc)
        return None
    if not path.exists() and command:
        run_dynamic_analysis(command, file, path, timeout)
    if not path.exists():
        return None
    return load_package_model(path)
