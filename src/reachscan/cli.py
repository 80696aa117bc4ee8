"""Command-line entry points for the scanner."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Any, Dict

from .config import load_config
from .errors import DynamicAnalysisError
from .graph_export import write_dot
from .module_resolution import ModuleNotFound
from .reporters import render_human, render_json
from .scanner import client_main_file, scan_client


logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reachscan",
        description="Reachability of vulnerable npm library APIs",
    )
    subparsers = parser.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser("scan", help="Scan a client package")
    scan_parser.add_argument(
        "--project",
        default=".",
        help="Client package root (defaults to cwd)",
    )
    scan_parser.add_argument(
        "--config",
        help="Path to configuration file (.reachscanrc.json by default)",
    )
    scan_parser.add_argument(
        "--main",
        help="Entry file of the client (defaults to the package main)",
    )
    scan_parser.add_argument(
        "--patterns",
        help="JSON file with vulnerability patterns",
    )
    scan_parser.add_argument(
        "--strategy",
        choices=["normal", "field-based-from-library", "dynamic"],
        help="How property reads on library objects are resolved",
    )
    scan_parser.add_argument(
        "--scope",
        choices=["distance-1", "project"],
        help="Field-based scope for reads not tied to a library",
    )
    scan_parser.add_argument(
        "--no-modular",
        action="store_true",
        help="Build one graph from the main instead of one per dependency",
    )
    scan_parser.add_argument(
        "--no-worklist",
        action="store_true",
        help="Resolve by naive fixpoint iteration (only without modular builds)",
    )
    scan_parser.add_argument(
        "--format",
        choices=["json", "human"],
        default="json",
        help="Report format (default: json)",
    )
    scan_parser.add_argument(
        "--dot",
        help="Write the reachable call graph in Graphviz dot format to this path",
    )
    scan_parser.add_argument("--debug", action="store_true", help="Verbose logging")
    scan_parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    return parser


def _configure_logging(ns: argparse.Namespace) -> None:
    level = logging.INFO
    if ns.debug:
        level = logging.DEBUG
    elif ns.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _config_overrides(ns: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if ns.main:
        overrides["client_main"] = str(Path(ns.main).resolve())
    if ns.patterns:
        overrides["patterns_file"] = str(Path(ns.patterns).resolve())
    if ns.strategy:
        overrides["strategy"] = ns.strategy
    if ns.scope:
        overrides["field_based_scope"] = ns.scope
    if ns.no_modular:
        overrides["modular"] = False
    if ns.no_worklist:
        overrides["use_worklist"] = False
    return overrides


def _handle_scan(ns: argparse.Namespace) -> int:
    project_root = Path(ns.project)
    try:
        config = load_config(
            project_root=project_root,
            config_path=Path(ns.config) if ns.config else None,
            overrides=_config_overrides(ns) or None,
        )
        main_file = client_main_file(config.project_root, config.client_main)
        result = scan_client(config)
    except ModuleNotFound as exc:
        print(f"error: cannot find the client main: {exc}", file=sys.stderr)
        return 2
    except DynamicAnalysisError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    report = {
        "projectRoot": str(config.project_root),
        "clientMain": main_file,
        "config": config.to_dict(),
        **result.to_dict(),
    }
    if ns.dot and result.call_graph is not None:
        path = write_dot(result.call_graph, ns.dot)
        logger.info("Call graph written to %s", path)
    renderer = render_human if ns.format == "human" else render_json
    print(renderer(report))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1
    if args.command == "scan":
        _configure_logging(args)
        return _handle_scan(args)
    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
