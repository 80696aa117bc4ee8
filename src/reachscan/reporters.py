"""Report renderers for the CLI output."""

from __future__ import annotations

import json
from typing import Dict, List


def render_json(report: Dict[str, object]) -> str:
    return json.dumps(report, indent=2)


def render_human(report: Dict[str, object]) -> str:
    lines = []
    lines.append(f"Project: {report.get('projectRoot')}")
    if report.get("clientMain"):
        lines.append(f"Client main: {report['clientMain']}")
    lines.append(
        "Reachable: "
        f"{report.get('numberFunctionsReachable', 0)} functions, "
        f"{report.get('numberModulesReachable', 0)} modules, "
        f"{report.get('numberPackagesReachable', 0)} packages"
    )
    lines.append(
        f"Call graph: built in {report.get('cgConstructionTime', 0)} ms, "
        f"filtered in {report.get('cgFilteringTime', 0)} ms"
    )
    candidates = report.get("candidatePatterns") or []
    lines.append(f"Advisories for installed versions: {len(candidates)}")
    alarms: List[object] = list(report.get("alarms") or [])
    lines.append(f"Reachable advisories: {len(alarms)}")
    for match in report.get("matches") or []:
        lines.append(f"- [{match.get('id')}] {match.get('library')}: {match.get('function')}")
        for frame in match.get("stackTrace") or []:
            lines.append(f"    at {frame}")
    return "\n".join(lines)
