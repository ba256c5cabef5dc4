"""Render an aggregate report as text plus a process exit code."""

from __future__ import annotations

import io
import json
from dataclasses import dataclass
from typing import Any

import yaml
from rich.console import Console

from swarm_commander.models.report import AggregateReport, Severity
from swarm_commander.output.tables import health_table, summary_line
from swarm_commander.output.themes import VERDICT_SYMBOLS

FORMATS = ("table", "json", "yaml")

# 0 is fully healthy; non-zero codes let scripts branch on severity.
EXIT_CODES: dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.OK: 0,
    Severity.WARNING: 2,
    Severity.ERROR: 1,
}


@dataclass
class RenderedReport:
    text: str
    exit_code: int


def exit_code_for(severity: Severity) -> int:
    return EXIT_CODES[severity]


def report_to_dict(report: AggregateReport) -> dict[str, Any]:
    return {
        "generated_at": report.generated_at.isoformat(),
        "overall": report.overall.label,
        "exit_code": exit_code_for(report.overall),
        "summary": report.summary,
        "results": [
            {
                "kind": r.entity.kind.value,
                "entity": r.entity.identifier,
                "verdict": r.verdict.status.value,
                "symbol": VERDICT_SYMBOLS[r.verdict.status],
                "severity": r.severity.label,
                "message": r.message,
            }
            for r in report.results
        ],
        "notes": list(report.notes),
    }


def render_table_text(report: AggregateReport, width: int = 120) -> str:
    """Plain-text rendering of the rich health table, notes and summary."""
    buffer = io.StringIO()
    console = Console(file=buffer, width=width, force_terminal=False, color_system=None, highlight=False)
    console.print(health_table(report))
    for note in report.notes:
        console.print(f"i {note}", markup=False)
    console.print(summary_line(report))
    return buffer.getvalue()


def render(report: AggregateReport, fmt: str = "table") -> RenderedReport:
    if fmt == "json":
        text = json.dumps(report_to_dict(report), indent=2, ensure_ascii=False)
    elif fmt == "yaml":
        text = yaml.safe_dump(report_to_dict(report), default_flow_style=False, sort_keys=False, allow_unicode=True)
    elif fmt == "table":
        text = render_table_text(report)
    else:
        raise ValueError(f"Unknown output format '{fmt}', expected one of {', '.join(FORMATS)}")
    return RenderedReport(text=text, exit_code=exit_code_for(report.overall))
