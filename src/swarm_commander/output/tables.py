"""Rich table builders for each command."""

from __future__ import annotations

from rich.table import Table
from rich.text import Text

from swarm_commander.models.report import AggregateReport, Severity
from swarm_commander.models.verify import VerificationResult
from swarm_commander.output.themes import SEVERITY_COLORS, styled_severity, styled_verdict


def health_table(report: AggregateReport) -> Table:
    table = Table(title="Swarm Health", expand=True)
    table.add_column("", width=3, no_wrap=True)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Entity", style="bold", no_wrap=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Message")

    for r in report.results:
        table.add_row(
            styled_verdict(r.verdict.status),
            r.entity.kind.value,
            Text(r.entity.identifier),
            styled_severity(r.severity),
            Text(r.message),
        )
    return table


def summary_line(report: AggregateReport) -> str:
    counts = report.summary
    parts = [
        f"{counts['ok']} passed",
        f"{counts['warning']} warning(s)",
        f"{counts['error']} error(s)",
        f"{counts['info']} info",
    ]
    overall = report.overall
    color = SEVERITY_COLORS.get(overall, "white")
    headline = {
        Severity.INFO: "Swarm is healthy",
        Severity.OK: "Swarm is healthy",
        Severity.WARNING: "Swarm has minor issues to investigate",
        Severity.ERROR: "Swarm has critical issues that need attention",
    }[overall]
    return f"Summary: {', '.join(parts)}\n[{color}]{headline}[/{color}]"


def verification_table(result: VerificationResult) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold cyan", no_wrap=True)
    table.add_column("Value")

    state_color = "green" if result.succeeded else "red"
    table.add_row("Entity", Text(str(result.entity)))
    table.add_row("State", f"[{state_color}]{result.state.value}[/{state_color}]")
    table.add_row("Attempts", str(result.attempts))
    if result.verdict is not None:
        table.add_row("Verdict", styled_verdict(result.verdict.status))
    if result.reason:
        table.add_row("Reason", Text(result.reason))
    return table
