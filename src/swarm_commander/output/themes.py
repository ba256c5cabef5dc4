"""Severity and verdict color maps."""

from swarm_commander.models.report import Severity, VerdictStatus

SEVERITY_COLORS: dict[Severity, str] = {
    Severity.INFO: "blue",
    Severity.OK: "green",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red bold",
}

VERDICT_SYMBOLS: dict[VerdictStatus, str] = {
    VerdictStatus.CONVERGED: "✓",
    VerdictStatus.DIVERGED: "✗",
    VerdictStatus.UNKNOWN: "?",
}

VERDICT_COLORS: dict[VerdictStatus, str] = {
    VerdictStatus.CONVERGED: "green",
    VerdictStatus.DIVERGED: "red",
    VerdictStatus.UNKNOWN: "magenta",
}


def styled_severity(severity: Severity) -> str:
    color = SEVERITY_COLORS.get(severity, "white")
    return f"[{color}]{severity.label}[/{color}]"


def styled_verdict(status: VerdictStatus) -> str:
    color = VERDICT_COLORS.get(status, "white")
    return f"[{color}]{VERDICT_SYMBOLS.get(status, '?')}[/{color}]"
