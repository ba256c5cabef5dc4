"""Verdict, check result and aggregate report models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

from swarm_commander.models import Entity


class VerdictStatus(enum.Enum):
    CONVERGED = "converged"
    DIVERGED = "diverged"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Verdict:
    status: VerdictStatus
    reason: str = ""

    @classmethod
    def converged(cls, reason: str = "") -> Verdict:
        return cls(VerdictStatus.CONVERGED, reason)

    @classmethod
    def diverged(cls, reason: str) -> Verdict:
        return cls(VerdictStatus.DIVERGED, reason)

    @classmethod
    def unknown(cls, reason: str) -> Verdict:
        return cls(VerdictStatus.UNKNOWN, reason)

    @property
    def is_converged(self) -> bool:
        return self.status is VerdictStatus.CONVERGED


class Severity(enum.IntEnum):
    """Total order used to reduce many results to one: INFO < OK < WARNING < ERROR."""

    INFO = 0
    OK = 1
    WARNING = 2
    ERROR = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class CheckResult:
    entity: Entity
    verdict: Verdict
    severity: Severity
    message: str


@dataclass
class AggregateReport:
    results: list[CheckResult] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def overall(self) -> Severity:
        if not self.results:
            return Severity.OK
        return max(r.severity for r in self.results)

    @property
    def summary(self) -> dict[str, int]:
        counts = {s.label: 0 for s in Severity}
        for r in self.results:
            counts[r.severity.label] += 1
        return counts
