"""Retry budget and verification result models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from swarm_commander.errors import ConvergenceTimeout
from swarm_commander.models import Entity
from swarm_commander.models.report import Verdict


@dataclass
class RetryBudget:
    """Attempt allowance for one verification call, with capped exponential backoff."""

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 8.0
    remaining: int = field(init=False)
    claimed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        self.remaining = self.max_attempts

    def claim(self) -> None:
        """Bind the budget to one verification call."""
        if self.claimed:
            raise ValueError("retry budget already consumed by another verification")
        self.claimed = True

    def consume(self) -> int:
        self.remaining = max(self.remaining - 1, 0)
        return self.remaining

    def delay_for(self, attempt: int) -> float:
        """Backoff after the zero-based attempt number."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)


class VerifierState(enum.Enum):
    POLLING = "polling"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


@dataclass
class VerificationResult:
    entity: Entity
    state: VerifierState
    verdict: Verdict | None = None
    attempts: int = 0
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is VerifierState.CONVERGED

    def raise_for_status(self) -> None:
        if not self.succeeded:
            raise ConvergenceTimeout(self)
