"""Exception hierarchy for Swarm Commander."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from swarm_commander.models.verify import VerificationResult


class SwarmCommanderError(Exception):
    """Base class for all errors raised by this package."""


class QueryErrorKind(enum.Enum):
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"


class QueryError(SwarmCommanderError):
    """The control plane could not answer a state query."""

    def __init__(self, kind: QueryErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class CommandError(SwarmCommanderError):
    """A state-mutating control-plane command failed."""


class ConfigError(SwarmCommanderError):
    """Desired-state configuration is incomplete or invalid."""


class ConvergenceTimeout(SwarmCommanderError):
    """A verification ran out of retry budget before converging."""

    def __init__(self, result: VerificationResult):
        super().__init__(
            f"{result.entity} did not converge after {result.attempts} attempt(s): {result.reason}"
        )
        self.result = result
