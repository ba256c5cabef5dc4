"""Health-check configuration models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from swarm_commander.config.settings import settings
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.verify import RetryBudget


@dataclass
class EntityRule:
    """Caller-supplied desired-state rule for one entity (raw, unresolved)."""

    entity: Entity
    spec: dict[str, Any] = field(default_factory=dict)


@dataclass
class RetryConfig:
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 8.0

    def new_budget(self) -> RetryBudget:
        return RetryBudget(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )


@dataclass
class HealthConfig:
    rules: list[EntityRule] = field(default_factory=list)
    discover: bool = False
    discover_probes: bool = True
    # manager access and engine resource checks; rules files turn them on by default
    system_checks: bool = False
    timeout: float = field(default_factory=lambda: settings.query_timeout)
    max_workers: int = field(default_factory=lambda: settings.max_workers)
    retry: RetryConfig = field(default_factory=RetryConfig)

    def rules_for(self, kind: EntityKind) -> list[EntityRule]:
        return [r for r in self.rules if r.entity.kind is kind]
