"""Observed and desired entity state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from swarm_commander.models import Entity
from swarm_commander.models.predicates import Predicate


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ObservedState:
    """A snapshot of one entity as reported by the control plane.

    Replaced, never mutated: every query produces a new instance.
    """

    entity: Entity
    fields: Mapping[str, Any] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=_utcnow)
    exists: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def absent(cls, entity: Entity) -> ObservedState:
        return cls(entity=entity, fields={}, exists=False)


@dataclass(frozen=True)
class DesiredState:
    """Target state for one entity: field name -> predicate, in evaluation order."""

    entity: Entity
    fields: Mapping[str, Predicate] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
