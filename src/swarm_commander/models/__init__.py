"""Data models for Swarm Commander."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class EntityKind(enum.Enum):
    """Kinds of checked objects, declared in health-check pipeline order."""

    MANAGER = "manager"
    NODE = "node"
    SERVICE = "service"
    NETWORK = "network"
    VOLUME = "volume"
    SYSTEM = "system"
    PROBE = "probe"

    @property
    def order(self) -> int:
        return list(EntityKind).index(self)

    @property
    def plural(self) -> str:
        return "connectivity probes" if self is EntityKind.PROBE else f"{self.value}s"


@dataclass(frozen=True)
class Entity:
    kind: EntityKind
    identifier: str

    def __str__(self) -> str:
        return f"{self.kind.value} {self.identifier}"
