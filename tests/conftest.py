"""Shared fixtures: an in-memory control plane standing in for docker."""

from __future__ import annotations

import threading
import time
from typing import Any

import pytest

from swarm_commander.errors import QueryError
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.state import ObservedState


def node(name: str) -> Entity:
    return Entity(EntityKind.NODE, name)


def service(name: str) -> Entity:
    return Entity(EntityKind.SERVICE, name)


def observed(entity: Entity, **fields: Any) -> ObservedState:
    return ObservedState(entity=entity, fields=fields)


def ready_node(entity: Entity, role: str = "manager", labels: set[str] | None = None) -> ObservedState:
    return observed(
        entity,
        hostname=entity.identifier,
        status="ready",
        availability="active",
        role=role,
        labels=frozenset(labels or ()),
        engine_version="24.0.7",
        manager_reachability="reachable" if role == "manager" else "",
        leader=False,
    )


class FakeQuery:
    """Duck-typed StateQuery.

    ``states`` maps an entity to an ObservedState, an exception, or a list of
    those consumed one per fetch (the last one repeats).
    """

    def __init__(
        self,
        states: dict[Entity, Any] | None = None,
        listings: dict[EntityKind, Any] | None = None,
        delays: dict[Entity, float] | None = None,
    ):
        self.states = dict(states or {})
        self.listings = dict(listings or {})
        self.delays = dict(delays or {})
        self.calls: list[Entity] = []
        self.completed: list[Entity] = []
        self._lock = threading.Lock()

    def fetch(self, entity: Entity) -> ObservedState:
        with self._lock:
            self.calls.append(entity)
            value = self.states.get(entity)
            if isinstance(value, list):
                value = value.pop(0) if len(value) > 1 else value[0]
        if entity in self.delays:
            time.sleep(self.delays[entity])
        with self._lock:
            self.completed.append(entity)
        if value is None:
            return ObservedState.absent(entity)
        if isinstance(value, BaseException):
            raise value
        return value

    def list_entities(self, kind: EntityKind) -> list[tuple[Entity, dict[str, Any]]]:
        value = self.listings.get(kind, [])
        if isinstance(value, QueryError):
            raise value
        return value


@pytest.fixture
def fake_query() -> FakeQuery:
    return FakeQuery()
