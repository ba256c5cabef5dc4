"""Build desired-state predicates from caller-supplied rules."""

from __future__ import annotations

from typing import Any, Callable

from swarm_commander.errors import ConfigError
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.config import EntityRule, HealthConfig
from swarm_commander.models.predicates import AtLeastVersion, Equals, EqualsField, Predicate, Superset
from swarm_commander.models.state import DesiredState

# Replica target meaning "whatever the service spec asks for".
SPEC_REPLICAS = "spec"


def desired_labels(labels: Any) -> frozenset[str]:
    """Turn a label rule (list of tags or key/value mapping) into comparable tokens."""
    if isinstance(labels, str):
        return frozenset(t.strip() for t in labels.split(",") if t.strip())
    if isinstance(labels, dict):
        return frozenset(f"{k}={v}" if v not in (None, "") else str(k) for k, v in labels.items())
    if isinstance(labels, (list, tuple, set, frozenset)):
        return frozenset(str(v) for v in labels)
    raise ConfigError(f"labels must be a list, mapping or comma-separated string, got {labels!r}")


def _node(entity: Entity, rule: dict[str, Any]) -> dict[str, Predicate]:
    fields: dict[str, Predicate] = {
        "status": Equals(str(rule.get("status", "ready")).lower()),
        "availability": Equals(str(rule.get("availability", "active")).lower()),
    }
    if "role" in rule:
        role = str(rule["role"]).lower()
        if role not in ("manager", "worker"):
            raise ConfigError(f"{entity}: role must be manager or worker, got '{role}'")
        fields["role"] = Equals(role)
    if "labels" in rule:
        fields["labels"] = Superset(desired_labels(rule["labels"]))
    if "engine_version" in rule:
        fields["engine_version"] = AtLeastVersion(str(rule["engine_version"]))
    return fields


def _service(entity: Entity, rule: dict[str, Any]) -> dict[str, Predicate]:
    mode = str(rule.get("mode", "replicated")).lower()
    if mode == "global":
        if "replicas" in rule:
            raise ConfigError(f"{entity}: global services take no replica target")
        fields: dict[str, Predicate] = {
            "mode": Equals("global"),
            "replicas_running": EqualsField("eligible_nodes"),
        }
    elif mode == "replicated":
        if "replicas" not in rule:
            raise ConfigError(f"{entity}: replicated service needs a 'replicas' target")
        replicas = rule["replicas"]
        if replicas == SPEC_REPLICAS:
            target: Predicate = EqualsField("replicas_desired")
        elif isinstance(replicas, int) and not isinstance(replicas, bool) and replicas >= 0:
            target = Equals(replicas)
        else:
            raise ConfigError(f"{entity}: replicas must be a non-negative integer or '{SPEC_REPLICAS}'")
        fields = {"mode": Equals("replicated"), "replicas_running": target}
    else:
        raise ConfigError(f"{entity}: mode must be replicated or global, got '{mode}'")
    if "image" in rule:
        fields["image"] = Equals(str(rule["image"]))
    return fields


def _network(entity: Entity, rule: dict[str, Any]) -> dict[str, Predicate]:
    fields: dict[str, Predicate] = {}
    for key in ("driver", "scope"):
        if key in rule:
            fields[key] = Equals(str(rule[key]))
    if "attachable" in rule:
        fields["attachable"] = Equals(bool(rule["attachable"]))
    return fields


def _volume(entity: Entity, rule: dict[str, Any]) -> dict[str, Predicate]:
    return {key: Equals(str(rule[key])) for key in ("driver", "scope") if key in rule}


def _probe(entity: Entity, rule: dict[str, Any]) -> dict[str, Predicate]:
    port = rule.get("port")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError(f"{entity}: probe needs a port between 1 and 65535")
    return {"reachable": Equals(True)}


def _manager(entity: Entity, rule: dict[str, Any]) -> dict[str, Predicate]:
    return {"accessible": Equals(True)}


def _system(entity: Entity, rule: dict[str, Any]) -> dict[str, Predicate]:
    return {"available": Equals(True)}


_RESOLVERS: dict[EntityKind, Callable[[Entity, dict[str, Any]], dict[str, Predicate]]] = {
    EntityKind.MANAGER: _manager,
    EntityKind.NODE: _node,
    EntityKind.SERVICE: _service,
    EntityKind.NETWORK: _network,
    EntityKind.VOLUME: _volume,
    EntityKind.SYSTEM: _system,
    EntityKind.PROBE: _probe,
}


def resolve(entity: Entity, rule: dict[str, Any] | None = None) -> DesiredState:
    """Compute the desired state of one entity. Pure; raises ConfigError."""
    fields = _RESOLVERS[entity.kind](entity, dict(rule or {}))
    return DesiredState(entity=entity, fields=fields)


def resolve_rule(rule: EntityRule) -> DesiredState:
    return resolve(rule.entity, rule.spec)


def resolve_all(config: HealthConfig) -> dict[Entity, DesiredState]:
    """Resolve every declared rule up front so bad config fails before any query."""
    return {rule.entity: resolve_rule(rule) for rule in config.rules}


def default_rule(kind: EntityKind, listing: dict[str, Any] | None = None) -> dict[str, Any]:
    """Rule applied to discovered entities that the config does not declare."""
    if kind is EntityKind.SERVICE:
        if str((listing or {}).get("Mode", "")).lower() == "global":
            return {"mode": "global"}
        return {"replicas": SPEC_REPLICAS}
    return {}
