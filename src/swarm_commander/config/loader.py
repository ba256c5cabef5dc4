"""Load health-check rules from a YAML file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from swarm_commander.errors import ConfigError
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.config import EntityRule, HealthConfig, RetryConfig

logger = logging.getLogger(__name__)

_SECTIONS: dict[str, EntityKind] = {
    "nodes": EntityKind.NODE,
    "services": EntityKind.SERVICE,
    "networks": EntityKind.NETWORK,
    "volumes": EntityKind.VOLUME,
    "probes": EntityKind.PROBE,
}
_OPTIONS = {"discover", "discover_probes", "system_checks", "timeout", "max_workers", "retry"}


def probe_identifier(host: str, port: int, protocol: str = "tcp") -> str:
    return f"{host}:{port}/{protocol}"


def load_config(path: Path, required: bool = True) -> HealthConfig:
    """Load a rules file. A missing optional file means "discover everything"."""
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug("No config file at %s, falling back to discovery", path)
        return HealthConfig(discover=True, system_checks=True)
    try:
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return parse_config(data or {})


def parse_config(data: Any) -> HealthConfig:
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    unknown = set(data) - set(_SECTIONS) - _OPTIONS
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    cfg = HealthConfig(
        discover=_bool(data, "discover", False),
        discover_probes=_bool(data, "discover_probes", True),
        system_checks=_bool(data, "system_checks", True),
        retry=_retry(data.get("retry") or {}),
    )
    if "timeout" in data:
        cfg.timeout = _number(data["timeout"], "timeout", positive=True)
    if "max_workers" in data:
        cfg.max_workers = int(_number(data["max_workers"], "max_workers", positive=True))

    for section, kind in _SECTIONS.items():
        entries = data.get(section) or []
        if not isinstance(entries, list):
            raise ConfigError(f"'{section}' must be a list")
        seen: set[str] = set()
        for entry in entries:
            rule = _entity_rule(kind, entry)
            if rule.entity.identifier in seen:
                raise ConfigError(f"Duplicate {kind.value} '{rule.entity.identifier}'")
            seen.add(rule.entity.identifier)
            cfg.rules.append(rule)
    return cfg


def _entity_rule(kind: EntityKind, entry: Any) -> EntityRule:
    if isinstance(entry, str) and kind is not EntityKind.PROBE:
        entry = {"name": entry}
    if not isinstance(entry, dict):
        raise ConfigError(f"Invalid {kind.value} entry: {entry!r}")

    spec = dict(entry)
    if kind is EntityKind.PROBE:
        host = spec.get("host")
        if not host:
            raise ConfigError(f"Probe entry without host: {entry!r}")
        protocol = str(spec.get("protocol", "tcp")).lower()
        if protocol not in ("tcp", "udp"):
            raise ConfigError(f"Probe protocol must be tcp or udp, got '{protocol}'")
        spec["protocol"] = protocol
        # port is validated by the resolver so the error names the entity
        identifier = probe_identifier(str(host), spec.get("port", "?"), protocol)
    else:
        name = spec.pop("name", None)
        if not name:
            raise ConfigError(f"{kind.value.capitalize()} entry without name: {entry!r}")
        identifier = str(name)
    return EntityRule(entity=Entity(kind, identifier), spec=spec)


def _retry(data: Any) -> RetryConfig:
    if not isinstance(data, dict):
        raise ConfigError("'retry' must be a mapping")
    retry = RetryConfig()
    if "max_attempts" in data:
        retry.max_attempts = int(_number(data["max_attempts"], "retry.max_attempts", positive=True))
    if "base_delay" in data:
        retry.base_delay = _number(data["base_delay"], "retry.base_delay")
    if "max_delay" in data:
        retry.max_delay = _number(data["max_delay"], "retry.max_delay")
    return retry


def _bool(data: dict, key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false")
    return value


def _number(value: Any, key: str, positive: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' must be a number")
    if value < 0 or (positive and value == 0):
        raise ConfigError(f"'{key}' must be {'positive' if positive else 'non-negative'}")
    return float(value)
