"""Fetch observed state for swarm entities."""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections import Counter
from typing import Any, Callable

from swarm_commander.config.settings import settings
from swarm_commander.core.docker_client import DockerClient
from swarm_commander.errors import QueryError, QueryErrorKind
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.state import ObservedState

logger = logging.getLogger(__name__)


def normalize_labels(labels: dict[str, str] | None, tag_label: str | None = None) -> frozenset[str]:
    """Flatten docker labels into a set of comparable tokens.

    Every label becomes ``key=value`` (or ``key`` when the value is empty). The
    comma-separated tag label (``tags=dns,web``) also contributes its bare tokens.
    """
    tag_label = tag_label or settings.tag_label
    tokens: set[str] = set()
    for key, value in (labels or {}).items():
        tokens.add(f"{key}={value}" if value else key)
        if key == tag_label and value:
            tokens.update(t.strip() for t in str(value).split(",") if t.strip())
    return frozenset(tokens)


def parse_probe(identifier: str) -> tuple[str, int, str]:
    """Split ``host:port/protocol`` into its parts."""
    target, _, protocol = identifier.partition("/")
    host, _, port = target.rpartition(":")
    try:
        return host.strip("[]"), int(port), (protocol or "tcp").lower()
    except ValueError as e:
        raise QueryError(QueryErrorKind.MALFORMED, f"invalid probe target '{identifier}'") from e


def resolve_address(host: str, port: int, socktype: int, timeout: float) -> tuple:
    """Bounded ``getaddrinfo``: the resolver ignores socket timeouts.

    The lookup runs on a daemon thread; an overrun raises ``socket.timeout``
    and leaves the thread to finish on its own.
    """
    outcome: dict[str, Any] = {}

    def lookup() -> None:
        try:
            outcome["info"] = socket.getaddrinfo(host, port, type=socktype)
        except (OSError, ValueError) as e:
            outcome["error"] = e

    worker = threading.Thread(target=lookup, name=f"scom-resolve-{host}", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise socket.timeout(f"name resolution for {host} timed out after {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]
    if not outcome.get("info"):
        raise socket.gaierror(f"no address for {host}")
    return outcome["info"][0]


def _failed(e: Exception) -> dict[str, Any]:
    return {"reachable": False, "latency_ms": None, "error": str(e) or type(e).__name__}


def probe_tcp(host: str, port: int, timeout: float) -> dict[str, Any]:
    start = time.monotonic()
    try:
        *_, sockaddr = resolve_address(host, port, socket.SOCK_STREAM, timeout)
        remaining = max(timeout - (time.monotonic() - start), 0.001)
        with socket.create_connection(sockaddr[:2], timeout=remaining):
            pass
    # UnicodeError (a ValueError) comes from IDNA encoding of bad host names
    except (OSError, ValueError) as e:
        return _failed(e)
    return {"reachable": True, "latency_ms": round((time.monotonic() - start) * 1000, 1), "error": ""}


def probe_udp(host: str, port: int, timeout: float) -> dict[str, Any]:
    """UDP has no handshake: an ICMP refusal is unreachable, silence is open|filtered."""
    start = time.monotonic()
    try:
        family, socktype, proto, _, sockaddr = resolve_address(host, port, socket.SOCK_DGRAM, timeout)
        with socket.socket(family, socktype, proto) as sock:
            sock.settimeout(max(timeout - (time.monotonic() - start), 0.001))
            sock.connect(sockaddr)
            sock.send(b"")
            try:
                sock.recv(1)
            except socket.timeout:
                pass
    except (OSError, ValueError) as e:
        return _failed(e)
    return {"reachable": True, "latency_ms": round((time.monotonic() - start) * 1000, 1), "error": ""}


_PROBES: dict[str, Callable[[str, int, float], dict[str, Any]]] = {
    "tcp": probe_tcp,
    "udp": probe_udp,
}


def _require(data: dict[str, Any], *path: str) -> Any:
    node: Any = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise QueryError(QueryErrorKind.MALFORMED, f"missing '{'.'.join(path)}' in control-plane response")
        node = node[key]
    return node


class StateQuery:
    """Timeout-bounded, side-effect free reads of current swarm state.

    Never retries: a failed call raises QueryError and the caller decides.
    """

    def __init__(self, client: DockerClient | None = None, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.query_timeout
        self.client = client or DockerClient(timeout=self.timeout)
        self._fetchers: dict[EntityKind, Callable[[Entity], ObservedState]] = {
            EntityKind.MANAGER: self._fetch_manager,
            EntityKind.NODE: self._fetch_node,
            EntityKind.SERVICE: self._fetch_service,
            EntityKind.NETWORK: self._fetch_network,
            EntityKind.VOLUME: self._fetch_volume,
            EntityKind.SYSTEM: self._fetch_system,
            EntityKind.PROBE: self._fetch_probe,
        }

    def fetch(self, entity: Entity) -> ObservedState:
        return self._fetchers[entity.kind](entity)

    # Discovery

    def list_entities(self, kind: EntityKind) -> list[tuple[Entity, dict[str, Any]]]:
        """Entities of one kind known to the control plane, with their listing row."""
        if kind is EntityKind.NODE:
            return self._list_nodes()
        if kind is EntityKind.SERVICE:
            # jobs run to completion and never converge on a replica count
            rows = [r for r in self.client.list_services() if "job" not in str(r.get("Mode", "")).lower()]
            key = "Name"
        elif kind is EntityKind.NETWORK:
            rows, key = self.client.list_networks(driver="overlay"), "Name"
        elif kind is EntityKind.VOLUME:
            rows, key = self.client.list_volumes(), "Name"
        else:
            return []
        return [(Entity(kind, row[key]), row) for row in rows if row.get(key)]

    def _list_nodes(self) -> list[tuple[Entity, dict[str, Any]]]:
        """Nodes by hostname; hostnames shared by several nodes fall back to the ID.

        A node that leaves and rejoins keeps a stale Down entry under the same
        hostname, and inspecting that hostname is ambiguous.
        """
        rows = self.client.list_nodes()
        counts = Counter(r.get("Hostname") for r in rows)
        found = []
        for row in rows:
            hostname = row.get("Hostname")
            identifier = hostname if hostname and counts[hostname] == 1 else row.get("ID")
            if not identifier:
                continue
            found.append((Entity(EntityKind.NODE, identifier), row))
        return found

    def eligible_node_count(self, timeout: float | None = None) -> int:
        """Nodes that can run tasks: ready and active."""
        return sum(
            1
            for row in self.client.list_nodes(timeout=timeout)
            if str(row.get("Status", "")).lower() == "ready"
            and str(row.get("Availability", "")).lower() == "active"
        )

    # Per-kind fetchers

    def _remaining(self, deadline: float, entity: Entity) -> float:
        left = deadline - time.monotonic()
        if left <= 0:
            raise QueryError(QueryErrorKind.TIMEOUT, f"{entity} query timed out after {self.timeout:g}s")
        return left

    def _fetch_manager(self, entity: Entity) -> ObservedState:
        # node ls only answers on a manager of an initialised swarm
        rows = self.client.list_nodes()
        return ObservedState(entity=entity, fields={"accessible": True, "nodes": len(rows)})

    def _fetch_system(self, entity: Entity) -> ObservedState:
        try:
            info = self.client.system_info()
        except QueryError as e:
            # engine counters are informational; losing them degrades the report only
            return ObservedState(entity=entity, fields={"available": False, "error": e.message})
        fields = {
            "available": True,
            "containers_running": int(info.get("ContainersRunning") or 0),
            "containers": int(info.get("Containers") or 0),
            "images": int(info.get("Images") or 0),
            "error": "",
        }
        return ObservedState(entity=entity, fields=fields)

    def _fetch_node(self, entity: Entity) -> ObservedState:
        data = self.client.inspect_node(entity.identifier)
        if data is None:
            return ObservedState.absent(entity)
        spec = _require(data, "Spec")
        manager = data.get("ManagerStatus") or {}
        fields = {
            "hostname": _require(data, "Description", "Hostname"),
            "status": str(_require(data, "Status", "State")).lower(),
            "availability": str(spec.get("Availability", "")).lower(),
            "role": str(spec.get("Role", "")).lower(),
            "labels": normalize_labels(spec.get("Labels")),
            "engine_version": (data.get("Description", {}).get("Engine") or {}).get("EngineVersion", ""),
            "manager_reachability": str(manager.get("Reachability", "")).lower(),
            "leader": bool(manager.get("Leader", False)),
        }
        return ObservedState(entity=entity, fields=fields)

    def _fetch_service(self, entity: Entity) -> ObservedState:
        # one budget for the inspect, the node count and the task list together
        deadline = time.monotonic() + self.timeout
        data = self.client.inspect_service(entity.identifier, timeout=self._remaining(deadline, entity))
        if data is None:
            return ObservedState.absent(entity)
        mode_spec = _require(data, "Spec", "Mode")
        if not isinstance(mode_spec, dict) or not mode_spec:
            raise QueryError(QueryErrorKind.MALFORMED, f"unrecognised service mode for {entity.identifier}")
        mode_key = next(iter(mode_spec))
        fields: dict[str, Any] = {"mode": mode_key.lower()}

        if mode_key == "Replicated":
            fields["replicas_desired"] = int((mode_spec[mode_key] or {}).get("Replicas", 1))
        elif mode_key == "Global":
            fields["eligible_nodes"] = self.eligible_node_count(timeout=self._remaining(deadline, entity))

        tasks = self.client.service_tasks(entity.identifier, timeout=self._remaining(deadline, entity))
        fields["replicas_running"] = sum(
            1 for t in tasks if str(t.get("CurrentState", "")).lower().startswith("running")
        )
        image = (
            data.get("Spec", {}).get("TaskTemplate", {}).get("ContainerSpec", {}).get("Image", "")
        )
        fields["image"] = image.split("@", 1)[0]
        return ObservedState(entity=entity, fields=fields)

    def _fetch_network(self, entity: Entity) -> ObservedState:
        data = self.client.inspect_network(entity.identifier)
        if data is None:
            return ObservedState.absent(entity)
        fields = {
            "driver": _require(data, "Driver"),
            "scope": data.get("Scope", ""),
            "attachable": bool(data.get("Attachable", False)),
        }
        return ObservedState(entity=entity, fields=fields)

    def _fetch_volume(self, entity: Entity) -> ObservedState:
        data = self.client.inspect_volume(entity.identifier)
        if data is None:
            return ObservedState.absent(entity)
        fields = {
            "driver": _require(data, "Driver"),
            "scope": data.get("Scope", ""),
            "mountpoint": data.get("Mountpoint", ""),
        }
        return ObservedState(entity=entity, fields=fields)

    def _fetch_probe(self, entity: Entity) -> ObservedState:
        host, port, protocol = parse_probe(entity.identifier)
        probe = _PROBES.get(protocol)
        if probe is None:
            raise QueryError(QueryErrorKind.MALFORMED, f"unsupported probe protocol '{protocol}'")
        result = probe(host, port, self.timeout)
        if not result["reachable"]:
            logger.debug("Probe %s failed: %s", entity.identifier, result["error"])
        return ObservedState(entity=entity, fields=result)
