"""Docker CLI wrapper for swarm state queries and node mutations."""

from __future__ import annotations

import json
import logging
import re
import subprocess
from typing import Any

from swarm_commander.config.settings import settings
from swarm_commander.errors import CommandError, QueryError, QueryErrorKind

logger = logging.getLogger(__name__)

_NOT_FOUND = re.compile(r"no such|not found", re.IGNORECASE)
_AMBIGUOUS = re.compile(r"ambiguous", re.IGNORECASE)
_JSON_FORMAT = "{{json .}}"


class DockerClient:
    """Thin wrapper around the ``docker`` command line.

    Every call is bounded by ``timeout`` seconds and never retried here.
    """

    def __init__(self, docker_bin: str | None = None, timeout: float | None = None):
        self.docker_bin = docker_bin or settings.docker_bin
        self.timeout = timeout if timeout is not None else settings.query_timeout

    def _run(self, args: list[str], allow_missing: bool = False, timeout: float | None = None) -> str | None:
        cmd = [self.docker_bin, *args]
        timeout = self.timeout if timeout is None else timeout
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise QueryError(QueryErrorKind.UNREACHABLE, f"docker binary not found: {self.docker_bin}") from e
        except subprocess.TimeoutExpired as e:
            raise QueryError(
                QueryErrorKind.TIMEOUT, f"'{' '.join(args[:2])}' timed out after {timeout:g}s"
            ) from e

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            if _AMBIGUOUS.search(stderr):
                # several objects share the name, e.g. a stale node left behind by a rejoin
                raise QueryError(QueryErrorKind.MALFORMED, stderr)
            if allow_missing and _NOT_FOUND.search(stderr):
                return None
            raise QueryError(
                QueryErrorKind.UNREACHABLE,
                stderr or f"'{' '.join(args[:2])}' exited with code {proc.returncode}",
            )
        return proc.stdout

    @staticmethod
    def _json_lines(output: str) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for line in output.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as e:
                raise QueryError(QueryErrorKind.MALFORMED, f"invalid JSON line: {line[:80]!r}") from e
            if not isinstance(row, dict):
                raise QueryError(QueryErrorKind.MALFORMED, f"expected an object, got {line[:80]!r}")
            rows.append(row)
        return rows

    def _inspect(self, object_type: str, name: str, timeout: float | None = None) -> dict[str, Any] | None:
        output = self._run([object_type, "inspect", name], allow_missing=True, timeout=timeout)
        if output is None:
            return None
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise QueryError(QueryErrorKind.MALFORMED, f"invalid {object_type} inspect output") from e
        if not isinstance(data, list):
            raise QueryError(QueryErrorKind.MALFORMED, f"{object_type} inspect did not return a list")
        if not data:
            return None
        if not isinstance(data[0], dict):
            raise QueryError(QueryErrorKind.MALFORMED, f"{object_type} inspect returned a non-object")
        return data[0]

    def list_nodes(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._json_lines(self._run(["node", "ls", "--format", _JSON_FORMAT], timeout=timeout) or "")

    def list_services(self) -> list[dict[str, Any]]:
        return self._json_lines(self._run(["service", "ls", "--format", _JSON_FORMAT]) or "")

    def list_networks(self, driver: str | None = "overlay") -> list[dict[str, Any]]:
        args = ["network", "ls", "--format", _JSON_FORMAT]
        if driver:
            args += ["--filter", f"driver={driver}"]
        return self._json_lines(self._run(args) or "")

    def list_volumes(self) -> list[dict[str, Any]]:
        return self._json_lines(self._run(["volume", "ls", "--format", _JSON_FORMAT]) or "")

    def inspect_node(self, name: str) -> dict[str, Any] | None:
        return self._inspect("node", name)

    def inspect_service(self, name: str, timeout: float | None = None) -> dict[str, Any] | None:
        return self._inspect("service", name, timeout=timeout)

    def inspect_network(self, name: str) -> dict[str, Any] | None:
        return self._inspect("network", name)

    def inspect_volume(self, name: str) -> dict[str, Any] | None:
        return self._inspect("volume", name)

    def service_tasks(self, name: str, timeout: float | None = None) -> list[dict[str, Any]]:
        """Tasks of a service whose desired state is running."""
        output = self._run(
            [
                "service", "ps", name,
                "--filter", "desired-state=running",
                "--no-trunc",
                "--format", _JSON_FORMAT,
            ],
            allow_missing=True,
            timeout=timeout,
        )
        return self._json_lines(output or "")

    def system_info(self) -> dict[str, Any]:
        """Engine-wide counters from ``docker system info``."""
        output = self._run(["system", "info", "--format", _JSON_FORMAT]) or ""
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise QueryError(QueryErrorKind.MALFORMED, "invalid system info output") from e
        if not isinstance(data, dict):
            raise QueryError(QueryErrorKind.MALFORMED, "system info did not return an object")
        return data

    # State-mutating operations. Callers verify their effect with JoinVerifier.

    def _mutate(self, args: list[str]) -> None:
        try:
            self._run(args)
        except QueryError as e:
            raise CommandError(f"docker {' '.join(args)} failed: {e.message}") from e

    def promote_node(self, name: str) -> None:
        self._mutate(["node", "promote", name])

    def demote_node(self, name: str) -> None:
        self._mutate(["node", "demote", name])

    def add_node_labels(self, name: str, labels: dict[str, str]) -> None:
        if not labels:
            return
        args = ["node", "update"]
        for key, value in labels.items():
            args += ["--label-add", f"{key}={value}" if value else key]
        args.append(name)
        self._mutate(args)
