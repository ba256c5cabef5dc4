"""Run health checks across swarm entities and aggregate the results."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any

from swarm_commander.config.loader import probe_identifier
from swarm_commander.config.settings import settings
from swarm_commander.core.convergence import evaluate
from swarm_commander.core.desired_state import default_rule, resolve, resolve_all
from swarm_commander.core.state_query import StateQuery
from swarm_commander.errors import QueryError
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.config import HealthConfig
from swarm_commander.models.report import AggregateReport, CheckResult, Severity, Verdict, VerdictStatus
from swarm_commander.models.state import DesiredState, ObservedState
from swarm_commander.output.renderer import RenderedReport, render

logger = logging.getLogger(__name__)

# Severity of a DIVERGED verdict per kind. Manager access, nodes and
# connectivity are fatal to the swarm; the rest degrade it.
_DIVERGED_SEVERITY: dict[EntityKind, Severity] = {
    EntityKind.MANAGER: Severity.ERROR,
    EntityKind.NODE: Severity.ERROR,
    EntityKind.SERVICE: Severity.WARNING,
    EntityKind.NETWORK: Severity.WARNING,
    EntityKind.VOLUME: Severity.WARNING,
    EntityKind.SYSTEM: Severity.WARNING,
    EntityKind.PROBE: Severity.ERROR,
}

# Built-in checks run when HealthConfig.system_checks is on.
MANAGER_CHECK = Entity(EntityKind.MANAGER, "local")
RESOURCES_CHECK = Entity(EntityKind.SYSTEM, "resources")


def classify(kind: EntityKind, verdict: Verdict) -> Severity:
    if verdict.status is VerdictStatus.CONVERGED:
        return Severity.OK
    if verdict.status is VerdictStatus.UNKNOWN:
        return Severity.ERROR
    return _DIVERGED_SEVERITY[kind]


def _summarize(observed: ObservedState) -> str:
    """One-line description of a converged entity."""
    f = observed.fields
    kind = observed.entity.kind
    if kind is EntityKind.MANAGER:
        return f"Manager node accessible ({f.get('nodes')} nodes)"
    if kind is EntityKind.SYSTEM:
        return (
            f"Containers: {f.get('containers_running')} running / {f.get('containers')} total, "
            f"images: {f.get('images')}"
        )
    if kind is EntityKind.NODE:
        summary = f"{f.get('status')}, {f.get('availability')}, {f.get('role')}"
        hostname = f.get("hostname")
        return f"{hostname}: {summary}" if hostname and hostname != observed.entity.identifier else summary
    if kind is EntityKind.SERVICE:
        target = f.get("replicas_desired", f.get("eligible_nodes", "?"))
        return f"{f.get('mode')}: {f.get('replicas_running')}/{target} replicas running"
    if kind is EntityKind.PROBE:
        return f"reachable ({f.get('latency_ms')} ms)"
    return f"driver {f.get('driver')}, scope {f.get('scope') or '-'}"


@dataclass
class _PlanItem:
    entity: Entity
    desired: DesiredState | None = None
    result: CheckResult | None = None


class HealthAggregator:
    """Fixed pipeline: manager access, nodes, services, networks, volumes,
    engine resources, connectivity probes.
    """

    def __init__(self, query: StateQuery, max_workers: int | None = None):
        self.query = query
        self.max_workers = max_workers or settings.max_workers

    def run(self, config: HealthConfig) -> AggregateReport:
        desired = resolve_all(config)
        if config.system_checks:
            for entity in (MANAGER_CHECK, RESOURCES_CHECK):
                desired.setdefault(entity, resolve(entity))
        presets: list[_PlanItem] = []
        if config.discover:
            self._discover(config, desired, presets)

        plan = [_PlanItem(entity=e, desired=d) for e, d in desired.items()] + presets
        # stable: config order is kept within a kind
        plan.sort(key=lambda item: item.entity.kind.order)

        report = AggregateReport()
        report.results = self._execute(plan)
        if not report.results:
            report.notes.append("nothing to check")
        return report

    def check(self, entity: Entity, desired: DesiredState) -> CheckResult:
        """Query, evaluate and classify one entity. Never raises."""
        try:
            observed = self.query.fetch(entity)
        except QueryError as e:
            logger.debug("Query for %s failed: %s", entity, e)
            return CheckResult(
                entity=entity,
                verdict=Verdict.unknown(str(e)),
                severity=Severity.ERROR,
                message=f"Control plane query failed ({e})",
            )
        except Exception as e:
            logger.warning("Check for %s failed", entity, exc_info=True)
            return CheckResult(
                entity=entity,
                verdict=Verdict.unknown(str(e)),
                severity=Severity.ERROR,
                message=f"Check failed: {e}",
            )

        verdict = evaluate(observed, desired)
        if verdict.is_converged:
            message = _summarize(observed)
        elif observed.fields.get("error"):
            message = f"{verdict.reason} ({observed.fields['error']})"
        else:
            message = verdict.reason
        return CheckResult(
            entity=entity,
            verdict=verdict,
            severity=classify(entity.kind, verdict),
            message=message,
        )

    def _execute(self, plan: list[_PlanItem]) -> list[CheckResult]:
        slots: list[CheckResult | None] = [item.result for item in plan]
        pending = [(i, item) for i, item in enumerate(plan) if item.result is None]
        if pending:
            workers = max(1, min(self.max_workers, len(pending)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scom-check") as pool:
                futures = {
                    pool.submit(self.check, item.entity, item.desired): i
                    for i, item in pending
                }
                # results land in their plan slot, so completion order is irrelevant
                for future in as_completed(futures):
                    slots[futures[future]] = future.result()
        return [r for r in slots if r is not None]

    def _discover(
        self,
        config: HealthConfig,
        desired: dict[Entity, DesiredState],
        presets: list[_PlanItem],
    ) -> None:
        """Add default rules for everything the control plane knows about."""
        node_rows: list[dict[str, Any]] = []
        for kind in (EntityKind.NODE, EntityKind.SERVICE, EntityKind.NETWORK, EntityKind.VOLUME):
            placeholder = Entity(kind, "*")
            try:
                found = self.query.list_entities(kind)
            except QueryError as e:
                presets.append(_PlanItem(placeholder, result=CheckResult(
                    entity=placeholder,
                    verdict=Verdict.unknown(str(e)),
                    severity=Severity.ERROR,
                    message=f"Could not list {kind.plural} ({e})",
                )))
                continue

            if not found and not config.rules_for(kind):
                presets.append(_PlanItem(placeholder, result=CheckResult(
                    entity=placeholder,
                    verdict=Verdict.converged(f"no {kind.plural}"),
                    severity=Severity.INFO,
                    message=f"No {kind.plural} found",
                )))

            for entity, row in found:
                if kind is EntityKind.NODE:
                    node_rows.append(row)
                if entity not in desired:
                    desired[entity] = resolve(entity, default_rule(kind, row))
            logger.debug("Discovered %d %s", len(found), kind.plural)

        if config.discover_probes:
            for row in node_rows:
                if str(row.get("Status", "")).lower() != "ready":
                    continue
                host = row["Hostname"]
                entity = Entity(EntityKind.PROBE, probe_identifier(host, settings.swarm_port))
                if entity not in desired:
                    desired[entity] = resolve(entity, {"host": host, "port": settings.swarm_port})


def run_health_check(
    config: HealthConfig,
    fmt: str = "table",
    query: StateQuery | None = None,
) -> RenderedReport:
    """Run every configured check and render the result with its exit code."""
    query = query or StateQuery(timeout=config.timeout)
    report = HealthAggregator(query, max_workers=config.max_workers).run(config)
    return render(report, fmt=fmt)
