"""Tests for the health aggregator pipeline."""

from __future__ import annotations

import pytest

from conftest import FakeQuery, node, observed, ready_node, service

from swarm_commander.core.health_engine import (
    MANAGER_CHECK,
    RESOURCES_CHECK,
    HealthAggregator,
    classify,
    run_health_check,
)
from swarm_commander.errors import ConfigError, QueryError, QueryErrorKind
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.config import EntityRule, HealthConfig
from swarm_commander.models.report import AggregateReport, CheckResult, Severity, Verdict, VerdictStatus


def _config(*rules: tuple[Entity, dict], discover: bool = False) -> HealthConfig:
    return HealthConfig(rules=[EntityRule(e, dict(spec)) for e, spec in rules], discover=discover)


def _probe(host: str, port: int = 2377) -> Entity:
    return Entity(EntityKind.PROBE, f"{host}:{port}/tcp")


class TestClassify:
    def test_converged_is_ok(self):
        assert classify(EntityKind.NODE, Verdict.converged()) is Severity.OK

    def test_unknown_is_error_for_every_kind(self):
        for kind in EntityKind:
            assert classify(kind, Verdict.unknown("x")) is Severity.ERROR

    def test_diverged_depends_on_kind(self):
        assert classify(EntityKind.NODE, Verdict.diverged("x")) is Severity.ERROR
        assert classify(EntityKind.PROBE, Verdict.diverged("x")) is Severity.ERROR
        assert classify(EntityKind.SERVICE, Verdict.diverged("x")) is Severity.WARNING
        assert classify(EntityKind.VOLUME, Verdict.diverged("x")) is Severity.WARNING


class TestAggregateReport:
    def test_overall_is_max_severity(self):
        e = node("n")
        report = AggregateReport(results=[
            CheckResult(e, Verdict.converged(), Severity.OK, ""),
            CheckResult(e, Verdict.diverged("x"), Severity.WARNING, ""),
            CheckResult(e, Verdict.converged(), Severity.INFO, ""),
        ])
        assert report.overall is Severity.WARNING

    def test_info_ranks_below_ok(self):
        assert Severity.INFO < Severity.OK < Severity.WARNING < Severity.ERROR

    def test_empty_report_is_ok(self):
        assert AggregateReport().overall is Severity.OK


class TestHealthAggregator:
    def test_results_follow_pipeline_order_not_completion_order(self):
        n1, s1 = node("linux"), service("web")
        vol = Entity(EntityKind.VOLUME, "data")
        query = FakeQuery(
            states={
                n1: ready_node(n1),
                s1: observed(s1, mode="replicated", replicas_desired=2, replicas_running=2),
                vol: observed(vol, driver="local", scope="local", mountpoint="/x"),
            },
            # the first entity in pipeline order finishes last
            delays={n1: 0.2, s1: 0.1},
        )
        cfg = _config((vol, {}), (s1, {"replicas": 2}), (n1, {}))
        report = HealthAggregator(query, max_workers=3).run(cfg)

        assert [r.entity for r in report.results] == [n1, s1, vol]
        assert query.completed[-1] == n1
        assert report.overall is Severity.OK

    def test_query_timeout_does_not_block_other_entities(self):
        n1, n2, s1 = node("linux"), node("mac"), service("web")
        query = FakeQuery(states={
            n1: QueryError(QueryErrorKind.TIMEOUT, "node inspect timed out after 10s"),
            n2: ready_node(n2),
            s1: observed(s1, mode="replicated", replicas_desired=1, replicas_running=1),
        })
        report = HealthAggregator(query).run(_config((n1, {}), (n2, {}), (s1, {"replicas": 1})))

        assert len(report.results) == 3
        failed = report.results[0]
        assert failed.verdict.status is VerdictStatus.UNKNOWN
        assert failed.severity is Severity.ERROR
        assert "timeout" in failed.message
        assert report.results[1].severity is Severity.OK
        assert report.results[2].severity is Severity.OK
        assert report.overall is Severity.ERROR

    def test_unexpected_exception_is_folded_into_report(self):
        n1 = node("linux")
        query = FakeQuery(states={n1: RuntimeError("boom")})
        report = HealthAggregator(query).run(_config((n1, {})))
        assert report.results[0].severity is Severity.ERROR
        assert "boom" in report.results[0].message

    def test_diverged_service_is_warning(self):
        s1 = service("web")
        query = FakeQuery(states={s1: observed(s1, mode="replicated", replicas_desired=3, replicas_running=1)})
        report = HealthAggregator(query).run(_config((s1, {"replicas": 3})))
        assert report.overall is Severity.WARNING
        assert report.results[0].message == "replicas_running expected 3 got 1"

    def test_missing_node_is_error(self):
        n1 = node("ghost")
        report = HealthAggregator(FakeQuery()).run(_config((n1, {})))
        assert report.results[0].verdict.status is VerdictStatus.DIVERGED
        assert report.overall is Severity.ERROR

    def test_config_error_aborts_before_any_query(self):
        query = FakeQuery()
        cfg = _config((node("linux"), {}), (service("web"), {}))
        with pytest.raises(ConfigError):
            HealthAggregator(query).run(cfg)
        assert query.calls == []

    def test_empty_entity_set(self):
        report = HealthAggregator(FakeQuery()).run(HealthConfig())
        assert report.results == []
        assert report.overall is Severity.OK
        assert report.notes == ["nothing to check"]


class TestDiscovery:
    def test_discovers_entities_and_manager_port_probes(self):
        n1, n2 = node("linux"), node("mac")
        s1 = service("agent")
        query = FakeQuery(
            states={
                n1: ready_node(n1),
                n2: observed(n2, hostname="mac", status="down", availability="active"),
                s1: observed(s1, mode="global", eligible_nodes=1, replicas_running=1),
                _probe("linux"): observed(_probe("linux"), reachable=True, latency_ms=1.0, error=""),
            },
            listings={
                EntityKind.NODE: [
                    (n1, {"Hostname": "linux", "Status": "Ready"}),
                    (n2, {"Hostname": "mac", "Status": "Down"}),
                ],
                EntityKind.SERVICE: [(s1, {"Name": "agent", "Mode": "global"})],
            },
        )
        report = HealthAggregator(query).run(HealthConfig(discover=True))
        by_entity = {r.entity: r for r in report.results}

        assert by_entity[n1].severity is Severity.OK
        assert by_entity[n2].severity is Severity.ERROR
        assert by_entity[s1].severity is Severity.OK
        assert by_entity[_probe("linux")].severity is Severity.OK
        assert _probe("mac") not in by_entity

        empty = [r for r in report.results if r.entity.identifier == "*"]
        assert {r.entity.kind for r in empty} == {EntityKind.NETWORK, EntityKind.VOLUME}
        assert all(r.severity is Severity.INFO for r in empty)
        assert report.overall is Severity.ERROR

    def test_declared_rules_win_over_discovered_defaults(self):
        n1 = node("linux")
        query = FakeQuery(
            states={n1: ready_node(n1, role="worker")},
            listings={EntityKind.NODE: [(n1, {"Hostname": "linux", "Status": "Ready"})]},
        )
        cfg = _config((n1, {"role": "manager"}), discover=True)
        cfg.discover_probes = False
        report = HealthAggregator(query).run(cfg)
        assert report.results[0].message == "role expected manager got worker"

    def test_listing_failure_becomes_error_result(self):
        query = FakeQuery(listings={
            EntityKind.NODE: QueryError(QueryErrorKind.UNREACHABLE, "This node is not a swarm manager."),
        })
        report = HealthAggregator(query).run(HealthConfig(discover=True))
        first = report.results[0]
        assert first.entity == Entity(EntityKind.NODE, "*")
        assert first.severity is Severity.ERROR
        assert "not a swarm manager" in first.message


class TestSystemChecks:
    def _states(self, **system_fields):
        fields = {"available": True, "containers_running": 4, "containers": 6, "images": 9, "error": ""}
        fields.update(system_fields)
        return {
            MANAGER_CHECK: observed(MANAGER_CHECK, accessible=True, nodes=2),
            RESOURCES_CHECK: observed(RESOURCES_CHECK, **fields),
        }

    def test_manager_first_and_resources_after_volumes(self):
        s1 = service("web")
        states = self._states()
        states[s1] = observed(s1, mode="replicated", replicas_desired=1, replicas_running=1)
        cfg = _config((s1, {"replicas": 1}))
        cfg.system_checks = True
        report = HealthAggregator(FakeQuery(states=states)).run(cfg)

        assert [r.entity for r in report.results] == [MANAGER_CHECK, s1, RESOURCES_CHECK]
        assert report.results[0].message == "Manager node accessible (2 nodes)"
        assert report.results[2].message == "Containers: 4 running / 6 total, images: 9"
        assert report.overall is Severity.OK

    def test_missing_engine_counters_are_a_warning(self):
        states = self._states(available=False, error="'system info' timed out after 10s")
        report = HealthAggregator(FakeQuery(states=states)).run(HealthConfig(system_checks=True))
        resources = report.results[-1]
        assert resources.severity is Severity.WARNING
        assert "timed out" in resources.message
        assert report.overall is Severity.WARNING

    def test_inaccessible_manager_is_error(self):
        states = self._states()
        states[MANAGER_CHECK] = QueryError(QueryErrorKind.UNREACHABLE, "This node is not a swarm manager.")
        report = HealthAggregator(FakeQuery(states=states)).run(HealthConfig(system_checks=True))
        assert report.results[0].entity == MANAGER_CHECK
        assert report.results[0].severity is Severity.ERROR
        assert report.overall is Severity.ERROR

    def test_off_by_default(self):
        query = FakeQuery()
        HealthAggregator(query).run(HealthConfig())
        assert query.calls == []

    def test_diverged_severity(self):
        assert classify(EntityKind.MANAGER, Verdict.diverged("x")) is Severity.ERROR
        assert classify(EntityKind.SYSTEM, Verdict.diverged("x")) is Severity.WARNING


def test_node_listed_by_id_reports_its_hostname():
    stale = node("abc123")
    query = FakeQuery(states={stale: observed(
        stale, hostname="mac", status="ready", availability="active", role="worker",
        labels=frozenset(), engine_version="24.0.7", manager_reachability="", leader=False,
    )})
    report = HealthAggregator(query).run(_config((stale, {})))
    assert report.results[0].message == "mac: ready, active, worker"


def test_run_health_check_renders_exit_code():
    s1 = service("web")
    query = FakeQuery(states={s1: observed(s1, mode="replicated", replicas_desired=2, replicas_running=1)})
    rendered = run_health_check(_config((s1, {"replicas": 2})), query=query)
    assert rendered.exit_code == 2
    assert "web" in rendered.text
