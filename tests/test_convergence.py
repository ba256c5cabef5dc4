"""Tests for the convergence evaluator and predicates."""

from __future__ import annotations

from conftest import node, observed, ready_node, service

from swarm_commander.core.convergence import evaluate
from swarm_commander.core.desired_state import resolve
from swarm_commander.models.predicates import AtLeastVersion, Equals, EqualsField, Superset
from swarm_commander.models.report import VerdictStatus
from swarm_commander.models.state import DesiredState, ObservedState


class TestEvaluate:
    def test_all_predicates_satisfied(self):
        n = node("linux.kumanet")
        desired = DesiredState(n, {"status": Equals("ready"), "role": Equals("manager")})
        verdict = evaluate(ready_node(n), desired)
        assert verdict.status is VerdictStatus.CONVERGED

    def test_missing_field_is_unknown(self):
        n = node("mac")
        desired = DesiredState(n, {"status": Equals("ready"), "role": Equals("manager")})
        verdict = evaluate(observed(n, status="ready"), desired)
        assert verdict.status is VerdictStatus.UNKNOWN
        assert verdict.reason == "missing field role"

    def test_missing_field_short_circuits_even_after_divergence(self):
        """Missing data must never be reported as a plain divergence."""
        n = node("mac")
        desired = DesiredState(n, {"status": Equals("ready"), "role": Equals("manager")})
        verdict = evaluate(observed(n, status="down"), desired)
        assert verdict.status is VerdictStatus.UNKNOWN

    def test_all_divergences_reported(self):
        n = node("mac")
        desired = DesiredState(n, {"status": Equals("ready"), "availability": Equals("active")})
        verdict = evaluate(observed(n, status="down", availability="drain"), desired)
        assert verdict.status is VerdictStatus.DIVERGED
        assert "status expected ready got down" in verdict.reason
        assert "availability expected active got drain" in verdict.reason

    def test_absent_entity_diverges(self):
        n = node("ghost")
        desired = DesiredState(n, {"status": Equals("ready")})
        verdict = evaluate(ObservedState.absent(n), desired)
        assert verdict.status is VerdictStatus.DIVERGED
        assert "not found" in verdict.reason

    def test_empty_desired_state_converges(self):
        n = node("any")
        assert evaluate(observed(n), DesiredState(n, {})).is_converged


class TestLabelAndRoleScenario:
    def _desired(self, n):
        return resolve(n, {"role": "manager", "labels": ["dns", "web"]})

    def test_label_superset_converges(self):
        n = node("linux.kumanet")
        verdict = evaluate(ready_node(n, "manager", {"dns", "web", "monitoring"}), self._desired(n))
        assert verdict.is_converged

    def test_wrong_role_diverges(self):
        n = node("linux.kumanet")
        verdict = evaluate(ready_node(n, "worker", {"dns", "web"}), self._desired(n))
        assert verdict.status is VerdictStatus.DIVERGED
        assert verdict.reason == "role expected manager got worker"

    def test_missing_label_diverges(self):
        n = node("linux.kumanet")
        verdict = evaluate(ready_node(n, "manager", {"dns"}), self._desired(n))
        assert verdict.status is VerdictStatus.DIVERGED
        assert verdict.reason.startswith("labels expected superset of [dns, web]")


class TestReplicaCounts:
    def test_exact_count_converges(self):
        s = service("nginx-web")
        desired = resolve(s, {"replicas": 3})
        verdict = evaluate(observed(s, mode="replicated", replicas_desired=3, replicas_running=3), desired)
        assert verdict.is_converged

    def test_extra_replicas_diverge(self):
        s = service("nginx-web")
        desired = resolve(s, {"replicas": 3})
        verdict = evaluate(observed(s, mode="replicated", replicas_desired=3, replicas_running=4), desired)
        assert verdict.status is VerdictStatus.DIVERGED
        assert verdict.reason == "replicas_running expected 3 got 4"

    def test_global_service_matches_eligible_nodes(self):
        s = service("agent")
        desired = resolve(s, {"mode": "global"})
        assert evaluate(observed(s, mode="global", eligible_nodes=2, replicas_running=2), desired).is_converged
        verdict = evaluate(observed(s, mode="global", eligible_nodes=3, replicas_running=2), desired)
        assert verdict.reason == "replicas_running expected 3 (eligible_nodes) got 2"

    def test_global_service_without_node_count_is_unknown(self):
        s = service("agent")
        desired = resolve(s, {"mode": "global"})
        verdict = evaluate(observed(s, mode="global", replicas_running=2), desired)
        assert verdict.status is VerdictStatus.UNKNOWN
        assert verdict.reason == "missing field eligible_nodes"


class TestPredicates:
    def test_equals_does_not_confuse_bool_and_int(self):
        assert not Equals(True).matches(1, {})
        assert Equals(True).matches(True, {})

    def test_equals_structured_ignores_order(self):
        assert Equals(["a", "b"]).matches(["b", "a"], {})
        assert not Equals(["a", "b"]).matches(["a"], {})

    def test_superset_accepts_single_string(self):
        assert Superset(frozenset({"web"})).matches("web", {})

    def test_superset_rejects_non_collection(self):
        assert not Superset(frozenset({"web"})).matches(3, {})

    def test_equals_field(self):
        assert EqualsField("b").matches(2, {"b": 2})
        assert EqualsField("b").references == ("b",)

    def test_engine_version_minimum(self):
        assert AtLeastVersion("20.10").matches("24.0.7", {})
        assert AtLeastVersion("20.10").matches("20.10.21+azure-1", {})
        assert not AtLeastVersion("25.0").matches("24.0.7", {})
        assert not AtLeastVersion("25.0").matches("garbage", {})
