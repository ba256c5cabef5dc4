"""Verify that a state-changing operation has become visible cluster-wide."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from swarm_commander.core.convergence import evaluate
from swarm_commander.core.desired_state import resolve
from swarm_commander.core.state_query import StateQuery
from swarm_commander.errors import QueryError
from swarm_commander.models import Entity
from swarm_commander.models.report import Verdict
from swarm_commander.models.state import DesiredState
from swarm_commander.models.verify import RetryBudget, VerificationResult, VerifierState

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Verdict], None]


class JoinVerifier:
    """Poll an entity until it converges or the retry budget runs out.

    A join, promote or label update is not instantly visible on every manager,
    so a single read would report false negatives.
    """

    def __init__(
        self,
        query: StateQuery,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.query = query
        self.clock = clock

    def verify(
        self,
        entity: Entity,
        desired: DesiredState,
        budget: RetryBudget,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
        on_attempt: ProgressCallback | None = None,
    ) -> VerificationResult:
        """Run the Polling -> Converged | Exhausted state machine.

        ``deadline`` is an absolute value of ``clock``; ``cancel`` interrupts the
        backoff wait immediately.
        """
        budget.claim()
        cancel = cancel or threading.Event()
        result = VerificationResult(entity=entity, state=VerifierState.POLLING)

        while result.state is VerifierState.POLLING:
            if cancel.is_set():
                return self._exhaust(result, "cancelled")
            # the first attempt always runs, so a zero deadline still polls once
            if deadline is not None and result.attempts and self.clock() >= deadline:
                return self._exhaust(result, "deadline exceeded")

            attempt = result.attempts
            verdict = self._attempt(entity, desired)
            result.attempts += 1
            result.verdict = verdict
            if on_attempt:
                on_attempt(result.attempts, verdict)

            if verdict.is_converged:
                result.state = VerifierState.CONVERGED
                result.reason = ""
                logger.info("%s converged after %d attempt(s)", entity, result.attempts)
                break

            result.reason = verdict.reason
            if budget.consume() == 0:
                return self._exhaust(result, verdict.reason)

            delay = budget.delay_for(attempt)
            if deadline is not None:
                delay = max(0.0, min(delay, deadline - self.clock()))
            logger.debug(
                "%s not converged (%s); retrying in %.1fs (%d left)",
                entity, verdict.reason, delay, budget.remaining,
            )
            if cancel.wait(delay):
                return self._exhaust(result, "cancelled")

        return result

    def _attempt(self, entity: Entity, desired: DesiredState) -> Verdict:
        try:
            observed = self.query.fetch(entity)
        except QueryError as e:
            return Verdict.unknown(str(e))
        except Exception as e:
            logger.warning("Query for %s failed", entity, exc_info=True)
            return Verdict.unknown(f"query failed: {e}")
        return evaluate(observed, desired)

    @staticmethod
    def _exhaust(result: VerificationResult, reason: str) -> VerificationResult:
        result.state = VerifierState.EXHAUSTED
        result.reason = reason
        logger.info("%s verification exhausted after %d attempt(s): %s", result.entity, result.attempts, reason)
        return result


def verify_convergence(
    entity: Entity,
    rule: dict[str, Any] | DesiredState,
    budget: RetryBudget,
    query: StateQuery | None = None,
    cancel: threading.Event | None = None,
    deadline: float | None = None,
    on_attempt: ProgressCallback | None = None,
) -> VerificationResult:
    """Resolve ``rule`` (unless already a DesiredState) and verify it converges."""
    desired = rule if isinstance(rule, DesiredState) else resolve(entity, rule)
    verifier = JoinVerifier(query or StateQuery())
    return verifier.verify(entity, desired, budget, cancel=cancel, deadline=deadline, on_attempt=on_attempt)
