"""Compare observed entity state against desired state."""

from __future__ import annotations

import logging

from swarm_commander.models.predicates import format_value
from swarm_commander.models.report import Verdict
from swarm_commander.models.state import DesiredState, ObservedState

logger = logging.getLogger(__name__)


def evaluate(observed: ObservedState, desired: DesiredState) -> Verdict:
    """Return the convergence verdict for one entity.

    A field missing from the observation makes the whole verdict UNKNOWN:
    absent data is never read as success or failure. Otherwise every failing
    predicate is reported, so one divergence cannot hide another.
    """
    if not observed.exists:
        return Verdict.diverged(f"{observed.entity} not found")

    fields = observed.fields
    failures: list[str] = []
    for name, predicate in desired.fields.items():
        if name not in fields:
            return Verdict.unknown(f"missing field {name}")
        for ref in predicate.references:
            if ref not in fields:
                return Verdict.unknown(f"missing field {ref}")

        actual = fields[name]
        if not predicate.matches(actual, fields):
            failures.append(f"{name} expected {predicate.describe(fields)} got {format_value(actual)}")

    if failures:
        logger.debug("%s diverged: %s", observed.entity, failures)
        return Verdict.diverged("; ".join(failures))
    return Verdict.converged()
