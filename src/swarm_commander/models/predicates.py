"""Desired-state predicates evaluated against observed fields."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from deepdiff import DeepDiff

from swarm_commander.utils.version_compare import meets_minimum


def format_value(value: Any) -> str:
    """Render an observed or desired value for reason strings."""
    if isinstance(value, (set, frozenset)):
        return "[" + ", ".join(sorted(str(v) for v in value)) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(str(v) for v in value) + "]"
    return str(value)


class Predicate:
    """A single rule a field of an observed state must satisfy."""

    references: tuple[str, ...] = ()

    def matches(self, actual: Any, fields: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def describe(self, fields: Mapping[str, Any]) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Equals(Predicate):
    """Exact match. Structured values are compared ignoring list order."""

    value: Any

    def matches(self, actual: Any, fields: Mapping[str, Any]) -> bool:
        if isinstance(self.value, bool) != isinstance(actual, bool):
            return False
        if isinstance(self.value, (list, tuple, dict)):
            return not DeepDiff(self.value, actual, ignore_order=True)
        return actual == self.value

    def describe(self, fields: Mapping[str, Any]) -> str:
        return format_value(self.value)


@dataclass(frozen=True)
class Superset(Predicate):
    """Observed collection must contain every desired value; extras are fine."""

    values: frozenset[str]

    def matches(self, actual: Any, fields: Mapping[str, Any]) -> bool:
        if isinstance(actual, str):
            actual = {actual}
        try:
            return self.values <= set(actual)
        except TypeError:
            return False

    def describe(self, fields: Mapping[str, Any]) -> str:
        return f"superset of {format_value(self.values)}"


@dataclass(frozen=True)
class EqualsField(Predicate):
    """Observed field must equal another observed field of the same entity."""

    other: str

    @property
    def references(self) -> tuple[str, ...]:  # type: ignore[override]
        return (self.other,)

    def matches(self, actual: Any, fields: Mapping[str, Any]) -> bool:
        return actual == fields[self.other]

    def describe(self, fields: Mapping[str, Any]) -> str:
        return f"{format_value(fields.get(self.other, '?'))} ({self.other})"


@dataclass(frozen=True)
class AtLeastVersion(Predicate):
    minimum: str

    def matches(self, actual: Any, fields: Mapping[str, Any]) -> bool:
        return meets_minimum(str(actual), self.minimum)

    def describe(self, fields: Mapping[str, Any]) -> str:
        return f">= {self.minimum}"
