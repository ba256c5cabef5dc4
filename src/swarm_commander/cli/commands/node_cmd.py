"""scom node - Promote, demote or label a node, then verify the change."""

from __future__ import annotations

from typing import Any, List, Optional

import typer

from swarm_commander.cli.commands.verify_cmd import prepare_verification, run_verification
from swarm_commander.cli.options import (
    AttemptsOption,
    BaseDelayOption,
    DeadlineOption,
    LabelOption,
    MaxDelayOption,
    OutputOption,
    TimeoutOption,
)
from swarm_commander.core.docker_client import DockerClient
from swarm_commander.errors import CommandError
from swarm_commander.models import Entity, EntityKind

app = typer.Typer()


def parse_labels(raw: list[str] | None) -> dict[str, str]:
    """Parse ``key=value`` (or bare ``key``) arguments."""
    labels: dict[str, str] = {}
    for item in raw or []:
        key, _, value = item.partition("=")
        if not key:
            raise typer.BadParameter(f"Invalid label '{item}', expected KEY=VALUE")
        labels[key] = value
    return labels


def _apply(name: str, role: str | None, labels: dict[str, str], timeout: float | None) -> None:
    client = DockerClient(timeout=timeout)
    try:
        if role == "manager":
            client.promote_node(name)
        elif role == "worker":
            client.demote_node(name)
        client.add_node_labels(name, labels)
    except CommandError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)


def _rule(role: str | None, labels: dict[str, str]) -> dict[str, Any]:
    rule: dict[str, Any] = {}
    if role:
        rule["role"] = role
    if labels:
        rule["labels"] = labels
    return rule


@app.command("promote")
def promote(
    name: str = typer.Argument(help="Node hostname or ID"),
    labels: Optional[List[str]] = LabelOption,
    output: str = OutputOption,
    attempts: Optional[int] = AttemptsOption,
    base_delay: Optional[float] = BaseDelayOption,
    max_delay: Optional[float] = MaxDelayOption,
    deadline: Optional[float] = DeadlineOption,
    timeout: Optional[float] = TimeoutOption,
) -> None:
    """Promote a node to manager, optionally add labels, and wait for it to show."""
    parsed = parse_labels(labels)
    entity = Entity(EntityKind.NODE, name)
    desired, budget = prepare_verification(entity, _rule("manager", parsed), attempts, base_delay, max_delay)
    _apply(name, "manager", parsed, timeout)
    run_verification(entity, desired, budget, output, deadline, timeout)


@app.command("demote")
def demote(
    name: str = typer.Argument(help="Node hostname or ID"),
    output: str = OutputOption,
    attempts: Optional[int] = AttemptsOption,
    base_delay: Optional[float] = BaseDelayOption,
    max_delay: Optional[float] = MaxDelayOption,
    deadline: Optional[float] = DeadlineOption,
    timeout: Optional[float] = TimeoutOption,
) -> None:
    """Demote a manager to worker and wait for it to show."""
    entity = Entity(EntityKind.NODE, name)
    desired, budget = prepare_verification(entity, _rule("worker", {}), attempts, base_delay, max_delay)
    _apply(name, "worker", {}, timeout)
    run_verification(entity, desired, budget, output, deadline, timeout)


@app.command("label")
def label(
    name: str = typer.Argument(help="Node hostname or ID"),
    labels: List[str] = typer.Option(..., "--label", "-l", help="KEY=VALUE label to add (repeatable)"),
    output: str = OutputOption,
    attempts: Optional[int] = AttemptsOption,
    base_delay: Optional[float] = BaseDelayOption,
    max_delay: Optional[float] = MaxDelayOption,
    deadline: Optional[float] = DeadlineOption,
    timeout: Optional[float] = TimeoutOption,
) -> None:
    """Add labels to a node and wait until every manager reports them."""
    parsed = parse_labels(labels)
    entity = Entity(EntityKind.NODE, name)
    desired, budget = prepare_verification(entity, _rule(None, parsed), attempts, base_delay, max_delay)
    _apply(name, None, parsed, timeout)
    run_verification(entity, desired, budget, output, deadline, timeout)
