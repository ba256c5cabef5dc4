"""scom verify - Wait for a node or service to reach its desired state."""

from __future__ import annotations

import json
import signal
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import typer
import yaml
from rich.console import Console

from swarm_commander.cli.options import (
    AttemptsOption,
    BaseDelayOption,
    DeadlineOption,
    LabelOption,
    MaxDelayOption,
    OutputOption,
    TimeoutOption,
)
from swarm_commander.config.loader import load_config
from swarm_commander.config.settings import settings
from swarm_commander.core.desired_state import SPEC_REPLICAS, resolve
from swarm_commander.core.join_verifier import JoinVerifier
from swarm_commander.core.state_query import StateQuery
from swarm_commander.errors import ConfigError
from swarm_commander.models import Entity, EntityKind
from swarm_commander.models.config import RetryConfig
from swarm_commander.models.report import Verdict
from swarm_commander.models.state import DesiredState
from swarm_commander.models.verify import RetryBudget, VerificationResult
from swarm_commander.output.tables import verification_table
from swarm_commander.output.themes import styled_verdict

app = typer.Typer()
console = Console()


@contextmanager
def cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancellation of the running verification."""
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def result_to_dict(result: VerificationResult) -> dict[str, Any]:
    return {
        "kind": result.entity.kind.value,
        "entity": result.entity.identifier,
        "state": result.state.value,
        "converged": result.succeeded,
        "attempts": result.attempts,
        "verdict": result.verdict.status.value if result.verdict else None,
        "reason": result.reason,
    }


def _retry_config(attempts: int | None, base_delay: float | None, max_delay: float | None) -> RetryConfig:
    """Retry settings from the rules file, overridden by command-line flags."""
    retry = load_config(settings.config_file, required=False).retry
    if attempts is not None:
        retry.max_attempts = attempts
    if base_delay is not None:
        retry.base_delay = base_delay
    if max_delay is not None:
        retry.max_delay = max_delay
    return retry


def prepare_verification(
    entity: Entity,
    rule: dict[str, Any],
    attempts: int | None,
    base_delay: float | None,
    max_delay: float | None,
) -> tuple[DesiredState, RetryBudget]:
    """Resolve the rule and build the retry budget, exiting 1 on bad input.

    Runs before anything is sent to the control plane.
    """
    try:
        desired = resolve(entity, rule)
        budget = _retry_config(attempts, base_delay, max_delay).new_budget()
    except (ConfigError, ValueError) as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)
    return desired, budget


def run_verification(
    entity: Entity,
    desired: DesiredState,
    budget: RetryBudget,
    output: str,
    deadline: float | None,
    timeout: float | None,
) -> None:
    """Verify ``desired`` for ``entity`` and exit 0 on convergence, 1 otherwise."""
    verifier = JoinVerifier(StateQuery(timeout=timeout))
    absolute_deadline = verifier.clock() + deadline if deadline is not None else None

    def on_attempt(n: int, verdict: Verdict) -> None:
        if output == "table":
            console.print(f"Attempt {n}/{budget.max_attempts}: {styled_verdict(verdict.status)} ", end="")
            console.print(verdict.reason or "converged", markup=False, highlight=False)

    started = time.monotonic()
    with cancel_on_interrupt() as cancel:
        result = verifier.verify(
            entity, desired, budget,
            cancel=cancel, deadline=absolute_deadline, on_attempt=on_attempt,
        )

    if output == "json":
        console.print_json(json.dumps(result_to_dict(result)))
    elif output == "yaml":
        console.print(yaml.safe_dump(result_to_dict(result), sort_keys=False), markup=False, soft_wrap=True)
    else:
        console.print(verification_table(result))
        console.print(f"[dim]Elapsed: {time.monotonic() - started:.1f}s[/dim]")

    raise typer.Exit(code=0 if result.succeeded else 1)


@app.command("node")
def verify_node(
    name: str = typer.Argument(help="Node hostname or ID"),
    role: Optional[str] = typer.Option(None, "--role", help="Expected role: manager or worker"),
    labels: Optional[List[str]] = LabelOption,
    engine_version: Optional[str] = typer.Option(None, "--engine-version", help="Minimum engine version"),
    output: str = OutputOption,
    attempts: Optional[int] = AttemptsOption,
    base_delay: Optional[float] = BaseDelayOption,
    max_delay: Optional[float] = MaxDelayOption,
    deadline: Optional[float] = DeadlineOption,
    timeout: Optional[float] = TimeoutOption,
) -> None:
    """Wait until a node is ready and active with the given role and labels."""
    rule: dict[str, Any] = {}
    if role:
        rule["role"] = role
    if labels:
        rule["labels"] = labels
    if engine_version:
        rule["engine_version"] = engine_version
    entity = Entity(EntityKind.NODE, name)
    desired, budget = prepare_verification(entity, rule, attempts, base_delay, max_delay)
    run_verification(entity, desired, budget, output, deadline, timeout)


@app.command("service")
def verify_service(
    name: str = typer.Argument(help="Service name or ID"),
    replicas: Optional[int] = typer.Option(
        None, "--replicas", "-r", min=0, help="Expected running replicas (default: the service spec)",
    ),
    global_mode: bool = typer.Option(False, "--global", help="Global service: one task per eligible node"),
    image: Optional[str] = typer.Option(None, "--image", help="Expected image reference"),
    output: str = OutputOption,
    attempts: Optional[int] = AttemptsOption,
    base_delay: Optional[float] = BaseDelayOption,
    max_delay: Optional[float] = MaxDelayOption,
    deadline: Optional[float] = DeadlineOption,
    timeout: Optional[float] = TimeoutOption,
) -> None:
    """Wait until a service runs the expected number of replicas."""
    if global_mode:
        rule: dict[str, Any] = {"mode": "global"}
        if replicas is not None:
            rule["replicas"] = replicas
    else:
        rule = {"replicas": replicas if replicas is not None else SPEC_REPLICAS}
    if image:
        rule["image"] = image
    entity = Entity(EntityKind.SERVICE, name)
    desired, budget = prepare_verification(entity, rule, attempts, base_delay, max_delay)
    run_verification(entity, desired, budget, output, deadline, timeout)
