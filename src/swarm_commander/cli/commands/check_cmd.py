"""scom check - Run swarm health checks."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from swarm_commander.cli.options import ConfigOption, OutputOption, TimeoutOption
from swarm_commander.config.loader import load_config
from swarm_commander.config.settings import settings
from swarm_commander.core.health_engine import HealthAggregator
from swarm_commander.core.state_query import StateQuery
from swarm_commander.errors import ConfigError
from swarm_commander.output.renderer import FORMATS, render
from swarm_commander.output.tables import health_table, summary_line

app = typer.Typer()
console = Console()


@app.callback(invoke_without_command=True)
def check(
    config_file: Optional[Path] = ConfigOption,
    output: str = OutputOption,
    discover: Optional[bool] = typer.Option(
        None, "--discover/--no-discover", help="Also check everything the swarm reports",
    ),
    system_checks: Optional[bool] = typer.Option(
        None, "--system-checks/--no-system-checks", help="Check manager access and engine resources",
    ),
    timeout: Optional[float] = TimeoutOption,
) -> None:
    """Evaluate manager access, nodes, services, networks, volumes, engine
    resources and connectivity.

    Exit code: 0 healthy, 2 warnings, 1 errors.
    """
    if output not in FORMATS:
        typer.echo(f"Unknown output format '{output}'.", err=True)
        raise typer.Exit(code=1)

    try:
        cfg = load_config(config_file or settings.config_file, required=config_file is not None)
        if discover is not None:
            cfg.discover = discover
        if system_checks is not None:
            cfg.system_checks = system_checks
        if timeout:
            cfg.timeout = timeout

        aggregator = HealthAggregator(StateQuery(timeout=cfg.timeout), max_workers=cfg.max_workers)
        if output == "table":
            with console.status("[bold cyan]Checking swarm…"):
                report = aggregator.run(cfg)
        else:
            report = aggregator.run(cfg)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)

    rendered = render(report, fmt=output)

    if output == "json":
        console.print_json(rendered.text)
    elif output == "yaml":
        console.print(rendered.text, markup=False, highlight=False, soft_wrap=True)
    else:
        console.print(health_table(report))
        for note in report.notes:
            console.print(f"[blue]i[/blue] {note}")
        console.print(f"\n{summary_line(report)}")

    raise typer.Exit(code=rendered.exit_code)
