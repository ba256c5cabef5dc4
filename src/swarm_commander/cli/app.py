"""Root Typer application, mounts sub-commands."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

app = typer.Typer(
    name="scom",
    help="Swarm Commander - Health checks and convergence verification for Docker Swarm.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging before any sub-command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _register_commands() -> None:
    from swarm_commander.cli.commands.check_cmd import app as check_app
    from swarm_commander.cli.commands.verify_cmd import app as verify_app
    from swarm_commander.cli.commands.node_cmd import app as node_app

    app.add_typer(check_app, name="check", help="Run swarm health checks")
    app.add_typer(verify_app, name="verify", help="Wait for an entity to converge")
    app.add_typer(node_app, name="node", help="Change node role or labels and verify")


_register_commands()


def main() -> None:
    app()
