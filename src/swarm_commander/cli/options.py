"""Shared CLI options."""

from __future__ import annotations

import typer

OutputOption = typer.Option("table", "--output", "-o", help="Output format: table, json, yaml")
ConfigOption = typer.Option(None, "--config", "-c", help="Health-check rules file (YAML)")
TimeoutOption = typer.Option(None, "--timeout", help="Per-query timeout in seconds")
AttemptsOption = typer.Option(None, "--attempts", min=1, help="Maximum verification attempts (default: rules file, else 5)")
BaseDelayOption = typer.Option(None, "--base-delay", min=0.0, help="Initial backoff in seconds (default: rules file, else 1)")
MaxDelayOption = typer.Option(None, "--max-delay", min=0.0, help="Backoff cap in seconds (default: rules file, else 8)")
DeadlineOption = typer.Option(None, "--deadline", min=0.0, help="Give up after this many seconds overall")
LabelOption = typer.Option(None, "--label", "-l", help="Label or tag (repeatable)")
