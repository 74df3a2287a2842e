"""CLI entry point for the capped sale."""

from __future__ import annotations

import json

import click

from .core.config import load_settings
from .core.errors import ConfigError


@click.group()
def main() -> None:
    """Capped sale ledger tools."""


@main.command()
@click.option("--config", default="configs/example_sale.toml", help="Config file path")
@click.option("--log-level", default=None, help="Override observability.log_level")
def simulate(config: str, log_level: str | None) -> None:
    """Replay a scripted sale and print a JSON summary."""
    import asyncio

    from .main import run_simulation

    overrides: dict = {}
    if log_level:
        overrides["observability"] = {"log_level": log_level}

    try:
        settings = load_settings(config_path=config, overrides=overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    summary = asyncio.run(run_simulation(settings=settings))
    click.echo(json.dumps(summary, indent=2, default=str))


@main.command("config")
@click.option("--config", default=None, help="Config file path")
def show_config(config: str | None) -> None:
    """Print the effective settings."""
    try:
        settings = load_settings(config_path=config)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(settings.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
