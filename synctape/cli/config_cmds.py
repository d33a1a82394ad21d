"""Configuration display commands."""

from __future__ import annotations
import click
import json as _json

from ..config import redact as _redact
from .helpers import cli


@cli.command(name="config")
@click.option("--section", "-s", help="Only show a specific top-level section (e.g. providers, sync, http).")
@click.option("--redact", is_flag=True, help="Mask secrets such as client_secret.")
@click.pass_context
def show_config(ctx: click.Context, section: str | None, redact: bool):
    """Show current configuration settings."""
    data = ctx.obj
    if section:
        section = section.lower()
        if section not in data:
            raise click.UsageError(f"Unknown section '{section}'. Available: {', '.join(sorted(data.keys()))}")
        data = {section: data[section]}
    if redact:
        data = _redact(data)
    click.echo(_json.dumps(data, indent=2, sort_keys=True))


@cli.command(name="version")
def version_cmd():
    """Show the installed version."""
    from ..version import __version__
    click.echo(__version__)
