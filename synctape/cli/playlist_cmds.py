"""Canonical playlist commands: import, publish, delete."""

from __future__ import annotations
import json as _json
import logging

import click

from ..services import share_playlist, publish_playlist, delete_playlist
from .helpers import cli, get_db, build_runtime, cli_errors

logger = logging.getLogger(__name__)


@cli.command(name='share')
@click.argument('service')
@click.argument('service_playlist_id')
@click.option('--user', 'user_id', type=int, required=True, help='User importing (and owning) the playlist.')
@click.pass_context
def share_cmd(ctx: click.Context, service: str, service_playlist_id: str, user_id: int):
    """Import an external playlist as a new canonical playlist."""
    cfg = ctx.obj
    with cli_errors(), get_db(cfg) as db:
        clients, tokens = build_runtime(cfg, db)
        result = share_playlist(db, tokens, clients, user_id, service, service_playlist_id)
    click.echo(_json.dumps(result.to_dict(), indent=2))


@cli.command(name='publish')
@click.argument('playlist_id', type=int)
@click.argument('service')
@click.option('--user', 'user_id', type=int, required=True, help='User whose account receives the playlist.')
@click.pass_context
def publish_cmd(ctx: click.Context, playlist_id: int, service: str, user_id: int):
    """Create the playlist on another service and link it."""
    cfg = ctx.obj
    with cli_errors(), get_db(cfg) as db:
        clients, tokens = build_runtime(cfg, db)
        result = publish_playlist(db, tokens, clients, playlist_id, user_id, service)
    click.echo(_json.dumps(result.to_dict(), indent=2))


@cli.command(name='delete')
@click.argument('playlist_id', type=int)
@click.option('--user', 'user_id', type=int, required=True, help='Owner of the playlist.')
@click.pass_context
def delete_cmd(ctx: click.Context, playlist_id: int, user_id: int):
    """Delete a canonical playlist with its tracks and links (owner only)."""
    cfg = ctx.obj
    with cli_errors(), get_db(cfg) as db:
        delete_playlist(db, playlist_id, user_id)
    click.echo(f"Deleted playlist {playlist_id}")
