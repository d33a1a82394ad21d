"""Reconciliation commands (single playlist and stale batch)."""

from __future__ import annotations
import json as _json
import logging

import click

from ..services import sync_stale_playlists
from .helpers import cli, get_db, build_engine, cli_errors

logger = logging.getLogger(__name__)


@cli.command(name='sync')
@click.argument('playlist_id', type=int)
@click.option('--user', 'user_id', type=int, default=None, help='Acting user (checked for access to the playlist).')
@click.pass_context
def sync_cmd(ctx: click.Context, playlist_id: int, user_id: int | None):
    """Reconcile one playlist across all its linked services."""
    cfg = ctx.obj
    with cli_errors(), get_db(cfg) as db:
        outcome = build_engine(cfg, db).sync_playlist(playlist_id, acting_user_id=user_id)
    click.echo(_json.dumps(outcome.to_dict(), indent=2))
    if not outcome.success:
        ctx.exit(1)


@cli.command(name='sync-stale')
@click.option('--limit', type=int, default=None, help='Maximum playlists per run (default: sync.batch_size).')
@click.option('--max-age-hours', type=float, default=None, help='Staleness threshold (default: sync.staleness_hours).')
@click.option('--json', 'as_json', is_flag=True, help='Print the full batch result as JSON.')
@click.pass_context
def sync_stale_cmd(ctx: click.Context, limit: int | None, max_age_hours: float | None, as_json: bool):
    """Sync every playlist never synced or not synced recently."""
    cfg = ctx.obj
    limit = limit if limit is not None else cfg['sync']['batch_size']
    max_age_hours = max_age_hours if max_age_hours is not None else cfg['sync']['staleness_hours']
    with cli_errors(), get_db(cfg) as db:
        result = sync_stale_playlists(db, build_engine(cfg, db), staleness_hours=max_age_hours, limit=limit)
    if as_json:
        click.echo(_json.dumps(result.to_dict(), indent=2))
    else:
        click.echo(
            f"Considered {result.considered}: {result.succeeded} ok, {result.partial} partial, {result.failed} failed"
        )
