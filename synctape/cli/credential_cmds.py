"""Credential management commands."""

from __future__ import annotations
import json as _json
import time

import click

from ..auth import CredentialStore
from ..db import SUPPORTED_SERVICES
from .helpers import cli, get_db


def _mask(token: str | None) -> str | None:
    if not token:
        return token
    return token[:4] + '…' if len(token) > 8 else '***'


@cli.group(name='credentials')
def credentials_group():  # pragma: no cover - simple container
    """Store, inspect and revoke per-user service credentials."""
    pass


@credentials_group.command(name='set')
@click.argument('user_id', type=int)
@click.argument('service', type=click.Choice(SUPPORTED_SERVICES))
@click.option('--access-token', required=True)
@click.option('--refresh-token', default=None)
@click.option('--expires-in', type=int, default=None, help='Seconds until the access token expires.')
@click.option('--service-user-id', default=None)
@click.pass_context
def credentials_set(ctx: click.Context, user_id: int, service: str, access_token: str,
                    refresh_token: str | None, expires_in: int | None, service_user_id: str | None):
    """Create or replace the credential for USER_ID on SERVICE."""
    expires_at = int(time.time()) + expires_in if expires_in is not None else None
    with get_db(ctx.obj) as db:
        CredentialStore(db).save(user_id, service, access_token, refresh_token, expires_at, service_user_id)
    click.echo(f"Stored {service} credential for user {user_id}")


@credentials_group.command(name='show')
@click.argument('user_id', type=int)
@click.argument('service', type=click.Choice(SUPPORTED_SERVICES))
@click.pass_context
def credentials_show(ctx: click.Context, user_id: int, service: str):
    """Show the stored credential (tokens masked)."""
    with get_db(ctx.obj) as db:
        cred = CredentialStore(db).get(user_id, service)
    if cred is None:
        raise click.ClickException(f"No {service} credential for user {user_id}")
    data = cred.to_dict()
    data['access_token'] = _mask(cred.access_token)
    data['refresh_token'] = _mask(cred.refresh_token)
    click.echo(_json.dumps(data, indent=2))


@credentials_group.command(name='revoke')
@click.argument('user_id', type=int)
@click.argument('service', type=click.Choice(SUPPORTED_SERVICES))
@click.pass_context
def credentials_revoke(ctx: click.Context, user_id: int, service: str):
    """Delete the stored credential."""
    with get_db(ctx.obj) as db:
        removed = CredentialStore(db).revoke(user_id, service)
    if not removed:
        raise click.ClickException(f"No {service} credential for user {user_id}")
    click.echo(f"Revoked {service} credential for user {user_id}")
