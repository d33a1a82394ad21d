from __future__ import annotations
import contextlib
import logging
from typing import Iterator, Tuple

import click

from ..auth import CredentialStore, TokenRefreshCoordinator
from ..config import load_config
from ..errors import SyncTapeError
from ..providers import build_service_clients, build_token_refreshers
from ..services import ReconciliationEngine
from ..version import __version__

from .shared import get_db

logger = logging.getLogger(__name__)


class SyncTapeCliError(click.ClickException):
    """Failure surfaced to the shell: exit 2 for caller errors (4xx), 1 otherwise."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def exit_code_for(exc: SyncTapeError) -> int:
    return 2 if 400 <= exc.http_status < 500 else 1


@contextlib.contextmanager
def cli_errors() -> Iterator[None]:
    """Translate library errors into click exceptions with the right exit code."""
    try:
        yield
    except SyncTapeError as e:
        raise SyncTapeCliError(f"{e.kind}: {e}", exit_code=exit_code_for(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="synctape")
@click.pass_context
def cli(ctx: click.Context):
    """Keep one canonical playlist in sync across streaming services.

    \b
    TYPICAL WORKFLOWS:

    \b
    Connect an account (tokens from the OAuth flow):
      synctape credentials set 1 spotify --access-token ... --refresh-token ...

    \b
    Import and publish:
      synctape share spotify 37i9dQZF1DXcBWIGoYBM5M --user 1
      synctape publish 1 apple_music --user 1

    \b
    Reconcile:
      synctape sync 1              # one playlist, outcome as JSON
      synctape sync-stale          # every playlist not synced for 24h
    """
    if not isinstance(ctx.obj, dict):
        ctx.obj = load_config()


def build_runtime(cfg, db) -> Tuple[dict, TokenRefreshCoordinator]:
    """Build service clients and the token coordinator once per invocation."""
    clients = build_service_clients(cfg)
    tokens = TokenRefreshCoordinator(
        CredentialStore(db),
        build_token_refreshers(cfg),
        skew_seconds=cfg['sync']['skew_seconds'],
    )
    return clients, tokens


def build_engine(cfg, db) -> ReconciliationEngine:
    clients, tokens = build_runtime(cfg, db)
    return ReconciliationEngine(
        db,
        clients,
        tokens,
        max_workers=cfg['sync']['max_workers'],
        budget_seconds=cfg['sync']['playlist_budget_seconds'],
    )


__all__ = ["cli", "get_db", "build_runtime", "build_engine", "cli_errors", "SyncTapeCliError", "exit_code_for"]
