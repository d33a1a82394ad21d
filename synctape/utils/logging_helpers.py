"""Logging helper utilities for consistent sync reporting."""

import logging
import click

logger = logging.getLogger(__name__)


def log_progress(
    processed: int,
    total: int | None,
    succeeded: int = 0,
    partial: int = 0,
    failed: int = 0,
    elapsed_seconds: float = 0.0,
    item_name: str = "playlists"
) -> None:
    """Log batch progress with consistent formatting.

    Args:
        processed: Number of items processed so far
        total: Total number of items (None if unknown)
        succeeded: Items that synced cleanly
        partial: Items that synced with per-service errors
        failed: Items that failed hard or raised
        elapsed_seconds: Time elapsed since start
        item_name: Name of items being processed
    """
    parts = [
        f"{click.style(f'{processed}', fg='cyan')} {item_name} processed"
    ]

    if total:
        pct = (processed / total * 100) if total > 0 else 0
        parts[0] = f"{click.style(f'{processed}/{total}', fg='cyan')} {item_name} ({pct:.0f}%)"

    if succeeded > 0:
        parts.append(click.style(f'{succeeded} ok', fg='green'))
    if partial > 0:
        parts.append(click.style(f'{partial} partial', fg='yellow'))
    if failed > 0:
        parts.append(click.style(f'{failed} failed', fg='red'))

    if elapsed_seconds > 0:
        parts.append(f"{elapsed_seconds:.1f}s")

    logger.info(" | ".join(parts))


def format_sync_summary(
    playlist_id: int,
    state: str,
    track_count: int,
    synced: int,
    errors: int,
    authoritative: str | None = None,
    duration_seconds: float = 0.0,
) -> str:
    """Format a one-line per-playlist sync summary with colored counts."""
    if state == 'failed':
        mark = click.style('✗', fg='red')
    elif state == 'partial_failure' or errors > 0:
        mark = click.style('!', fg='yellow')
    else:
        mark = click.style('✓', fg='green')

    parts = [
        mark,
        f"Playlist {playlist_id}:",
        state,
        click.style(f'{track_count} tracks', fg='cyan'),
        click.style(f'{synced} synced', fg='green'),
    ]
    if errors > 0:
        parts.append(click.style(f'{errors} errors', fg='red'))
    if authoritative:
        parts.append(f"(from {authoritative})")
    if duration_seconds > 0:
        parts.append(f"in {duration_seconds:.2f}s")

    return " ".join(parts)


__all__ = ["log_progress", "format_sync_summary"]
