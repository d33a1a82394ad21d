"""Canonical playlist lifecycle operations outside of sync."""
from __future__ import annotations

import logging

from ..db import DatabaseInterface
from ..errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def delete_playlist(db: DatabaseInterface, playlist_id: int, user_id: int) -> None:
    """Delete a playlist with its membership and links. Owner only.

    External playlists on the services are left untouched.
    """
    playlist = db.get_playlist_by_id(playlist_id)
    if playlist is None:
        raise NotFoundError(f"Playlist {playlist_id} not found")
    if playlist.owner_id != user_id:
        raise ForbiddenError(f"Only the owner may delete playlist {playlist_id}")
    if not db.delete_playlist(playlist_id):
        raise NotFoundError(f"Playlist {playlist_id} not found")
    logger.info(f"Deleted playlist {playlist_id}")


__all__ = ["delete_playlist"]
