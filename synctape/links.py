"""Link registry: bindings between canonical playlists and external playlists."""

from __future__ import annotations
import time
import sqlite3
import logging
from typing import Callable, List, Optional

from .db import DatabaseInterface, PlaylistLinkRow, PlaylistRow, SUPPORTED_SERVICES
from .errors import ConflictError, InvalidRequestError

logger = logging.getLogger(__name__)


class LinkRegistry:
    def __init__(self, db: DatabaseInterface, clock: Callable[[], float] = time.time):
        self.db = db
        self.clock = clock

    def links_for(self, playlist_id: int) -> List[PlaylistLinkRow]:
        """All links of a playlist in creation order."""
        return self.db.get_playlist_links(playlist_id)

    def source_link(self, playlist_id: int) -> Optional[PlaylistLinkRow]:
        """The link the playlist was imported from, if any."""
        for link in self.links_for(playlist_id):
            if link.is_source:
                return link
        return None

    def create_link(
        self,
        playlist_id: int,
        user_id: int,
        service: str,
        service_playlist_id: str,
        is_source: bool = False,
        synced_at: int | None = None,
    ) -> PlaylistLinkRow:
        """Bind an external playlist to a canonical one.

        Raises:
            InvalidRequestError: Unknown service or empty external id
            ConflictError: The user already links this playlist on that service
        """
        if service not in SUPPORTED_SERVICES:
            raise InvalidRequestError(f"Unknown service '{service}'")
        if not service_playlist_id:
            raise InvalidRequestError("service_playlist_id is required")
        now = int(self.clock())
        try:
            link_id = self.db.create_playlist_link(
                playlist_id, user_id, service, service_playlist_id, is_source, now, last_synced_at=synced_at
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"User {user_id} already has a {service} link for playlist {playlist_id}"
            ) from e
        logger.info(f"Linked playlist {playlist_id} to {service}:{service_playlist_id} (user {user_id})")
        return PlaylistLinkRow(
            id=link_id,
            playlist_id=playlist_id,
            user_id=user_id,
            service=service,
            service_playlist_id=service_playlist_id,
            is_source=is_source,
            last_synced_at=synced_at,
            created_at=now,
        )

    def mark_synced(self, link_id: int, ts: int) -> None:
        self.db.update_link_sync_timestamp(link_id, ts)

    def user_can_access(self, playlist: PlaylistRow, user_id: int) -> bool:
        """Owner or any user holding a link may read and sync the playlist."""
        if playlist.owner_id == user_id:
            return True
        return self.db.user_has_playlist_link(playlist.id, user_id)


__all__ = ["LinkRegistry"]
