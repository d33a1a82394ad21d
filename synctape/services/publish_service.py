"""Publish a canonical playlist to a service the user has not linked yet ("create")."""
from __future__ import annotations

import time
import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from ..auth import TokenRefreshCoordinator
from ..db import DatabaseInterface, SUPPORTED_SERVICES
from ..errors import ConflictError, ForbiddenError, InvalidRequestError, NotFoundError, UnimplementedError
from ..links import LinkRegistry
from ..providers.base import StreamingServiceClient

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    service_playlist_id: str
    track_count: int
    skipped_tracks: int

    def to_dict(self):
        return {
            'service_playlist_id': self.service_playlist_id,
            'track_count': self.track_count,
            'skipped_tracks': self.skipped_tracks,
        }


def publish_playlist(
    db: DatabaseInterface,
    tokens: TokenRefreshCoordinator,
    clients: Mapping[str, StreamingServiceClient],
    playlist_id: int,
    user_id: int,
    service: str,
    clock: Callable[[], float] = time.time,
) -> PublishResult:
    """Create the playlist on ``service`` for ``user_id`` and link it.

    Only tracks that already carry an id on ``service`` are pushed; the rest
    are counted as skipped.

    Raises:
        InvalidRequestError: Unknown service
        NotFoundError: Unknown playlist
        ForbiddenError: User neither owns nor links the playlist
        ConflictError: User already has a link on ``service``
        AuthMissingError: User has not connected ``service``
    """
    if service not in SUPPORTED_SERVICES:
        raise InvalidRequestError(f"Unknown service '{service}'")
    playlist = db.get_playlist_by_id(playlist_id)
    if playlist is None:
        raise NotFoundError(f"Playlist {playlist_id} not found")
    registry = LinkRegistry(db, clock=clock)
    if not registry.user_can_access(playlist, user_id):
        raise ForbiddenError(f"User {user_id} has no access to playlist {playlist_id}")
    if any(l.service == service and l.user_id == user_id for l in registry.links_for(playlist_id)):
        raise ConflictError(f"Playlist {playlist_id} already exists on {service} for user {user_id}")
    client = clients.get(service)
    if client is None:
        raise UnimplementedError(f"No client available for service '{service}'", service=service)

    token = tokens.access_token_for(user_id, service)
    tracks = [row.track for row in db.get_playlist_tracks(playlist_id)]
    ids = [eid for eid in (t.external_id(service) for t in tracks) if eid]
    skipped = len(tracks) - len(ids)

    service_playlist_id = client.create_playlist(playlist.name, playlist.description or "", token)
    if ids:
        client.replace_playlist_tracks(service_playlist_id, ids, token)
    registry.create_link(playlist_id, user_id, service, service_playlist_id, is_source=False, synced_at=int(clock()))
    logger.info(
        f"Published playlist {playlist_id} to {service}:{service_playlist_id} ({len(ids)} tracks, {skipped} skipped)"
    )
    return PublishResult(service_playlist_id=service_playlist_id, track_count=len(ids), skipped_tracks=skipped)


__all__ = ["publish_playlist", "PublishResult"]
