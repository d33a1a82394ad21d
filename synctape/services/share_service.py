"""Import an external playlist as a new canonical playlist ("share")."""
from __future__ import annotations

import time
import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from ..auth import TokenRefreshCoordinator
from ..db import DatabaseInterface, SUPPORTED_SERVICES
from ..errors import InvalidRequestError, UnimplementedError
from ..identity import TrackIdentityResolver
from ..links import LinkRegistry
from ..providers.base import StreamingServiceClient

logger = logging.getLogger(__name__)


@dataclass
class ShareResult:
    playlist_id: int
    name: str
    track_count: int

    def to_dict(self):
        return {'playlist_id': self.playlist_id, 'name': self.name, 'track_count': self.track_count}


def share_playlist(
    db: DatabaseInterface,
    tokens: TokenRefreshCoordinator,
    clients: Mapping[str, StreamingServiceClient],
    user_id: int,
    service: str,
    service_playlist_id: str,
    clock: Callable[[], float] = time.time,
) -> ShareResult:
    """Create a canonical playlist owned by ``user_id`` from an external one.

    The external playlist becomes the source link, stamped as synced now.

    Raises:
        InvalidRequestError: Unknown service or missing playlist id
        AuthMissingError: User has not connected ``service``
        ProviderError / NotFoundError: Fetch failed upstream
    """
    if service not in SUPPORTED_SERVICES:
        raise InvalidRequestError(f"Unknown service '{service}'")
    if not service_playlist_id:
        raise InvalidRequestError("Missing required field: service_playlist_id")
    client = clients.get(service)
    if client is None:
        raise UnimplementedError(f"No client available for service '{service}'", service=service)

    token = tokens.access_token_for(user_id, service)
    snapshot = client.fetch_playlist(service_playlist_id, token)

    resolver = TrackIdentityResolver(db, clock=clock)
    track_ids = [resolver.resolve_or_create(t, service, t.external_id) for t in snapshot.tracks]

    now = int(clock())
    with db.transaction():
        playlist_id = db.create_playlist(snapshot.name, snapshot.description, user_id, now)
        LinkRegistry(db, clock=clock).create_link(
            playlist_id, user_id, service, service_playlist_id, is_source=True, synced_at=now
        )
        db.set_playlist_tracks(playlist_id, track_ids, synced_at=now)
    logger.info(f"Imported {service}:{service_playlist_id} as playlist {playlist_id} ({len(track_ids)} tracks)")
    return ShareResult(playlist_id=playlist_id, name=snapshot.name, track_count=len(track_ids))


__all__ = ["share_playlist", "ShareResult"]
