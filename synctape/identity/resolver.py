"""Track identity resolution.

Maps a (service, service track id) pair plus metadata to exactly one
canonical track row, creating it when unseen. Resolution order:

1. Exact match on the service's id column -> that track.
2. ISRC match (lowest track id when several rows share it) -> the service
   id is stamped onto that row, so the same recording is shared across
   services.
3. Otherwise a new canonical track is inserted carrying the metadata and
   the service id.

Matching is exact on identifiers only; titles and artists are stored but
never compared.
"""

from __future__ import annotations
import time
import sqlite3
import logging
from typing import Callable, Dict, Any

from ..db import DatabaseInterface, service_column
from ..providers.base import TrackMetadata

logger = logging.getLogger(__name__)

PLACEHOLDER_IDS = frozenset({"", "TODO"})


class TrackIdentityResolver:
    def __init__(self, db: DatabaseInterface, clock: Callable[[], float] = time.time):
        self.db = db
        self.clock = clock

    def resolve_or_create(self, metadata: TrackMetadata, service: str, service_track_id: str) -> int:
        """Return the canonical track id for ``service_track_id`` on ``service``.

        Raises:
            ValueError: If the service is unknown or the id is empty/placeholder
        """
        column = service_column(service)
        if service_track_id is None or service_track_id.strip() in PLACEHOLDER_IDS:
            raise ValueError(f"Refusing to resolve placeholder {service} track id {service_track_id!r}")

        existing = self.db.find_track_by_service_id(service, service_track_id)
        if existing:
            return existing.id

        now = int(self.clock())
        if metadata.isrc:
            by_isrc = self.db.find_track_by_isrc(metadata.isrc)
            if by_isrc:
                previous = by_isrc.external_id(service)
                if previous and previous != service_track_id:
                    logger.debug(
                        f"Track {by_isrc.id} ({metadata.isrc}) {service} id changed {previous} -> {service_track_id}"
                    )
                self.db.set_track_service_id(by_isrc.id, service, service_track_id, now)
                return by_isrc.id

        row: Dict[str, Any] = {
            'name': metadata.name,
            'artist': metadata.artist,
            'album': metadata.album,
            'isrc': metadata.isrc,
            'duration_ms': metadata.duration_ms,
            column: service_track_id,
        }
        try:
            track_id = self.db.create_track(row, now)
        except sqlite3.IntegrityError:
            # Another worker inserted the same service id first
            existing = self.db.find_track_by_service_id(service, service_track_id)
            if existing is None:
                raise
            return existing.id
        logger.debug(f"Created track {track_id} for {service}:{service_track_id}")
        return track_id


__all__ = ["TrackIdentityResolver", "PLACEHOLDER_IDS"]
