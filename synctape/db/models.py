"""Domain model types for database entities.

These dataclasses provide type-safe representations of database rows,
improving IDE support, type checking, and making the data contracts explicit.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

# Service identifier -> column on the tracks table holding that service's track id
SERVICE_COLUMNS: Dict[str, str] = {
    'spotify': 'spotify_id',
    'apple_music': 'apple_music_id',
    'youtube_music': 'youtube_music_id',
}

SUPPORTED_SERVICES = tuple(SERVICE_COLUMNS.keys())


def service_column(service: str) -> str:
    """Return the tracks column for a service identifier.

    Raises:
        ValueError: If the service is unknown
    """
    try:
        return SERVICE_COLUMNS[service]
    except KeyError:
        raise ValueError(f"Unknown service '{service}'. Supported: {', '.join(SUPPORTED_SERVICES)}") from None


class _RowMixin:
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (JSON output, CLI display)."""
        return asdict(self)  # type: ignore[call-overload]

    def keys(self):
        """Provide dict-like keys() method for compatibility."""
        return self.to_dict().keys()

    def __getitem__(self, key: str) -> Any:
        """Provide dict-like subscript access for compatibility."""
        return getattr(self, key)


@dataclass
class TrackRow(_RowMixin):
    """Canonical track (tracks table)."""
    id: int
    name: Optional[str]
    artist: Optional[str]
    album: Optional[str]
    isrc: Optional[str]
    duration_ms: Optional[int]
    spotify_id: Optional[str] = None
    apple_music_id: Optional[str] = None
    youtube_music_id: Optional[str] = None
    created_at: Optional[int] = None
    last_verified: Optional[int] = None

    def external_id(self, service: str) -> Optional[str]:
        """External id of this track on ``service`` (None when unknown there)."""
        return getattr(self, service_column(service)) or None

    @classmethod
    def from_row(cls, row) -> TrackRow:
        """Convert sqlite3.Row to TrackRow."""
        return cls(
            id=row['id'],
            name=row['name'],
            artist=row['artist'],
            album=row['album'],
            isrc=row['isrc'],
            duration_ms=row['duration_ms'],
            spotify_id=row['spotify_id'],
            apple_music_id=row['apple_music_id'],
            youtube_music_id=row['youtube_music_id'],
            created_at=row['created_at'],
            last_verified=row['last_verified'],
        )


@dataclass
class PlaylistRow(_RowMixin):
    """Canonical playlist (playlists table)."""
    id: int
    name: str
    description: Optional[str]
    owner_id: int
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    last_synced_at: Optional[int] = None
    last_attempted_at: Optional[int] = None
    track_count: int = 0

    @classmethod
    def from_row(cls, row) -> PlaylistRow:
        """Convert sqlite3.Row to PlaylistRow."""
        return cls(
            id=row['id'],
            name=row['name'],
            description=row['description'],
            owner_id=row['owner_id'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
            last_synced_at=row['last_synced_at'],
            last_attempted_at=row['last_attempted_at'] if 'last_attempted_at' in row.keys() else None,
            track_count=row['track_count'] if 'track_count' in row.keys() else 0,
        )


@dataclass
class PlaylistTrackRow(_RowMixin):
    """A canonical track at a position within a playlist."""
    position: int
    track: TrackRow

    @classmethod
    def from_row(cls, row) -> PlaylistTrackRow:
        return cls(position=row['position'], track=TrackRow.from_row(row))


@dataclass
class PlaylistLinkRow(_RowMixin):
    """Binding of a canonical playlist to one external playlist."""
    id: int
    playlist_id: int
    user_id: int
    service: str
    service_playlist_id: str
    is_source: bool = False
    last_synced_at: Optional[int] = None
    created_at: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> PlaylistLinkRow:
        """Convert sqlite3.Row to PlaylistLinkRow."""
        return cls(
            id=row['id'],
            playlist_id=row['playlist_id'],
            user_id=row['user_id'],
            service=row['service'],
            service_playlist_id=row['service_playlist_id'],
            is_source=bool(row['is_source']),
            last_synced_at=row['last_synced_at'],
            created_at=row['created_at'],
        )


@dataclass
class CredentialRow(_RowMixin):
    """Per (user, service) OAuth state."""
    user_id: int
    service: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    service_user_id: Optional[str] = None
    updated_at: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> CredentialRow:
        """Convert sqlite3.Row to CredentialRow."""
        return cls(
            user_id=row['user_id'],
            service=row['service'],
            access_token=row['access_token'],
            refresh_token=row['refresh_token'],
            expires_at=row['expires_at'],
            service_user_id=row['service_user_id'] if 'service_user_id' in row.keys() else None,
            updated_at=row['updated_at'] if 'updated_at' in row.keys() else None,
        )


__all__ = [
    'SERVICE_COLUMNS',
    'SUPPORTED_SERVICES',
    'service_column',
    'TrackRow',
    'PlaylistRow',
    'PlaylistTrackRow',
    'PlaylistLinkRow',
    'CredentialRow',
]
