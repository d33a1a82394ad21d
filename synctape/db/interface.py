"""Database interface abstraction for testability.

This interface defines the narrow query surface used by the sync core. The
concrete SQLite implementation (`Database`) implements it; services accept
any implementation for dependency injection.

Only methods required by services are included; extend incrementally when
new read/write paths are exercised. Keep write operations explicit (no
generic execute) so every statement the core issues is visible here.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ContextManager, Dict, List, Optional, Sequence

from .models import TrackRow, PlaylistRow, PlaylistTrackRow, PlaylistLinkRow, CredentialRow


class DatabaseInterface(ABC):
    @abstractmethod
    def transaction(self) -> ContextManager[Any]:
        """Atomic multi-statement batch; nested use joins the outer one."""
        ...

    # --- Tracks ---
    @abstractmethod
    def find_track_by_service_id(self, service: str, external_id: str) -> Optional[TrackRow]: ...

    @abstractmethod
    def find_track_by_isrc(self, isrc: str) -> Optional[TrackRow]:
        """Lowest-id track carrying ``isrc`` (None if no track has it)."""
        ...

    @abstractmethod
    def create_track(self, track: Dict[str, Any], now: int) -> int:
        """Insert a canonical track and return its new id.

        Raises:
            sqlite3.IntegrityError: If a service id is already claimed
        """
        ...

    @abstractmethod
    def set_track_service_id(self, track_id: int, service: str, external_id: str, now: int) -> None: ...

    @abstractmethod
    def get_track(self, track_id: int) -> Optional[TrackRow]: ...

    @abstractmethod
    def count_tracks(self) -> int: ...

    # --- Playlists ---
    @abstractmethod
    def create_playlist(self, name: str, description: str | None, owner_id: int, now: int) -> int: ...

    @abstractmethod
    def get_playlist_by_id(self, playlist_id: int) -> Optional[PlaylistRow]: ...

    @abstractmethod
    def get_playlist_tracks(self, playlist_id: int) -> List[PlaylistTrackRow]:
        """Membership ordered by position."""
        ...

    @abstractmethod
    def set_playlist_tracks(self, playlist_id: int, track_ids: Sequence[int], synced_at: int | None = None) -> None:
        """Atomically replace membership with dense positions 0..n-1.

        When ``synced_at`` is given the playlist's last_synced_at and
        updated_at are stamped in the same transaction.
        """
        ...

    @abstractmethod
    def mark_sync_attempt(self, playlist_id: int, attempted_at: int) -> None:
        """Record that a sync run started for the playlist, whatever its result."""
        ...

    @abstractmethod
    def get_stale_playlist_ids(self, older_than: int, limit: int) -> List[int]:
        """Playlists never synced or last synced before ``older_than``.

        Never-attempted playlists come first, then the least recently
        attempted, so playlists that keep failing rotate to the back.
        """
        ...

    @abstractmethod
    def delete_playlist(self, playlist_id: int) -> bool:
        """Delete playlist with its membership and links in one transaction."""
        ...

    # --- Playlist links ---
    @abstractmethod
    def get_playlist_links(self, playlist_id: int) -> List[PlaylistLinkRow]:
        """Links ordered by id (creation order)."""
        ...

    @abstractmethod
    def create_playlist_link(
        self,
        playlist_id: int,
        user_id: int,
        service: str,
        service_playlist_id: str,
        is_source: bool,
        now: int,
        last_synced_at: int | None = None,
    ) -> int: ...

    @abstractmethod
    def update_link_sync_timestamp(self, link_id: int, synced_at: int) -> None: ...

    @abstractmethod
    def user_has_playlist_link(self, playlist_id: int, user_id: int) -> bool: ...

    # --- Credentials ---
    @abstractmethod
    def get_credential(self, user_id: int, service: str) -> Optional[CredentialRow]: ...

    @abstractmethod
    def save_credential(
        self,
        user_id: int,
        service: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: int | None,
        now: int,
        service_user_id: str | None = None,
    ) -> None: ...

    @abstractmethod
    def delete_credential(self, user_id: int, service: str) -> bool: ...

    # --- Meta ---
    @abstractmethod
    def get_meta(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set_meta(self, key: str, value: str) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


__all__ = ["DatabaseInterface"]
