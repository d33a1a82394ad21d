"""Apple Music API client (declared, not implemented).

The adapter is registered so links to Apple Music playlists resolve to a
client, but every operation fails with UnimplementedError. The engine
records that as a per-link error and keeps syncing the other links.
"""

from __future__ import annotations
import logging
from typing import Optional, Sequence

from ...errors import UnimplementedError
from ..base import PlaylistSnapshot, ProviderCapabilities, StreamingServiceClient, TrackMetadata

logger = logging.getLogger(__name__)
API_BASE = "https://api.music.apple.com/v1"
SERVICE = "apple_music"


class AppleMusicClient(StreamingServiceClient):
    service = SERVICE
    capabilities = ProviderCapabilities(max_batch_size=100)

    def __init__(self, developer_token: str | None = None, timeout: float = 30):
        self.developer_token = developer_token
        self.timeout = timeout

    def _unimplemented(self, operation: str) -> UnimplementedError:
        logger.debug(f"Apple Music {operation} requested but not implemented")
        return UnimplementedError(f"Apple Music {operation} is not implemented", service=SERVICE)

    def fetch_playlist(self, playlist_id: str, access_token: str) -> PlaylistSnapshot:
        raise self._unimplemented("fetch_playlist")

    def create_playlist(self, name: str, description: str, access_token: str) -> str:
        raise self._unimplemented("create_playlist")

    def replace_playlist_tracks(self, playlist_id: str, track_ids: Sequence[str], access_token: str) -> None:
        raise self._unimplemented("replace_playlist_tracks")

    def search_track(self, track: TrackMetadata, access_token: str) -> Optional[str]:
        raise self._unimplemented("search_track")


__all__ = ["AppleMusicClient"]
