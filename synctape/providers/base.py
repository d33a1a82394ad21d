"""Provider abstraction layer.

This module defines provider-neutral domain models and abstract interfaces
so every streaming service (Spotify, Apple Music, future services) plugs
into the sync core through the same contract.

Key abstractions:
- Domain models: TrackMetadata, PlaylistSnapshot, TokenGrant
- StreamingServiceClient: the four playlist operations the engine needs
- TokenRefresher: the service-specific OAuth refresh_token grant
- Provider: per-service factory (config validation + client/refresher creation)

Clients receive the access token per call, so a single client instance
serves every user and is built once at startup.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence, Dict, Any, List, Optional

# ---------------- Domain Models -----------------

@dataclass(frozen=True)
class TrackMetadata:
    """A track as reported by one service."""
    external_id: str  # provider-assigned track id
    name: str
    artist: str
    album: str | None = None
    isrc: str | None = None
    duration_ms: int | None = None
    image_url: str | None = None


@dataclass
class PlaylistSnapshot:
    """Full state of an external playlist at fetch time (tracks in provider order)."""
    name: str
    description: str | None
    tracks: List[TrackMetadata] = field(default_factory=list)
    updated_at: datetime | None = None
    snapshot_id: str | None = None


@dataclass(frozen=True)
class TokenGrant:
    """Result of a refresh_token grant.

    ``refresh_token`` is None when the provider did not rotate it.
    """
    access_token: str
    expires_in: int
    refresh_token: str | None = None

# ---------------- Capability descriptor -----------------

@dataclass(frozen=True)
class ProviderCapabilities:
    search: bool = True
    create_playlist: bool = True
    supports_isrc: bool = True
    max_batch_size: int = 100
    # Indicates provider can fully replace (overwrite) playlist track ordering
    replace_playlist: bool = True

# ---------------- Client contract -----------------

class StreamingServiceClient(ABC):
    """Uniform capability set every service adapter implements.

    Errors are reported with the :mod:`synctape.errors` taxonomy:
    AuthExpiredError, RateLimitedError (after internal retries),
    NotFoundError, UpstreamUnavailableError, UnimplementedError.
    """

    service: str = ""
    capabilities: ProviderCapabilities = ProviderCapabilities()

    @abstractmethod
    def fetch_playlist(self, playlist_id: str, access_token: str) -> PlaylistSnapshot:
        """Fetch playlist metadata and every track, following pagination.

        Args:
            playlist_id: Service-specific playlist ID
            access_token: OAuth access token for the service

        Returns:
            PlaylistSnapshot with tracks in provider order
        """

    @abstractmethod
    def create_playlist(self, name: str, description: str, access_token: str) -> str:
        """Create a new playlist and return its service-specific ID."""

    @abstractmethod
    def replace_playlist_tracks(self, playlist_id: str, track_ids: Sequence[str], access_token: str) -> None:
        """Make the remote playlist contain exactly ``track_ids`` in order.

        Implementations batch internally when the provider caps items per
        call: the first batch replaces, later batches append.
        """

    @abstractmethod
    def search_track(self, track: TrackMetadata, access_token: str) -> Optional[str]:
        """Return the service's track ID for ``track`` or None when not found."""

# ---------------- Token refresh -----------------

class TokenRefresher(ABC):
    """Service-specific OAuth refresh operation (grant type refresh_token)."""

    service: str = ""

    @abstractmethod
    def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token.

        Raises:
            ProviderError: On non-2xx answers from the token endpoint
            UpstreamUnavailableError: On network failure
        """

# ---------------- Provider Factory -----------------

class Provider(ABC):
    """Per-service factory: validates config and builds client + refresher.

    Example:
        provider = SpotifyProvider()
        provider.validate_config(config['providers']['spotify'])
        client = provider.create_client(config['providers']['spotify'], config['http'])
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., 'spotify', 'apple_music')."""

    @abstractmethod
    def create_client(self, config: Dict[str, Any], http_config: Dict[str, Any] | None = None) -> StreamingServiceClient:
        """Create the API client for this service."""

    @abstractmethod
    def create_refresher(self, config: Dict[str, Any], http_config: Dict[str, Any] | None = None) -> TokenRefresher | None:
        """Create the token refresher, or None when the service has no refresh grant."""

    @abstractmethod
    def validate_config(self, config: Dict[str, Any]) -> None:
        """Validate provider-specific configuration.

        Raises:
            ValueError: If required config keys missing or invalid
        """

    @abstractmethod
    def get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values for this provider."""


__all__ = [
    'TrackMetadata', 'PlaylistSnapshot', 'TokenGrant', 'ProviderCapabilities',
    'StreamingServiceClient', 'TokenRefresher', 'Provider',
]
