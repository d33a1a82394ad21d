"""Spotify provider implementation.

Validates Spotify configuration and builds the shared API client and the
token refresher from it.
"""

from __future__ import annotations
from typing import Dict, Any
from ..base import Provider, StreamingServiceClient, TokenRefresher
from .auth import SpotifyTokenRefresher
from .client import SpotifyAPIClient


def _http_settings(http_config: Dict[str, Any] | None) -> Dict[str, Any]:
    http_config = http_config or {}
    return {
        'timeout': http_config.get('timeout_seconds', 30),
        'max_attempts': http_config.get('max_attempts', 5),
        'max_retry_after': http_config.get('max_retry_after_seconds', 60),
    }


class SpotifyProvider(Provider):
    """Spotify streaming provider implementation."""

    @property
    def name(self) -> str:
        return "spotify"

    def create_client(self, config: Dict[str, Any], http_config: Dict[str, Any] | None = None) -> StreamingServiceClient:
        return SpotifyAPIClient(**_http_settings(http_config))

    def create_refresher(self, config: Dict[str, Any], http_config: Dict[str, Any] | None = None) -> TokenRefresher | None:
        """Create the refresh_token grant client.

        Args:
            config: Spotify configuration dict with keys:
                - client_id: Spotify application client ID
                - client_secret: application secret (optional for PKCE apps)

        Raises:
            ValueError: If client_id missing
        """
        self.validate_config(config)
        return SpotifyTokenRefresher(
            client_id=config['client_id'],
            client_secret=config.get('client_secret'),
            timeout=_http_settings(http_config)['timeout'],
        )

    def validate_config(self, config: Dict[str, Any]) -> None:
        if not config.get('client_id'):
            raise ValueError("Spotify config missing required field: client_id")

    def get_default_config(self) -> Dict[str, Any]:
        return {
            'client_id': None,
            'client_secret': None,
        }


__all__ = ["SpotifyProvider"]
