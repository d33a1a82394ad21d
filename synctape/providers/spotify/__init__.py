"""Spotify provider package."""

from .client import SpotifyAPIClient
from .auth import SpotifyTokenRefresher
from .provider import SpotifyProvider

__all__ = ["SpotifyAPIClient", "SpotifyTokenRefresher", "SpotifyProvider"]
